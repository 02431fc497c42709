import time
import uuid

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

import settings
from app import auth, characters, sessions
from db import check_db_connection
from errors import CharSheetError
from logs import bind_request_context, clear_request_context, configure_logging, get_logger

configure_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)
logger = get_logger(__name__)

app = FastAPI(
    title="D&D Character Sheet API",
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@app.middleware("http")
async def request_context(request: Request, call_next):
    request_id = request.headers.get("X-Request-Id") or uuid.uuid4().hex
    bind_request_context(request_id=request_id, method=request.method, path=request.url.path)
    try:
        started = time.perf_counter()
        logger.debug("http.request.start")
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.exception("http.request.exception", error_type=type(exc).__name__)
            response = _error(500, "Internal server error")
        elapsed_ms = round((time.perf_counter() - started) * 1000, 1)
        response.headers["X-Request-Id"] = request_id
        logger.info("http.request.end", status=response.status_code, elapsed_ms=elapsed_ms)
        return response
    finally:
        clear_request_context()


app.add_middleware(
    SessionMiddleware,
    secret_key=settings.SESSION_SECRET,
    session_cookie=settings.SESSION_COOKIE,
    https_only=settings.SESSION_HTTPS_ONLY,
    same_site="lax",
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Request-Id"],
)


@app.exception_handler(CharSheetError)
async def charsheet_error_handler(request: Request, exc: CharSheetError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("http.request.failed", error=exc.message)
    return _error(exc.status_code, exc.message)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        location = ".".join(str(part) for part in errors[0].get("loc", ()))
        message = f"Invalid request: {location} {errors[0].get('msg', '')}".strip()
    else:
        message = "Invalid request"
    return _error(400, message)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("http.request.exception", error_type=type(exc).__name__)
    return _error(500, "Internal server error")


@app.get("/health")
def health() -> dict:
    try:
        check_db_connection()
    except Exception as exc:
        raise HTTPException(status_code=503, detail="Database unavailable") from exc
    return {"status": "ok", "version": settings.APP_VERSION}


app.include_router(auth.router)
app.include_router(characters.router)
app.include_router(sessions.router)
