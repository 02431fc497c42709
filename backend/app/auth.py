from fastapi import APIRouter, Body, Depends, Query, Request
from pydantic import BaseModel
from sqlalchemy.orm import Session

from db import get_db
from errors import BadRequestError
from models import User
from sheet.access import AuthContext, require_admin
from sheet.accounts import authenticate, ensure_default_admin, register_user, user_payload

router = APIRouter(prefix="/auth", tags=["auth"])


class Credentials(BaseModel):
    username: str | None = None
    password: str | None = None
    role: str | None = None


def current_auth(request: Request, db: Session = Depends(get_db)) -> AuthContext | None:
    """Resolve the signed session cookie into the acting user, if any."""
    user_id = request.session.get("user_id")
    if user_id is None:
        return None
    user = db.get(User, user_id)
    if user is None:
        request.session.clear()
        return None
    return AuthContext(user_id=user.id, username=user.username, role=user.role)


@router.get("")
def read_current_user(auth: AuthContext | None = Depends(current_auth)) -> dict | None:
    if auth is None:
        return None
    return {"id": auth.user_id, "username": auth.username, "role": auth.role}


@router.post("")
def auth_action(
    request: Request,
    action: str | None = Query(default=None),
    payload: Credentials | None = Body(default=None),
    db: Session = Depends(get_db),
    auth: AuthContext | None = Depends(current_auth),
) -> dict:
    data = payload or Credentials()
    if action == "login":
        if not data.username or not data.password:
            raise BadRequestError("username and password are required")
        ensure_default_admin(db)
        user = authenticate(db, data.username, data.password)
        request.session.clear()
        request.session["user_id"] = user.id
        return {"success": True, "user": user_payload(user)}
    if action == "logout":
        request.session.clear()
        return {"success": True}
    if action == "register":
        require_admin(auth)
        user = register_user(db, data.username or "", data.password or "", data.role)
        return {"success": True, "id": user.id}
    raise BadRequestError("Unknown action")
