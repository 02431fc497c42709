from typing import Any

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from app.auth import current_auth
from db import get_db
from errors import BadRequestError
from sheet.access import AuthContext, ensure_character_access, require_auth
from sheet.coerce import to_int, to_text
from sheet.snapshots import (
    active_session,
    create_snapshot,
    end_session,
    get_open_session,
    get_session,
    get_snapshot,
    latest_snapshot,
    list_sessions,
    session_detail,
    snapshot_payload,
    start_session,
)

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _character_id(payload: dict, character_id: int | None) -> int:
    value = to_int(payload.get("character_id"), None) or character_id
    if not value:
        raise BadRequestError("character_id is required")
    return value


@router.get("")
def read_sessions(
    character_id: int | None = Query(default=None),
    session_id: int | None = Query(default=None),
    snapshot_id: int | None = Query(default=None),
    active: bool = Query(default=False),
    latest_snapshot_only: bool = Query(default=False, alias="latest_snapshot"),
    db: Session = Depends(get_db),
    auth: AuthContext | None = Depends(current_auth),
) -> Any:
    if snapshot_id is not None:
        require_auth(auth)
        snapshot = get_snapshot(db, snapshot_id)
        ensure_character_access(db, auth, snapshot.character_id)
        return snapshot_payload(snapshot)
    if session_id is not None:
        require_auth(auth)
        session = get_session(db, session_id)
        ensure_character_access(db, auth, session.character_id)
        return session_detail(db, session)
    if character_id is None:
        raise BadRequestError("character_id or snapshot_id is required")

    ensure_character_access(db, auth, character_id)
    if latest_snapshot_only:
        return latest_snapshot(db, character_id)
    if active:
        return active_session(db, character_id)
    return list_sessions(db, character_id)


@router.post("")
def session_action(
    action: str | None = Query(default=None),
    character_id: int | None = Query(default=None),
    payload: dict[str, Any] | None = Body(default=None),
    db: Session = Depends(get_db),
    auth: AuthContext | None = Depends(current_auth),
) -> dict:
    data = payload or {}
    require_auth(auth)
    target = _character_id(data, character_id)
    ensure_character_access(db, auth, target)
    if action == "snapshot":
        snapshot_id = create_snapshot(db, target, data.get("character_data"))
        return {"success": True, "snapshot_id": snapshot_id}
    session_id = start_session(db, target, to_text(data.get("session_name")))
    return {"success": True, "session_id": session_id}


@router.put("")
def finish_session(
    id: int | None = Query(default=None),
    payload: dict[str, Any] | None = Body(default=None),
    db: Session = Depends(get_db),
    auth: AuthContext | None = Depends(current_auth),
) -> dict:
    data = payload or {}
    require_auth(auth)
    session_id = to_int(data.get("session_id"), None) or id
    if not session_id:
        raise BadRequestError("session_id is required")
    session = get_open_session(db, session_id)
    ensure_character_access(db, auth, session.character_id)
    end_session(db, session, to_text(data.get("notes")))
    return {"success": True}
