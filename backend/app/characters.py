from typing import Any

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from app.auth import current_auth
from db import get_db
from errors import NotFoundError, PermissionDeniedError
from sheet.access import AuthContext, ensure_character_access, require_auth
from sheet.character import (
    create_character,
    delete_character,
    list_characters,
    load_character,
    update_character,
)

router = APIRouter(prefix="/characters", tags=["characters"])


@router.get("")
def read_characters(
    id: int | None = Query(default=None),
    db: Session = Depends(get_db),
    auth: AuthContext | None = Depends(current_auth),
) -> Any:
    if id is None:
        auth = require_auth(auth)
        return list_characters(db, user_id=auth.user_id, is_admin=auth.is_admin)
    ensure_character_access(db, auth, id)
    return load_character(db, id)


@router.post("")
def add_character(
    payload: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    auth: AuthContext | None = Depends(current_auth),
) -> dict:
    auth = require_auth(auth)
    payload.pop("user_id", None)
    character_id = create_character(db, payload, owner_id=auth.user_id)
    return {"success": True, "id": character_id}


@router.put("")
def edit_character(
    id: int = Query(...),
    payload: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    auth: AuthContext | None = Depends(current_auth),
) -> dict:
    auth = require_auth(auth)
    ensure_character_access(db, auth, id)
    if "user_id" in payload and not auth.is_admin:
        raise PermissionDeniedError("Only admins may change the owner")
    update_character(db, id, payload)
    return {"success": True}


@router.delete("")
def remove_character(
    id: int = Query(...),
    db: Session = Depends(get_db),
    auth: AuthContext | None = Depends(current_auth),
) -> dict:
    ensure_character_access(db, auth, id)
    if not delete_character(db, id):
        raise NotFoundError("Character not found")
    return {"success": True}
