from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from errors import AuthenticationError, NotFoundError, PermissionDeniedError
from models import Character


@dataclass(frozen=True)
class AuthContext:
    """The logged-in user a request acts for."""

    user_id: int
    username: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def require_auth(auth: AuthContext | None) -> AuthContext:
    if auth is None:
        raise AuthenticationError("Not logged in")
    return auth


def require_admin(auth: AuthContext | None) -> AuthContext:
    auth = require_auth(auth)
    if not auth.is_admin:
        raise PermissionDeniedError("Admin role required")
    return auth


def ensure_character_access(
    db: Session, auth: AuthContext | None, character_id: int
) -> Character:
    """Return the character if ``auth`` may act on it.

    Checked in order: logged in (401), character exists (404), admin or
    owner (403). Characters without an owner are reachable by admins only.
    """
    auth = require_auth(auth)
    character = db.get(Character, character_id)
    if character is None:
        raise NotFoundError("Character not found")
    if auth.is_admin or character.user_id == auth.user_id:
        return character
    raise PermissionDeniedError("No permission for this character")
