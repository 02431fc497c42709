from __future__ import annotations

import bcrypt
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import settings
from db import transaction
from errors import AuthenticationError, BadRequestError, ConflictError
from logs import get_logger
from models import USER_ROLES, User

logger = get_logger(__name__)


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds())
    return bcrypt.hashpw(password.encode(), salt).decode()


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        # malformed hash in the users table
        return False


def user_payload(user: User) -> dict:
    return {"id": user.id, "username": user.username, "role": user.role}


def ensure_default_admin(db: Session) -> bool:
    """Create the bootstrap admin when the users table is empty."""
    if db.scalar(select(func.count(User.id))):
        return False
    username, password = settings.default_admin_credentials()
    with transaction(db):
        db.add(User(username=username, password_hash=hash_password(password), role="admin"))
    logger.warning("auth.default_admin.created", username=username)
    return True


def authenticate(db: Session, username: str, password: str) -> User:
    user = db.scalars(select(User).where(User.username == username)).first()
    if user is None or not verify_password(password, user.password_hash):
        logger.info("auth.login.fail", username=username)
        raise AuthenticationError("Invalid username or password")
    logger.info("auth.login.success", user_id=user.id, username=username)
    return user


def register_user(db: Session, username: str, password: str, role: str | None = None) -> User:
    username = (username or "").strip()
    if not username or not password:
        raise BadRequestError("Username and password are required")
    if role not in USER_ROLES:
        role = "user"
    if db.scalars(select(User).where(User.username == username)).first() is not None:
        raise ConflictError("Username already exists")
    user = User(username=username, password_hash=hash_password(password), role=role)
    try:
        with transaction(db):
            db.add(user)
    except IntegrityError as exc:
        raise ConflictError("Username already exists") from exc
    logger.info("auth.registered", user_id=user.id, username=username, role=role)
    return user
