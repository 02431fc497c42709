import pytest
from sqlalchemy import func, select

from errors import AuthenticationError, BadRequestError, ConflictError
from models import User
from sheet.accounts import (
    authenticate,
    ensure_default_admin,
    hash_password,
    register_user,
    verify_password,
)


def test_hash_and_verify_password() -> None:
    hashed = hash_password("hunter2")
    assert hashed != "hunter2"
    assert verify_password("hunter2", hashed)
    assert not verify_password("hunter3", hashed)
    assert not verify_password("hunter2", "not-a-bcrypt-hash")


def test_default_admin_only_when_table_empty(db, monkeypatch) -> None:
    monkeypatch.setenv("DEFAULT_ADMIN_PASSWORD", "letmein")

    assert ensure_default_admin(db) is True
    assert ensure_default_admin(db) is False

    admin = db.scalars(select(User)).one()
    assert (admin.username, admin.role) == ("admin", "admin")
    assert authenticate(db, "admin", "letmein").id == admin.id


def test_authenticate_rejects_bad_credentials(db, create_user) -> None:
    create_user("mira", "secret")

    with pytest.raises(AuthenticationError):
        authenticate(db, "mira", "wrong")
    with pytest.raises(AuthenticationError):
        authenticate(db, "nobody", "secret")


def test_register_user_normalizes_role(db) -> None:
    user = register_user(db, " tom ", "pw", "superuser")

    assert (user.username, user.role) == ("tom", "user")
    assert register_user(db, "boss", "pw", "admin").role == "admin"


def test_register_user_rejects_duplicates_and_blanks(db) -> None:
    register_user(db, "tom", "pw")

    with pytest.raises(ConflictError):
        register_user(db, "tom", "other")
    with pytest.raises(BadRequestError):
        register_user(db, "", "pw")
    with pytest.raises(BadRequestError):
        register_user(db, "ann", "")
    assert db.scalar(select(func.count(User.id))) == 1
