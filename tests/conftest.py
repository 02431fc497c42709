import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from db import build_engine, get_db
from models import Base, User
from sheet.accounts import hash_password


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    monkeypatch.setenv("BCRYPT_ROUNDS", "4")


@pytest.fixture
def engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def create_user(session_factory):
    def _create(username: str, password: str = "secret", role: str = "user") -> int:
        with session_factory() as session:
            user = User(username=username, password_hash=hash_password(password), role=role)
            session.add(user)
            session.commit()
            return user.id

    return _create


@pytest.fixture
def login(client):
    def _login(username: str, password: str = "secret") -> dict:
        response = client.post(
            "/auth",
            params={"action": "login"},
            json={"username": username, "password": password},
        )
        assert response.status_code == 200, response.text
        return response.json()["user"]

    return _login
