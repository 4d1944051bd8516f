import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from chance.database import Base, get_db
from chance.main import app
from chance.models.user import User
from chance.services import storage


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
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
def deleted_media(monkeypatch):
    """Record storage deletions instead of calling UploadThing."""
    calls = []

    def fake_delete(url):
        calls.append(url)
        return True

    monkeypatch.setattr(storage, "delete_media", fake_delete)
    return calls


class Account:
    def __init__(self, data):
        self.id = data["user"]["id"]
        self.username = data["user"]["username"]
        self.token = data["access_token"]
        self.headers = {"Authorization": f"Bearer {self.token}"}


@pytest.fixture
def signup(client):
    counter = {"n": 0}

    def _signup(first_name="Ada", last_name="Lovelace", email=None, phone="0812345678", password="password123"):
        counter["n"] += 1
        response = client.post("/api/user/signup", json={
            "email": email or f"user{counter['n']}@example.com",
            "first_name": first_name,
            "last_name": last_name,
            "whatsapp_number": phone,
            "password": password,
        })
        assert response.status_code == 201, response.text
        return Account(response.json())

    return _signup


@pytest.fixture
def alice(signup):
    return signup("Alice", "Smith", email="alice@example.com", phone="0811110001")


@pytest.fixture
def bob(signup):
    return signup("Bob", "Jones", email="bob@example.com", phone="0811110002")


@pytest.fixture
def admin(signup, db):
    account = signup("Root", "Admin", email="admin@example.com", phone="0811110099")
    db.query(User).filter(User.id == account.id).update({User.role: "admin"})
    db.commit()
    return account


def project_payload(**overrides):
    payload = {
        "title": "Clean the river",
        "description": "Weekend cleanup of the riverbank",
        "category": "environment",
        "impact": "Cleaner water for the village",
        "team_size": 5,
        "effort": "medium",
        "people_influenced": 200,
        "required_tools": ["gloves", "bags"],
        "action_plan": ["plan", "collect", "recycle"],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_project(client):
    def _make(account, **overrides):
        response = client.post("/api/project/", json=project_payload(**overrides), headers=account.headers)
        assert response.status_code == 201, response.text
        return response.json()

    return _make


@pytest.fixture
def make_heartbeat(client):
    def _make(account, content="Planted ten trees today", **extra):
        response = client.post("/api/heartbeat/", json={"content": content, **extra}, headers=account.headers)
        assert response.status_code == 201, response.text
        return response.json()

    return _make


@pytest.fixture
def payload():
    return project_payload
