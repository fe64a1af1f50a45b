import os
import tempfile

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "testing"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="peerlearn-uploads-")
os.environ.pop("GROQ_API_KEY", None)
os.environ.pop("GROQ_API_URL", None)

import pytest
from fastapi.testclient import TestClient
from peerlearn.main import app
from peerlearn.core.database import engine, SessionLocal
from peerlearn.models.orm import Base

@pytest.fixture(autouse=True)
def fresh_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield

@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c

@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()

@pytest.fixture
def register(client):
    """register("ana") -> (user dict, auth headers)"""
    def _register(name, role="learner", password="secret123"):
        r = client.post("/api/auth/register", json={"name": name.title(), "email": f"{name}@example.com",
                                                     "password": password, "role": role})
        assert r.status_code == 201, r.text
        body = r.json()
        return body["user"], {"Authorization": f"Bearer {body['access_token']}"}
    return _register

@pytest.fixture
def make_hub(client):
    def _make_hub(headers, name="Python Learners", privacy_type="public", **extra):
        payload = {"name": name, "description": "Learning together", "category": "Programming",
                   "privacy_type": privacy_type, **extra}
        r = client.post("/api/hubs", json=payload, headers=headers)
        assert r.status_code == 201, r.text
        return r.json()
    return _make_hub
