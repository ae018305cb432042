import os

os.environ.setdefault("USE_IN_MEMORY_STORE", "true")

import pytest
from fastapi.testclient import TestClient

from config import Settings
from database import InMemoryDocumentStore
from main import create_app

TEST_SECRET = "test-signing-secret-0123456789abcdef"


@pytest.fixture
def settings():
    return Settings(
        environment="test",
        jwt_secret=TEST_SECRET,
        use_in_memory_store=True,
        api_prefix="/api",
    )


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def app(settings, store):
    return create_app(settings, store)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def register(client):
    """Register a user and return its session data plus auth headers."""

    def _register(username="ada", email=None, password="s3cret-pass"):
        email = email or f"{username}@example.com"
        resp = client.post(
            "/api/users/register",
            json={"username": username, "email": email, "password": password},
        )
        assert resp.status_code == 201, resp.text
        data = resp.json()["data"]
        data["headers"] = {"Authorization": f"Bearer {data['token']}"}
        return data

    return _register


@pytest.fixture
def ada(register):
    return register("ada")


@pytest.fixture
def grace(register):
    return register("grace")
