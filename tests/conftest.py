"""
Shared fixtures: an in-memory Motor database per test and a TestClient
authenticated as a fixed user.
"""

import os
import uuid

import pytest

os.environ.setdefault("MONGO_URL", "mongodb://localhost:27017")
os.environ.setdefault("DB_NAME", "compliance_test")

from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from database.mongodb import get_database
from models.user import User
from services.auth_deps import get_current_user
from services.obligation_store import ObligationStore

TEST_USER_ID = "user-1"
TEST_AIRCRAFT_ID = "C-GABC"


@pytest.fixture
def db():
    client = AsyncMongoMockClient()
    return client[f"compliance_{uuid.uuid4().hex}"]


@pytest.fixture
def store(db):
    return ObligationStore(db)


@pytest.fixture
def api_client(db):
    from server import app

    async def override_db():
        return db

    async def override_user():
        return User(id=TEST_USER_ID, email="pilot@example.com", name="Test Pilot")

    app.dependency_overrides[get_database] = override_db
    app.dependency_overrides[get_current_user] = override_user
    yield TestClient(app)
    app.dependency_overrides.clear()
