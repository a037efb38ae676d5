"""Shared fixtures: a seeded phonebook and an HTTP client bound to it.

Every test starts from the same users and persons and the store is cleared
afterwards, so no state leaks between tests. The database fixture runs each
test against the in-memory store and against motor on mongomock; set
TEST_MONGODB_URL to also run against a real mongod.
"""

import os

os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ.setdefault("LOG_FILE", "")

import pytest
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient

from main import app
from services.auth_service import auth_service
from services.database_service import DatabaseService, get_database_service

import helpers

TEST_DB_NAME = "phonebook_test"


@pytest.fixture(params=["memory", "mongomock", "mongod"])
async def database(request):
    if request.param == "memory":
        db = DatabaseService(in_memory_fallback=True)
    elif request.param == "mongomock":
        db = DatabaseService(db_name=TEST_DB_NAME)
        await db.attach(AsyncMongoMockClient()[TEST_DB_NAME])
    else:
        url = os.environ.get("TEST_MONGODB_URL")
        if not url:
            pytest.skip("TEST_MONGODB_URL is not set")
        db = DatabaseService(url, TEST_DB_NAME)
        await db.connect()

    await helpers.seed(db)
    yield db
    await db.clear()
    await db.close()


@pytest.fixture
async def client(database):
    app.dependency_overrides[get_database_service] = lambda: database
    original_db = auth_service.db
    auth_service.db = database

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
    auth_service.db = original_db


@pytest.fixture
async def user(database):
    return await database.get_user_by_username(helpers.INITIAL_USERS[0]["username"])


@pytest.fixture
def token(user):
    return helpers.valid_token(user)
