# tests/conftest.py
import os

# Konfigurasi harus ada sebelum modul sarpras diimpor
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("MONGODB_URL", "mongodb://localhost:27017/sarpras_test")
os.environ.setdefault("DATABASE_NAME", "sarpras_test")
os.environ.setdefault("MONGODB_TRANSACTIONS", "false")
os.environ.setdefault("RATELIMIT_ENABLED", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("LOG_FILE_PATH", os.path.join("logs", "test_{time:YYYY-MM-DD}.log"))

import pytest
from mongomock_motor import AsyncMongoMockClient

from sarpras.core.workflow import RequestWorkflow
from sarpras.db.database import init_db
from sarpras.models.enum import UserRole

from factories import make_user


@pytest.fixture(autouse=True)
async def db():
    client = AsyncMongoMockClient()
    database = await init_db(client=client)
    yield database


@pytest.fixture
async def admin():
    return await make_user("admin", UserRole.ADMIN)


@pytest.fixture
async def headmaster():
    return await make_user("kepsek", UserRole.HEADMASTER)


@pytest.fixture
async def requester():
    return await make_user("guru", UserRole.USER)


@pytest.fixture
async def other_user():
    return await make_user("staf", UserRole.USER)


@pytest.fixture
def workflow() -> RequestWorkflow:
    return RequestWorkflow(use_transactions=False)
