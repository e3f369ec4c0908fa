import os
import tempfile

# Must be set before catfe_tv.db / catfe_tv.services.storage are imported.
os.environ["CATFE_DATABASE_URL"] = "sqlite://"
os.environ.setdefault("CATFE_STORAGE_DIR", tempfile.mkdtemp(prefix="catfe-storage-"))
os.environ["CATFE_ADMIN_API_KEY"] = ""

import pytest
from fastapi.testclient import TestClient

from catfe_tv import security
from catfe_tv.db import Base, SessionLocal, engine
from catfe_tv.main import app
from catfe_tv.services.polls import rotation

ADMIN_KEY = "test-admin-key"


@pytest.fixture(autouse=True)
def clean_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    rotation.reset()
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    # No context manager: keeps the reminder watcher from starting.
    return TestClient(app)


@pytest.fixture
def admin_key(monkeypatch):
    monkeypatch.setattr(security, "ADMIN_API_KEY", ADMIN_KEY)
    return ADMIN_KEY


@pytest.fixture
def admin_headers(admin_key):
    return {"X-Admin-Key": admin_key}
