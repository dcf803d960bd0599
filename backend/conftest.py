"""Shared fixtures: a throwaway in-memory database per test and an API client bound to it."""
import os
import sys

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

sys.path.insert(0, os.path.join(os.path.dirname(__file__)))

from medshop.api.deps import get_db  # noqa: E402
from medshop.db.base import Base  # noqa: E402
from medshop.db.session import enable_sqlite_foreign_keys  # noqa: E402
from medshop.main import app  # noqa: E402
import medshop.models  # noqa: E402,F401


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(eng)
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    # No `with`: the startup hook would create tables in the configured database.
    yield TestClient(app)
    app.dependency_overrides.clear()
