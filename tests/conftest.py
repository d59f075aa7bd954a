# tests/conftest.py
import os

# settings are read at import time; keep the module-level engine off Postgres
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("NOTIFY_URL", "")

import pytest
from fastapi.testclient import TestClient

from estate.db import get_db, make_engine, make_sessionmaker
from estate.main import app
from estate.models.base import Base
from estate.services import listings as svc
from estate.services.users import ensure_user_from_identity
from estate.utils.security import create_jwt


@pytest.fixture
def engine(tmp_path):
    # a file database so several sessions / threads can share it
    eng = make_engine(f"sqlite:///{tmp_path / 'estate.db'}")
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_sessionmaker(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_user(db):
    def _make(uid, role="user", email=None):
        u = ensure_user_from_identity(db, {"id": uid, "role": role, "email": email})
        db.commit()  # release the sqlite write lock for other sessions
        return u
    return _make


@pytest.fixture
def make_listing(db):
    def _make(owner_id, role="user", high_value=False, **fields):
        payload = {"name": "Flat", "regular_price": 1000, "currency": "NPR", **fields}
        listing, _ = svc.create_listing(db, owner_id, role, payload, high_value=high_value)
        db.commit()
        return listing
    return _make


@pytest.fixture
def client(session_factory):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth():
    def _headers(uid, role="user", **claims):
        return {"Authorization": f"Bearer {create_jwt({'id': uid, 'role': role, **claims})}"}
    return _headers
