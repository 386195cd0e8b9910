# tests/conftest.py
import os

# 앱 import 전에 기본 DB 를 메모리로 돌려둔다 (로컬 파일 생성 방지)
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from marketplace.config import time_policy as TP
from marketplace.database import Base, make_engine, get_db
from marketplace.deps import get_gateway
from marketplace.main import app
from marketplace.models import User
from marketplace.pg.client import DummyPaymentGateway
from marketplace.security import create_access_token

# 기준 시각: 2025-01-06 00:00 UTC
T0 = datetime(2025, 1, 6, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    """현재시각 고정. clock.set(dt) 로 이동."""

    class _Clock:
        def __init__(self):
            self.now = T0
            TP.set_now_utc_for_testing(T0)

        def set(self, dt):
            self.now = dt
            TP.set_now_utc_for_testing(dt)

    c = _Clock()
    yield c
    TP.set_now_utc_for_testing(None)


@pytest.fixture
def engine():
    eng = make_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db(session_factory, clock):
    s = session_factory()
    s.add_all([
        User(id="alice", name="Alice", nickname="alice", picture="https://img.invalid/alice.png"),
        User(id="bob", name="Bob", nickname="bob", picture=None),
        User(id="carol", name="Carol", nickname="carol", picture=None),
    ])
    s.commit()
    yield s
    s.close()


@pytest.fixture
def gateway():
    return DummyPaymentGateway()


@pytest.fixture
def client(db, session_factory, gateway):
    def _get_db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_gateway] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth(user_id: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': user_id})}"}
