from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from db import models  # noqa: F401
from db.engine import Base
from services.app_state import load_app_state
from services.repositories import Store

NOW = datetime(2026, 3, 15, 12, 0)


@pytest.fixture()
def session():
    engine = create_engine("sqlite:///:memory:")
    TestingSessionLocal = sessionmaker(bind=engine)
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    yield db
    db.close()


@pytest.fixture()
def store(session):
    return Store(session)


@pytest.fixture()
def state(store):
    return load_app_state(store, "user-1")


@pytest.fixture()
def now():
    return NOW
