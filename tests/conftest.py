"""Shared fixtures: a throwaway SQLite database per test."""

import os
import sys
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENABLE_MQTT_CONSUMER", "false")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from gatekeeper.database import create_tables


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'gatekeeper.db'}",
        connect_args={"check_same_thread": False},
    )
    create_tables(bind=engine)
    yield sessionmaker(bind=engine, autocommit=False, autoflush=False)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()
