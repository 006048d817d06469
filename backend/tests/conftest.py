"""
Configuration partagée pour tous les tests.
- client     : API avec la dépendance get_db remplacée par un mock (aucune connexion PostgreSQL)
- db_session : vraie session SQLAlchemy sur SQLite en mémoire, pour les tests transactionnels
"""

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from unittest.mock import MagicMock

import halaqa.models  # noqa: F401
from halaqa.database import Base, get_db
from halaqa.main import app

NOW = datetime(2026, 3, 1, 16, 0, tzinfo=timezone.utc)


@pytest.fixture
def client():
    """Client HTTP de test avec la BDD mockée."""
    mock_db = MagicMock()
    app.dependency_overrides[get_db] = lambda: mock_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def db_session():
    """Session SQLite en mémoire, schéma complet créé pour chaque test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def now():
    return NOW
