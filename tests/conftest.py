"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "secret-key")
os.environ.setdefault("REFRESH_SECRET_KEY", "refresh-secret-key")
os.environ.setdefault("REFRESH_TOKEN_ENCRYPTION_KEY", "refresh-encryption-key")
os.environ.setdefault("ENVIRONMENT", "test")

# Ensure the app package is importable when tests run from the repo root.
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.append(str(BACKEND_ROOT))

from app.db.base_class import Base
from app.models.course.course_model import Course
from app.models.course.enrollment_model import Enrollment
from app.models.course.lesson_model import Lesson
from app.models.progress.lesson_progress_model import LessonProgress
from app.models.user.session_model import UserSession
from app.models.user.user_model import User


TABLES = [
    User.__table__,
    UserSession.__table__,
    Course.__table__,
    Lesson.__table__,
    Enrollment.__table__,
    LessonProgress.__table__,
]


@pytest.fixture()
def engine():
    # A single shared connection keeps the in-memory database alive across
    # sessions and threads (TestClient runs sync endpoints in a worker thread).
    engine = create_engine(
        "sqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine, tables=TABLES)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine, tables=TABLES)
        engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, future=True, autoflush=False)


@pytest.fixture()
def db_session(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def write_counter(engine):
    """Record every INSERT/UPDATE/DELETE statement issued on ``engine``."""

    statements: list[str] = []

    def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        if statement.lstrip().split(" ", 1)[0].upper() in {"INSERT", "UPDATE", "DELETE"}:
            statements.append(statement)

    event.listen(engine, "before_cursor_execute", _before_cursor_execute)
    try:
        yield statements
    finally:
        event.remove(engine, "before_cursor_execute", _before_cursor_execute)


@pytest.fixture()
def client(session_factory):
    """HTTP client whose requests run against the test database."""

    from fastapi.testclient import TestClient

    from app.api.v1.dependencies import get_db
    from app.main import app

    def _override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
