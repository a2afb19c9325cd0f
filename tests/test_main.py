import threading

import pytest
from sqlalchemy import inspect

from app import main
from app.core.permissions import Role
from app.models.user.user_model import User


def test_default_admin_is_created_once(monkeypatch, session_factory, db_session):
    monkeypatch.setattr(main, "SessionLocal", session_factory)
    monkeypatch.setattr(main.settings, "DEFAULT_ADMIN_EMAIL", "Admin@Example.com")
    monkeypatch.setattr(main.settings, "DEFAULT_ADMIN_PASSWORD", "admin-pass")

    main.ensure_default_admin()
    main.ensure_default_admin()

    admins = db_session.query(User).all()
    assert [(user.email, user.role) for user in admins] == [("admin@example.com", Role.ADMIN)]


def test_default_admin_is_skipped_without_credentials(monkeypatch, session_factory, db_session):
    monkeypatch.setattr(main, "SessionLocal", session_factory)
    monkeypatch.setattr(main.settings, "DEFAULT_ADMIN_EMAIL", None)

    main.ensure_default_admin()

    assert db_session.query(User).count() == 0


@pytest.mark.asyncio
async def test_startup_creates_tables(monkeypatch):
    monkeypatch.setattr(main.settings, "DEFAULT_ADMIN_EMAIL", None)

    await main.startup()

    async with main.async_engine.connect() as conn:
        tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
    assert {"users", "user_sessions", "courses", "lessons", "enrollments", "lesson_progress"} <= set(tables)


@pytest.mark.asyncio
async def test_startup_seeds_admin_off_the_event_loop(monkeypatch):
    seeded_in = []
    monkeypatch.setattr(main, "ensure_default_admin", lambda: seeded_in.append(threading.get_ident()))

    await main.startup()

    assert len(seeded_in) == 1
    assert seeded_in[0] != threading.get_ident()
