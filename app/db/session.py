"""Database engines and session factory.

Two engines are built from ``DATABASE_URL``: an async one (used at startup to
create the tables) and a synchronous one behind ``SessionLocal`` which serves
the request handlers. During local development an unreachable database is
replaced by a SQLite file so the API can still boot.
"""

from __future__ import annotations

import logging
import os
import ssl
import time
from time import perf_counter
from typing import Any, Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import URL, make_url
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import settings

logger = logging.getLogger(__name__)

SQLITE_FALLBACK_URL = "sqlite+aiosqlite:///./coursehub_local.db"

_SSL_VERIFYING_MODES = {"verify-ca", "verify-full"}
_SSL_MODES = {"allow", "prefer", "require"} | _SSL_VERIFYING_MODES


def _create_ssl_context(
    mode: str,
    root_cert: str | None,
    client_cert: str | None,
    client_key: str | None,
) -> ssl.SSLContext:
    """Build an :class:`ssl.SSLContext` following libpq ``sslmode`` semantics."""

    context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH)
    if root_cert:
        context.load_verify_locations(cafile=root_cert)
    if client_cert:
        context.load_cert_chain(certfile=client_cert, keyfile=client_key)

    if mode in _SSL_VERIFYING_MODES:
        context.check_hostname = mode == "verify-full"
    else:
        # allow/prefer/require only ask for encryption, not certificate checks.
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


def _prepare_asyncpg_connection(url: str) -> tuple[str, dict[str, object]]:
    """Move libpq ``ssl*`` query parameters into asyncpg ``connect_args``."""

    parsed_url = make_url(url)
    if not parsed_url.drivername.startswith("postgresql+asyncpg"):
        return url, {}

    query = dict(parsed_url.query)
    sslmode = query.pop("sslmode", None)
    certs = {
        "root_cert": query.pop("sslrootcert", None),
        "client_cert": query.pop("sslcert", None),
        "client_key": query.pop("sslkey", None),
    }

    connect_args: dict[str, object] = {}
    if isinstance(sslmode, str):
        mode = sslmode.lower()
        if mode == "disable":
            connect_args["ssl"] = False
        elif mode in _SSL_MODES:
            connect_args["ssl"] = _create_ssl_context(mode, **certs)
    elif certs["root_cert"] or certs["client_cert"]:
        # libpq turns TLS on as soon as certificate paths are provided.
        connect_args["ssl"] = _create_ssl_context("require", **certs)

    sanitized_url = parsed_url.set(query=query).render_as_string(hide_password=False)
    return sanitized_url, connect_args


def _derive_sync_connection_parameters(async_url: str) -> tuple[str, dict[str, Any]]:
    """Return the synchronous URL matching the async configuration."""

    parsed_url: URL = make_url(async_url)
    drivername = parsed_url.drivername
    connect_args: dict[str, Any] = {}

    if drivername.startswith("postgresql+"):
        parsed_url = parsed_url.set(drivername="postgresql+psycopg2")
    elif drivername == "sqlite+aiosqlite":
        parsed_url = parsed_url.set(drivername="sqlite")
        connect_args["check_same_thread"] = False

    return parsed_url.render_as_string(hide_password=False), connect_args


def _should_enable_sqlite_fallback() -> bool:
    if os.getenv("DISABLE_SQLITE_FALLBACK") == "1":
        return False
    return (settings.ENVIRONMENT or "").lower() in {"development", "local"}


# Populated by ``configure_database``.
async_engine: AsyncEngine
sync_engine: Engine
SessionLocal: sessionmaker


def _install_slow_query_logger(engine: Engine) -> None:
    """Warn when a statement exceeds ``SQLALCHEMY_SLOW_QUERY_THRESHOLD_MS``."""

    threshold_ms = max(settings.SQLALCHEMY_SLOW_QUERY_THRESHOLD_MS or 0, 0)
    if threshold_ms == 0:
        return

    def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        context._coursehub_query_start = perf_counter()

    def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        start = getattr(context, "_coursehub_query_start", None)
        if start is None:
            return

        elapsed_ms = (perf_counter() - start) * 1000.0
        if elapsed_ms < threshold_ms:
            return

        snippet = " ".join(str(statement).split())
        if len(snippet) > 200:
            snippet = snippet[:197] + "..."
        logger.warning("Slow SQL (%.1f ms) - %s", elapsed_ms, snippet)

    event.listen(engine, "before_cursor_execute", _before_cursor_execute)
    event.listen(engine, "after_cursor_execute", _after_cursor_execute)


def _verify_database_connection(engine: Engine) -> None:
    """Ping *engine*, retrying with exponential backoff on transient failures."""

    max_retries = max(settings.DATABASE_CONNECTION_MAX_RETRIES, 1)
    backoff = max(settings.DATABASE_CONNECTION_RETRY_BACKOFF_SECONDS, 0.1)
    if engine.dialect.name == "sqlite":
        max_retries = 1

    last_exc: Optional[Exception] = None
    for attempt in range(1, max_retries + 1):
        try:
            with engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            return
        except (OperationalError, OSError) as exc:
            last_exc = exc
            if attempt >= max_retries:
                break
            delay = min(30.0, backoff * (2 ** (attempt - 1)))
            logger.warning(
                "Database connection failed (attempt %s/%s): %s. Retrying in %.1f s.",
                attempt,
                max_retries,
                exc,
                delay,
            )
            time.sleep(delay)

    if last_exc is not None:
        raise last_exc


def configure_database(database_url: str | None = None, *, allow_fallback: bool = True) -> None:
    """Initialise the engines and the session factory.

    ``database_url`` defaults to the configured ``DATABASE_URL``. When the
    connection check fails in a development environment the SQLite fallback
    is used instead.
    """

    global async_engine, sync_engine, SessionLocal

    target_url = str(database_url or settings.DATABASE_URL)
    async_url, async_connect_args = _prepare_asyncpg_connection(target_url)
    logger.info("Configuring database: %s", make_url(async_url).render_as_string(hide_password=True))

    candidate_async_engine = create_async_engine(async_url, future=True, connect_args=async_connect_args)

    sync_url, sync_connect_args = _derive_sync_connection_parameters(async_url)
    candidate_sync_engine = create_engine(sync_url, pool_pre_ping=True, connect_args=sync_connect_args)

    _install_slow_query_logger(candidate_sync_engine)

    try:
        _verify_database_connection(candidate_sync_engine)
    except (OperationalError, OSError) as exc:
        if allow_fallback and _should_enable_sqlite_fallback():
            logger.warning("Database '%s' unreachable (%s). Falling back to SQLite.", async_url, exc)
            candidate_sync_engine.dispose()
            candidate_async_engine.sync_engine.dispose()
            configure_database(SQLITE_FALLBACK_URL, allow_fallback=False)
            return

        logger.error("Database connection failed: %s", exc)
        raise

    async_engine = candidate_async_engine
    sync_engine = candidate_sync_engine
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=sync_engine)


configure_database()


def get_db() -> Generator[Session, None, None]:
    """Provide one session per request.

    FastAPI caches dependencies for the duration of a request, so the route
    handler and ``get_current_user`` share this session and the ``User`` it
    returns stays attached while the handler runs.
    """

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
