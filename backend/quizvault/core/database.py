"""
Async database engine, session factory, and ORM base.

Rules enforced:
  • Every DB call goes through AsyncSession.
  • The engine is built by the app lifespan and kept on app.state, so each
    app instance (and each test) owns its own storage.
  • Sessions are request-scoped via FastAPI's Depends(get_db_session).
  • The declarative Base is shared across all models so Alembic can
    auto-detect schema changes from a single metadata object.
"""

import logging
from collections.abc import AsyncGenerator
from pathlib import Path

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

logger = logging.getLogger(__name__)


# ── ORM Base ────────────────────────────────────────────────
class Base(DeclarativeBase):
    """Shared declarative base for all SQLAlchemy models."""


# ── Engine ──────────────────────────────────────────────────
def build_engine(database_url: str, *, echo: bool = False) -> AsyncEngine:
    """
    Create the async engine.

    pool_pre_ping: drop stale connections before reuse
    echo: SQL logging, debug mode only

    SQLite connections get foreign keys and WAL switched on at connect
    time; both are per-connection settings in SQLite.
    """
    engine = create_async_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,
    )

    if engine.dialect.name == "sqlite":

        @event.listens_for(engine.sync_engine, "connect")
        def _set_sqlite_pragmas(dbapi_connection, _connection_record) -> None:  # type: ignore[no-untyped-def]
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

    return engine


# ── Session factory ─────────────────────────────────────────
def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,  # avoid lazy-load issues after commit
    )


# ── Bootstrap ───────────────────────────────────────────────
def ensure_storage_dir(database_url: str) -> Path | None:
    """
    Create the parent directory of a file-backed SQLite database.

    Returns the directory, or None when the URL is not a SQLite file.
    An OSError is logged and swallowed: in the container the directory is
    a mounted volume and may not be writable by the app user.
    """
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite" or url.database in (None, "", ":memory:"):
        return None

    directory = Path(url.database).parent
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError:
        logger.warning(
            "Could not verify/create DB directory %s. "
            "Assuming it exists via a mounted volume.",
            directory,
        )
    return directory


async def init_models(engine: AsyncEngine) -> None:
    """
    Create the definitions and submissions tables if they are missing.

    create_all checks for each table first, so repeated startups never
    touch existing data.
    """
    # Import models so Base.metadata is fully populated
    import quizvault.models.definition  # noqa: F401
    import quizvault.models.submission  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# ── Dependency ──────────────────────────────────────────────
async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    Yield a scoped async session for one request.

    The session is committed by the caller (store);
    this generator only guarantees cleanup on exit.
    """
    session_factory: async_sessionmaker[AsyncSession] = request.app.state.session_factory
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
