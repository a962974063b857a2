"""Shared test fixtures for Quiz Vault tests.

Every test gets its own SQLite file under tmp_path, so nothing leaks
between tests and the real /data volume is never touched.
"""

from __future__ import annotations

import json
import sqlite3
from collections.abc import AsyncIterator, Iterator
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession

from quizvault.core.config import Settings
from quizvault.core.database import build_engine, build_session_factory, init_models
from quizvault.main import create_app
from quizvault.services.store import DocumentStore


def definition_doc(project: str = "Proj", key: str | None = None, **extra: Any) -> dict[str, Any]:
    """A definition upload: content carries `questions`."""
    content = {"project": project, "questions": [{"id": "q1", "text": "Sleep well?"}]}
    content.update(extra)
    return {key or f"{project}-def": content}


def submission_doc(submission_id: str = "Sub-1", project: str = "Proj", **extra: Any) -> dict[str, Any]:
    """A submission upload: no `questions` / `logic` in content."""
    content = {"project": project, "answers": [{"id": "q1", "value": 3}]}
    content.update(extra)
    return {submission_id: content}


class StorageFile:
    """Reads the SQLite file directly, bypassing the app."""

    __test__ = False

    def __init__(self, path: Path) -> None:
        self.path = path

    def rows(self, query: str, *params: Any) -> list[tuple[Any, ...]]:
        conn = sqlite3.connect(self.path)
        try:
            return conn.execute(query, params).fetchall()
        finally:
            conn.close()

    def count(self, table: str) -> int:
        return self.rows(f"SELECT COUNT(*) FROM {table}")[0][0]

    def definition_payload(self, project_name: str) -> dict[str, Any] | None:
        rows = self.rows("SELECT payload FROM definitions WHERE project_name = ?", project_name)
        return json.loads(rows[0][0]) if rows else None

    def submission(self, submission_id: str) -> tuple[str, dict[str, Any]] | None:
        rows = self.rows(
            "SELECT project_name, payload FROM submissions WHERE id = ?", submission_id
        )
        if not rows:
            return None
        project_name, payload = rows[0]
        return project_name, json.loads(payload)


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "storage.db"


@pytest.fixture
def settings(tmp_path: Path, db_path: Path) -> Settings:
    return Settings(
        DB_PATH=str(db_path),
        DATABASE_URL="",
        BASE_URL="/",
        PUBLIC_DIR=str(tmp_path / "no-public"),
        CORS_ORIGINS=["*"],
    )


@pytest.fixture
def client(settings: Settings) -> Iterator[TestClient]:
    """TestClient with the lifespan running (tables created)."""
    with TestClient(create_app(settings)) as test_client:
        yield test_client


@pytest.fixture
def storage(db_path: Path) -> StorageFile:
    return StorageFile(db_path)


@pytest_asyncio.fixture
async def session(settings: Settings) -> AsyncIterator[AsyncSession]:
    """An AsyncSession on an initialised, empty database."""
    engine = build_engine(settings.database_url)
    Path(settings.DB_PATH).parent.mkdir(parents=True, exist_ok=True)
    await init_models(engine)

    async with build_session_factory(engine)() as db_session:
        yield db_session

    await engine.dispose()


@pytest.fixture
def store(session: AsyncSession) -> DocumentStore:
    return DocumentStore(session)
