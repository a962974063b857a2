"""
Document store: durable storage for definitions and submissions.

IDEMPOTENCY:
  • Definitions use INSERT … ON CONFLICT (project_name) DO UPDATE.
    Uploading the same definition twice leaves one row holding the
    latest payload.
  • Submissions use INSERT … ON CONFLICT (id) DO NOTHING. A zero
    rowcount means the id was already stored; the primary key decides
    the winner when two identical uploads race.

Every mutation commits on its own. The store never retries: any
SQLAlchemy error rolls the session back and surfaces as StorageFaultError.
"""

import logging
from typing import Any, NoReturn

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from quizvault.models.definition import Definition
from quizvault.models.submission import Submission
from quizvault.services.errors import DuplicateSubmissionError, StorageFaultError

logger = logging.getLogger(__name__)


class DocumentStore:
    """Definitions and submissions persisted through one AsyncSession.

    Built per request by the router dependency; tests build their own
    against a throwaway database.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # ── Definitions ─────────────────────────────────────────
    async def upsert_definition(self, project_name: str, payload: dict[str, Any]) -> None:
        """Insert or fully replace the definition for project_name."""
        stmt = self._insert(Definition).values(
            project_name=project_name,
            payload=payload,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["project_name"],
            set_={
                "payload": stmt.excluded.payload,
                "updated_at": func.now(),
            },
        )

        try:
            await self._session.execute(stmt)
            await self._session.commit()
        except SQLAlchemyError as exc:
            await self._fail(exc, "Failed to upsert definition %r", project_name)

    async def definition_exists(self, project_name: str) -> bool:
        """Referential precondition check for submissions."""
        stmt = (
            select(Definition.project_name)
            .where(Definition.project_name == project_name)
            .limit(1)
        )

        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as exc:
            await self._fail(exc, "Failed to look up definition %r", project_name)

        return result.scalar_one_or_none() is not None

    # ── Submissions ─────────────────────────────────────────
    async def insert_submission(
        self,
        submission_id: str,
        project_name: str,
        payload: dict[str, Any],
    ) -> None:
        """
        Insert a new submission row.

        Raises:
            DuplicateSubmissionError: submission_id is already stored.
                Expected and recoverable; the document is already durable.
            StorageFaultError: anything else the database rejects.
        """
        stmt = (
            self._insert(Submission)
            .values(
                id=submission_id,
                project_name=project_name,
                payload=payload,
            )
            .on_conflict_do_nothing(index_elements=["id"])
        )

        try:
            result = await self._session.execute(stmt)
            await self._session.commit()
        except SQLAlchemyError as exc:
            await self._fail(exc, "Failed to insert submission %r", submission_id)

        if result.rowcount == 0:
            raise DuplicateSubmissionError(submission_id)

    # ── Helpers ─────────────────────────────────────────────
    def _insert(self, model: type[Definition] | type[Submission]):  # type: ignore[no-untyped-def]
        """Dialect-specific INSERT supporting ON CONFLICT."""
        if self._session.get_bind().dialect.name == "postgresql":
            return pg_insert(model)
        return sqlite_insert(model)

    async def _fail(self, exc: SQLAlchemyError, message: str, key: str) -> NoReturn:
        await self._session.rollback()
        logger.error(message, key)
        raise StorageFaultError(str(exc)) from exc
