"""Tests for DocumentStore against a real SQLite file."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import definition_doc, submission_doc
from quizvault.core.config import Settings
from quizvault.core.database import build_engine, build_session_factory, init_models
from quizvault.models.definition import Definition
from quizvault.models.submission import Submission
from quizvault.services.errors import DuplicateSubmissionError, StorageFaultError
from quizvault.services.store import DocumentStore


async def _count(session: AsyncSession, model: type[Definition] | type[Submission]) -> int:
    result = await session.execute(select(func.count()).select_from(model))
    return result.scalar_one()


class TestDefinitions:
    @pytest.mark.asyncio
    async def test_upsert_then_exists(self, store: DocumentStore) -> None:
        assert await store.definition_exists("Proj") is False

        await store.upsert_definition("Proj", definition_doc("Proj"))

        assert await store.definition_exists("Proj") is True

    @pytest.mark.asyncio
    async def test_exists_is_case_sensitive(self, store: DocumentStore) -> None:
        await store.upsert_definition("Proj", definition_doc("Proj"))

        assert await store.definition_exists("proj") is False

    @pytest.mark.asyncio
    async def test_upsert_replaces_payload(
        self, store: DocumentStore, session: AsyncSession
    ) -> None:
        first = definition_doc("Proj", version=1)
        second = {"Proj-v2": {"project": "Proj", "logic": {"score": "max"}}}

        await store.upsert_definition("Proj", first)
        await store.upsert_definition("Proj", second)

        assert await _count(session, Definition) == 1
        row = await session.get(Definition, "Proj", populate_existing=True)
        # Replaced wholesale, no merge of the first payload's keys
        assert row.payload == second

    @pytest.mark.asyncio
    async def test_upsert_same_document_twice(
        self, store: DocumentStore, session: AsyncSession
    ) -> None:
        document = definition_doc("Proj")

        await store.upsert_definition("Proj", document)
        await store.upsert_definition("Proj", document)

        assert await _count(session, Definition) == 1


class TestSubmissions:
    @pytest.mark.asyncio
    async def test_insert_sets_server_fields(
        self, store: DocumentStore, session: AsyncSession
    ) -> None:
        await store.upsert_definition("Proj", definition_doc("Proj"))
        document = submission_doc("Sub-1", "Proj")

        await store.insert_submission("Sub-1", "Proj", document)

        row = await session.get(Submission, "Sub-1")
        assert row.project_name == "Proj"
        assert row.payload == document
        assert row.timestamp is not None

    @pytest.mark.asyncio
    async def test_duplicate_id_raises_and_keeps_first(
        self, store: DocumentStore, session: AsyncSession
    ) -> None:
        await store.upsert_definition("Proj", definition_doc("Proj"))
        original = submission_doc("Sub-1", "Proj", attempt=1)
        await store.insert_submission("Sub-1", "Proj", original)

        with pytest.raises(DuplicateSubmissionError) as exc_info:
            await store.insert_submission("Sub-1", "Proj", submission_doc("Sub-1", "Proj", attempt=2))

        assert exc_info.value.submission_id == "Sub-1"
        assert await _count(session, Submission) == 1
        row = await session.get(Submission, "Sub-1", populate_existing=True)
        assert row.payload == original

    @pytest.mark.asyncio
    async def test_concurrent_duplicates_have_one_winner(self, settings: Settings) -> None:
        Path(settings.DB_PATH).parent.mkdir(parents=True, exist_ok=True)
        engine = build_engine(settings.database_url)
        await init_models(engine)
        factory = build_session_factory(engine)

        async with factory() as setup_session:
            await DocumentStore(setup_session).upsert_definition("Proj", definition_doc("Proj"))

        async def attempt(n: int) -> str:
            async with factory() as own_session:
                try:
                    await DocumentStore(own_session).insert_submission(
                        "Sub-1", "Proj", submission_doc("Sub-1", "Proj", attempt=n)
                    )
                except DuplicateSubmissionError:
                    return "duplicate"
                return "stored"

        results = await asyncio.gather(*(attempt(n) for n in range(10)))

        async with factory() as check_session:
            assert await _count(check_session, Submission) == 1
        await engine.dispose()

        assert results.count("stored") == 1
        assert results.count("duplicate") == 9

    @pytest.mark.asyncio
    async def test_foreign_key_enforced(self, store: DocumentStore, session: AsyncSession) -> None:
        with pytest.raises(StorageFaultError):
            await store.insert_submission("Sub-9", "Ghost", submission_doc("Sub-9", "Ghost"))

        assert await _count(session, Submission) == 0

    @pytest.mark.asyncio
    async def test_session_usable_after_fault(self, store: DocumentStore) -> None:
        with pytest.raises(StorageFaultError):
            await store.insert_submission("Sub-9", "Ghost", submission_doc("Sub-9", "Ghost"))

        await store.upsert_definition("Ghost", definition_doc("Ghost"))
        await store.insert_submission("Sub-9", "Ghost", submission_doc("Sub-9", "Ghost"))

        assert await store.definition_exists("Ghost") is True


class TestInitialisation:
    @pytest.mark.asyncio
    async def test_missing_tables_surface_as_storage_fault(self, settings: Settings) -> None:
        Path(settings.DB_PATH).parent.mkdir(parents=True, exist_ok=True)
        engine = build_engine(settings.database_url)

        async with build_session_factory(engine)() as session:
            with pytest.raises(StorageFaultError):
                await DocumentStore(session).definition_exists("Proj")

        await engine.dispose()

    @pytest.mark.asyncio
    async def test_init_is_idempotent_and_keeps_data(self, settings: Settings) -> None:
        Path(settings.DB_PATH).parent.mkdir(parents=True, exist_ok=True)
        engine = build_engine(settings.database_url)
        await init_models(engine)
        factory = build_session_factory(engine)

        async with factory() as session:
            store = DocumentStore(session)
            await store.upsert_definition("Proj", definition_doc("Proj"))
            await store.insert_submission("Sub-1", "Proj", submission_doc("Sub-1"))

        await init_models(engine)
        await engine.dispose()

        # Fresh engine, as after a process restart
        engine = build_engine(settings.database_url)
        await init_models(engine)
        async with build_session_factory(engine)() as session:
            assert await DocumentStore(session).definition_exists("Proj") is True
            assert await _count(session, Submission) == 1
        await engine.dispose()
