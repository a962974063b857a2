"""
Ingestion classifier. Decides what an uploaded document is and stores it.

Envelope: every upload is a JSON object with exactly one top-level key.

    {"Sleep_Test":            {"project": "Sleep", "questions": [...]}}   definition
    {"Sleep_Test_23_F-9f1c":  {"project": "Sleep", "answers":   [...]}}   submission

For a submission the key is its unique id; for a definition it is just a
wrapper name. The inner object is the *content*.

Classification is a structural check on a handful of fields, not schema
validation. Anything else inside the document is stored untouched.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any

from quizvault.services.errors import (
    DuplicateSubmissionError,
    MalformedInputError,
    MissingProjectNameError,
    UnknownProjectError,
)
from quizvault.services.store import DocumentStore

logger = logging.getLogger(__name__)

# Content fields that mark a document as a test definition
DEFINITION_FIELDS = ("questions", "logic")


class DocumentKind(str, enum.Enum):
    DEFINITION = "definition"
    SUBMISSION = "submission"


class IngestOutcome(str, enum.Enum):
    """Successful results of one ingestion. Failures are exceptions."""

    DEFINITION_STORED = "definition_stored"
    SUBMISSION_STORED = "submission_stored"
    SUBMISSION_DUPLICATE = "submission_duplicate"


@dataclass(frozen=True, slots=True)
class ClassifiedDocument:
    """An upload after the envelope and classification checks.

    Attributes:
        document_id:  The single top-level key.
        project_name: From content.project or content.quiz.project.
        kind:         Definition or submission.
        document:     The whole original upload, stored verbatim.
    """

    document_id: str
    project_name: str
    kind: DocumentKind
    document: dict[str, Any]


def _is_truthy(value: Any) -> bool:
    """JSON truthiness: objects and arrays count even when empty."""
    if isinstance(value, (dict, list)):
        return True
    return bool(value)


def _extract_project_name(content: Any) -> str:
    if not isinstance(content, dict):
        raise MissingProjectNameError("Document content is not an object")

    project = content.get("project")
    if not _is_truthy(project):
        quiz = content.get("quiz")
        project = quiz.get("project") if isinstance(quiz, dict) else None

    if not isinstance(project, str) or not project:
        raise MissingProjectNameError("Neither content.project nor content.quiz.project is set")
    return project


def classify_document(document: Any) -> ClassifiedDocument:
    """
    Check the envelope, find the project name, and decide the document kind.

    Pure function, no storage access.

    Raises:
        MalformedInputError:     not an object, empty, more than one
                                 top-level key, or an empty key.
        MissingProjectNameError: no usable project name in the content.
    """
    if not isinstance(document, dict):
        raise MalformedInputError("Document must be a JSON object")
    if not document:
        raise MalformedInputError("Empty JSON")
    if len(document) != 1:
        raise MalformedInputError("Document must have exactly one top-level key")

    document_id, content = next(iter(document.items()))
    if not document_id:
        raise MalformedInputError("Top-level key must not be empty")

    project_name = _extract_project_name(content)

    if any(_is_truthy(content.get(field)) for field in DEFINITION_FIELDS):
        kind = DocumentKind.DEFINITION
    else:
        kind = DocumentKind.SUBMISSION

    return ClassifiedDocument(
        document_id=document_id,
        project_name=project_name,
        kind=kind,
        document=document,
    )


async def ingest_document(store: DocumentStore, document: Any) -> IngestOutcome:
    """
    Classify one uploaded document and apply at most one store mutation.

    Definitions are stored unconditionally, even for a project seen for
    the first time. Submissions require a stored definition for their
    project; a repeated submission id is reported as a duplicate, not
    an error.

    Raises:
        MalformedInputError, MissingProjectNameError: classification failed.
        UnknownProjectError: submission for a project with no definition.
        StorageFaultError:   unexpected persistence failure.
    """
    classified = classify_document(document)
    project_name = classified.project_name

    # ── Definition path ─────────────────────────────────────
    if classified.kind is DocumentKind.DEFINITION:
        await store.upsert_definition(project_name, classified.document)
        logger.info("Definition saved for project %r", project_name)
        return IngestOutcome.DEFINITION_STORED

    # ── Submission path ─────────────────────────────────────
    if not await store.definition_exists(project_name):
        logger.info("Unknown project %r, requesting definition", project_name)
        raise UnknownProjectError(project_name)

    try:
        await store.insert_submission(
            classified.document_id,
            project_name,
            classified.document,
        )
    except DuplicateSubmissionError:
        logger.info("Duplicate submission ignored: %r", classified.document_id)
        return IngestOutcome.SUBMISSION_DUPLICATE

    logger.info("Submission saved: %r", classified.document_id)
    return IngestOutcome.SUBMISSION_STORED
