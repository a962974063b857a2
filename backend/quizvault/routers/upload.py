"""
Upload router, the single entry point for definitions and submissions.

POST {BASE_URL}/upload
  1. Streams the raw body, bounded by MAX_BODY_BYTES (413 beyond it).
  2. Parses strict JSON (400 on failure, including NaN / Infinity and
     nesting too deep to decode).
  3. Hands the document to the ingestion classifier.
  4. Maps the outcome to a status code with a short plain-text body.

Callers tell outcomes apart by status code only:
  200  definition saved / submission saved / submission already saved
  400  malformed envelope or missing project name
  412  unknown project (upload its definition, then retry)
  500  storage fault
"""

import json
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession

from quizvault.core.database import get_db_session
from quizvault.services.errors import (
    MalformedInputError,
    MissingProjectNameError,
    StorageFaultError,
    UnknownProjectError,
)
from quizvault.services.ingestion import IngestOutcome, ingest_document
from quizvault.services.store import DocumentStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Ingestion"])

_OUTCOME_MESSAGES: dict[IngestOutcome, str] = {
    IngestOutcome.DEFINITION_STORED: "Definition Saved",
    IngestOutcome.SUBMISSION_STORED: "OK",
    IngestOutcome.SUBMISSION_DUPLICATE: "Already Saved",
}


async def get_store(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> DocumentStore:
    """One DocumentStore per request, bound to the request's session."""
    return DocumentStore(session)


# Type alias for cleaner signatures
Store = Annotated[DocumentStore, Depends(get_store)]


def _text(status_code: int, message: str) -> PlainTextResponse:
    return PlainTextResponse(message, status_code=status_code)


async def _read_body(request: Request, max_bytes: int) -> bytes | None:
    """Read the body chunk by chunk; None once it grows past max_bytes.

    Chunked uploads carry no Content-Length, so the bound is enforced on
    the bytes actually received.
    """
    chunks: list[bytes] = []
    received = 0
    async for chunk in request.stream():
        received += len(chunk)
        if received > max_bytes:
            return None
        chunks.append(chunk)
    return b"".join(chunks)


def _reject_constant(name: str) -> None:
    """NaN / Infinity / -Infinity are not JSON."""
    raise ValueError(f"Invalid JSON constant {name}")


@router.post(
    "/upload",
    response_class=PlainTextResponse,
    summary="Upload a test definition or a submission",
    description=(
        "Accepts one JSON document with a single top-level key. Documents "
        "carrying `questions` or `logic` are stored as the project's "
        "definition; anything else is a submission for an already "
        "defined project."
    ),
    responses={
        400: {"description": "Malformed document or missing project name"},
        412: {"description": "Project definition not found"},
        413: {"description": "Body exceeds the size limit"},
        500: {"description": "Storage failure"},
    },
)
async def upload_document(request: Request, store: Store) -> PlainTextResponse:
    max_bytes: int = request.app.state.settings.MAX_BODY_BYTES

    # ── 1. Size bound ───────────────────────────────────────
    declared = request.headers.get("content-length")
    if declared is not None and declared.isdigit() and int(declared) > max_bytes:
        return _text(413, "Payload Too Large")

    body = await _read_body(request, max_bytes)
    if body is None:
        return _text(413, "Payload Too Large")
    if not body.strip():
        return _text(status.HTTP_400_BAD_REQUEST, "Empty JSON")

    # ── 2. Parse ────────────────────────────────────────────
    try:
        document = json.loads(body, parse_constant=_reject_constant)
    except (ValueError, RecursionError):
        return _text(status.HTTP_400_BAD_REQUEST, "Invalid JSON body")

    # ── 3. Classify + store ─────────────────────────────────
    try:
        outcome = await ingest_document(store, document)
    except MalformedInputError as exc:
        return _text(status.HTTP_400_BAD_REQUEST, str(exc))
    except MissingProjectNameError:
        return _text(status.HTTP_400_BAD_REQUEST, "Invalid JSON: 'project' field missing.")
    except UnknownProjectError:
        return _text(
            status.HTTP_412_PRECONDITION_FAILED,
            "Precondition Failed: Project definition not found",
        )
    except StorageFaultError:
        logger.exception("Failed to store uploaded document")
        return _text(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error")

    return _text(status.HTTP_200_OK, _OUTCOME_MESSAGES[outcome])
