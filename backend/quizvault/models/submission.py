"""
SQLAlchemy model for the `submissions` table.

Each row is one user result, immutable once written.

Design notes:
  • id is the caller-supplied top-level key of the uploaded document.
    The primary key is what makes duplicate uploads resolve to one row.
  • project_name references definitions.project_name. The ingestion
    service checks it before inserting so a missing definition can be
    reported as 412 instead of a generic write error.
"""

import datetime
from typing import Any

from sqlalchemy import TIMESTAMP, ForeignKey, Index, Text
from sqlalchemy.sql import func
from sqlalchemy.orm import Mapped, mapped_column

from quizvault.core.database import Base
from quizvault.models.definition import JSONDocument


class Submission(Base):
    """One uploaded result for a registered project."""

    __tablename__ = "submissions"

    # ── Primary key ─────────────────────────────────────────
    id: Mapped[str] = mapped_column(Text, primary_key=True)

    # ── Owning project ──────────────────────────────────────
    project_name: Mapped[str] = mapped_column(
        Text,
        ForeignKey("definitions.project_name"),
        nullable=False,
    )

    # ── Timestamp (server-assigned) ─────────────────────────
    timestamp: Mapped[datetime.datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    payload: Mapped[dict[str, Any]] = mapped_column(JSONDocument, nullable=False)

    __table_args__ = (
        Index("ix_submissions_project_name", "project_name"),
    )

    def __repr__(self) -> str:
        return f"<Submission id={self.id!r} project={self.project_name!r}>"
