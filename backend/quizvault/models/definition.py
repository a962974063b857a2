"""
SQLAlchemy model for the `definitions` table.

One row per project: the test template (questions / logic) most recently
uploaded for that project name. Uploads replace the row wholesale.
"""

import datetime
from typing import Any

from sqlalchemy import JSON, TIMESTAMP, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from sqlalchemy.orm import Mapped, mapped_column

from quizvault.core.database import Base

# Plain JSON everywhere, JSONB on Postgres
JSONDocument = JSON().with_variant(JSONB(), "postgresql")


class Definition(Base):
    """The current test template for one project."""

    __tablename__ = "definitions"

    project_name: Mapped[str] = mapped_column(Text, primary_key=True)

    # The whole uploaded document, not just its inner content
    payload: Mapped[dict[str, Any]] = mapped_column(JSONDocument, nullable=False)

    updated_at: Mapped[datetime.datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<Definition project={self.project_name!r}>"
