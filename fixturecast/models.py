"""Database models using SQLModel."""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from fixturecast.utils.dates import utc_now


def utc_naive_now() -> datetime:
    """Current UTC time without tzinfo (TIMESTAMP WITHOUT TIME ZONE columns)."""
    return utc_now().replace(tzinfo=None)


class StateEntry(SQLModel, table=True):
    """One key of the pipeline's key-value state."""

    __tablename__ = "state_entries"

    key: str = Field(primary_key=True, max_length=255, description="Namespaced state key")
    value: Optional[Any] = Field(
        default=None, sa_column=Column(JSON), description="JSON-encoded value"
    )
    updated_at: datetime = Field(
        default_factory=utc_naive_now, description="Last write time (naive UTC)"
    )
