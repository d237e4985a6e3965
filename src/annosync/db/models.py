"""SQLModel table for persisted session records."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column, DateTime, Integer, String
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(UTC)


def _timestamptz_column() -> Any:
    """Create a TIMESTAMP WITH TIME ZONE column."""
    return Column(DateTime(timezone=True), nullable=False)


def _json_column() -> Any:
    return Column(JSON, nullable=False)


class AnalysedContent(SQLModel, table=True):
    """The one logical record of an annotation session.

    Attributes:
        id: Primary key UUID, auto-generated.
        session_id: Caller-chosen key; one row per session.
        content: Document tree as editor JSON.
        highlights: List of ``{id, labelType, text}``.
        relationships: List of ``{sourceHighlightId, targetHighlightId}``.
        highlight_count: Denormalised count for listings.
    """

    __tablename__ = "analysed_content"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    session_id: str = Field(
        sa_column=Column(String(255), nullable=False, unique=True, index=True)
    )
    content: dict[str, Any] = Field(default_factory=dict, sa_column=_json_column())
    highlights: list[dict[str, Any]] = Field(
        default_factory=list, sa_column=_json_column()
    )
    relationships: list[dict[str, Any]] = Field(
        default_factory=list, sa_column=_json_column()
    )
    highlight_count: int = Field(
        default=0, sa_column=Column(Integer, nullable=False, server_default="0")
    )
    created_at: datetime = Field(
        default_factory=_utcnow, sa_column=_timestamptz_column()
    )
    updated_at: datetime = Field(
        default_factory=_utcnow, sa_column=_timestamptz_column()
    )
