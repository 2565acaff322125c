"""SQLAlchemy models for the suggestion and analytics stores."""

from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite returns naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class TimestampMixin:
    """Mixin for created_at and updated_at timestamps."""

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class SuggestionTerm(Base, TimestampMixin):
    """Aggregated autocomplete statistic for one normalized term."""

    __tablename__ = "search_suggestions"

    id = Column(Integer, primary_key=True)
    term = Column(String(255), nullable=False, unique=True)
    frequency = Column(Integer, nullable=False, default=1)
    entity_type = Column(String(100))
    last_used_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_search_suggestions_frequency", "frequency"),
        Index("ix_search_suggestions_last_used_at", "last_used_at"),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "term": self.term,
            "frequency": self.frequency,
            "entity_type": self.entity_type,
            "last_used_at": self.last_used_at.isoformat()
            if self.last_used_at
            else None,
        }


class QueryLogEntry(Base):
    """Append-only record of one executed search."""

    __tablename__ = "search_queries"

    id = Column(Integer, primary_key=True)
    query = Column(Text, nullable=False)
    user_id = Column(String(255))
    results_count = Column(Integer, nullable=False, default=0)
    execution_time_ms = Column(Float, nullable=False, default=0.0)
    filters = Column(JSON)
    entity_type = Column(String(100))
    has_results = Column(Boolean, nullable=False, default=False)
    timestamp = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_search_queries_timestamp", "timestamp"),
        Index("ix_search_queries_query", "query"),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "query": self.query,
            "user_id": self.user_id,
            "results_count": self.results_count,
            "execution_time_ms": self.execution_time_ms,
            "filters": self.filters,
            "entity_type": self.entity_type,
            "has_results": self.has_results,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }


class ResultClick(Base):
    """A click on a result of a logged search; an input to popularity."""

    __tablename__ = "search_result_clicks"

    id = Column(Integer, primary_key=True)
    query_log_id = Column(Integer, ForeignKey("search_queries.id"), nullable=False)
    entity_type = Column(String(100), nullable=False)
    entity_id = Column(String(255), nullable=False)
    position = Column(Integer, nullable=False)
    user_id = Column(String(255))
    clicked_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_search_result_clicks_entity", "entity_type", "entity_id"),
    )
