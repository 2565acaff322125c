"""Storage layer for suggestion terms and query analytics."""

from .database import ConnectionConfig, DatabaseManager
from .models import Base, QueryLogEntry, ResultClick, SuggestionTerm
from .repositories import (
    BaseRepository,
    QueryLogRepository,
    RepositoryError,
    ResultClickRepository,
    SuggestionRepository,
)

__all__ = [
    "DatabaseManager",
    "ConnectionConfig",
    "Base",
    "QueryLogEntry",
    "ResultClick",
    "SuggestionTerm",
    "BaseRepository",
    "RepositoryError",
    "QueryLogRepository",
    "ResultClickRepository",
    "SuggestionRepository",
]
