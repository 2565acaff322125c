"""Repository layer for data access operations."""

from .base import BaseRepository, RepositoryError
from .query_log_repository import QueryLogRepository, ResultClickRepository
from .suggestion_repository import SuggestionRepository

__all__ = [
    "BaseRepository",
    "RepositoryError",
    "QueryLogRepository",
    "ResultClickRepository",
    "SuggestionRepository",
]
