"""Repository for query telemetry and result clicks."""

from sqlalchemy.ext.asyncio import AsyncSession

from ..models import QueryLogEntry, ResultClick
from .base import BaseRepository


class QueryLogRepository(BaseRepository[QueryLogEntry]):
    """Append-only access to the search query log."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, QueryLogEntry)


class ResultClickRepository(BaseRepository[ResultClick]):
    """Append-only access to result clicks."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, ResultClick)
