"""Analytics sink: append-only query and click telemetry."""

from typing import Any, Dict, Optional

from ..config.logging import get_logger, sanitize_log_data
from ..storage.database import DatabaseManager
from ..storage.models import QueryLogEntry, ResultClick
from ..storage.repositories import QueryLogRepository, ResultClickRepository


class AnalyticsService:
    """Records searches and clicks; failures are logged, never raised."""

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager
        self.logger = get_logger(__name__)

    async def track_query(
        self,
        query: str,
        results_count: int,
        execution_time_ms: float,
        user_id: Optional[str] = None,
        filters: Optional[Dict[str, Any]] = None,
        entity_type: Optional[str] = None,
    ) -> Optional[int]:
        """Append one QueryLogEntry; returns its id, or None if the write failed."""
        entry = QueryLogEntry(
            query=(query or "").strip(),
            user_id=user_id,
            results_count=results_count,
            execution_time_ms=execution_time_ms,
            filters=filters or {},
            entity_type=entity_type,
            has_results=results_count > 0,
        )

        try:
            async with self.db_manager.get_session() as session:
                entry = await QueryLogRepository(session).create(entry)
                await session.commit()
        except Exception as e:
            self.logger.error(
                "Failed to track query",
                query=query,
                filters=sanitize_log_data(filters or {}),
                error=str(e),
            )
            return None

        return entry.id

    async def track_result_click(
        self,
        query_log_id: int,
        entity_type: str,
        entity_id: str,
        position: int,
        user_id: Optional[str] = None,
    ) -> bool:
        click = ResultClick(
            query_log_id=query_log_id,
            entity_type=entity_type,
            entity_id=entity_id,
            position=position,
            user_id=user_id,
        )

        try:
            async with self.db_manager.get_session() as session:
                await ResultClickRepository(session).create(click)
                await session.commit()
        except Exception as e:
            self.logger.error(
                "Failed to track result click",
                query_log_id=query_log_id,
                error=str(e),
            )
            return False

        return True

    async def count_queries(self) -> int:
        """Total logged searches; 0 when the store is unreachable."""
        try:
            async with self.db_manager.get_session() as session:
                return await QueryLogRepository(session).count()
        except Exception as e:
            self.logger.error("Failed to count queries", error=str(e))
            return 0
