"""Aggregated health of the search engine's backends."""

import asyncio
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

import psutil

from .__version__ import __version__
from .config.logging import get_logger
from .search.analytics import AnalyticsService
from .search.keyword_provider import KeywordProvider
from .search.semantic_client import SemanticClient
from .storage.database import DatabaseManager

logger = get_logger(__name__)

SERVICE_NAME = "hybrid-search"


class HealthStatus(Enum):
    """Overall health levels."""

    OK = "ok"
    DEGRADED = "degraded"
    DOWN = "down"


class HealthService:
    """Checks the database, keyword index and vector service together."""

    def __init__(
        self,
        db_manager: DatabaseManager,
        keyword_provider: KeywordProvider,
        semantic_client: SemanticClient,
        analytics: AnalyticsService,
        check_timeout: float = 10.0,
    ):
        self.db_manager = db_manager
        self.keyword_provider = keyword_provider
        self.semantic_client = semantic_client
        self.analytics = analytics
        self.check_timeout = check_timeout
        self.startup_time = time.time()

    async def _check_database(self) -> bool:
        result = await self.db_manager.health_check()
        return result.get("status") == "healthy"

    async def _check_vector_db(self) -> Optional[bool]:
        if not self.semantic_client.is_enabled():
            return None
        return await self.semantic_client.health_check()

    async def get_health(self) -> Dict[str, Any]:
        """Run all checks in parallel.

        Down when the database or keyword index is unhealthy; degraded when
        semantic search is enabled but its service is unhealthy.
        """
        checks = asyncio.gather(
            self._check_database(),
            self.keyword_provider.health_check(),
            self._check_vector_db(),
            return_exceptions=True,
        )
        try:
            database, keyword_index, vector_db = await asyncio.wait_for(
                checks, timeout=self.check_timeout
            )
        except asyncio.TimeoutError:
            logger.error("Health check timed out", timeout=self.check_timeout)
            database = keyword_index = False
            vector_db = False if self.semantic_client.is_enabled() else None

        # gather(return_exceptions=True) hands back failures as values
        database = database is True
        keyword_index = keyword_index is True
        if vector_db is not None:
            vector_db = vector_db is True

        if not (database and keyword_index):
            status = HealthStatus.DOWN
        elif vector_db is False:
            status = HealthStatus.DEGRADED
        else:
            status = HealthStatus.OK

        return {
            "status": status.value,
            "service": SERVICE_NAME,
            "version": __version__,
            "uptime": round(time.time() - self.startup_time, 2),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "checks": {
                "database": database,
                "keyword_index": keyword_index,
                "vector_db": vector_db,
            },
            "stats": await self._stats(keyword_index),
        }

    async def _stats(self, keyword_index_healthy: bool) -> Dict[str, Any]:
        total_indexed = 0
        if keyword_index_healthy:
            try:
                total_indexed = await self.keyword_provider.count_documents()
            except Exception as e:
                logger.warning("Failed to count indexed documents", error=str(e))

        process = psutil.Process()
        return {
            "total_indexed": total_indexed,
            "total_queries": await self.analytics.count_queries(),
            "vector_db_enabled": self.semantic_client.is_enabled(),
            "memory_mb": round(process.memory_info().rss / (1024 * 1024), 2),
        }
