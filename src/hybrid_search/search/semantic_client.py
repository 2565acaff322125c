"""Client for the remote vector-similarity service.

Semantic search is an optional enhancement: every call is bounded by a
timeout and guarded by a circuit breaker, and ``search`` degrades to an
empty list when the service is slow or unreachable.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import aiohttp

from ..config.logging import get_logger
from ..config.settings import SemanticSearchConfig
from ..exceptions import SemanticServiceError, UpstreamTimeoutError
from .models import SemanticHit
from .resilience import CircuitBreaker


class SemanticClient(ABC):
    """Vector-similarity backend."""

    @abstractmethod
    def is_enabled(self) -> bool:
        pass

    @abstractmethod
    async def search(
        self, query: str, limit: int = 20, filters: Optional[Dict[str, Any]] = None
    ) -> List[SemanticHit]:
        """Nearest-neighbour search; empty on timeout or connection failure."""

    @abstractmethod
    async def index_document(
        self, id: str, text: str, metadata: Optional[Dict[str, Any]] = None
    ) -> str:
        """Embed and store a document; returns its vector reference."""

    @abstractmethod
    async def remove_document(self, vector_ref: str) -> bool:
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        pass

    async def close(self) -> None:
        pass


def _parse_hits(results: List[Dict[str, Any]]) -> List[SemanticHit]:
    hits = []
    for result in results:
        vector_id = result.get("id") or result.get("vectorId")
        if not vector_id:
            continue
        hits.append(
            SemanticHit(
                id=str(vector_id),
                score=float(result.get("score") or result.get("similarity") or 0.0),
                metadata=result.get("metadata") or {},
            )
        )
    return hits


class HttpSemanticClient(SemanticClient):
    """aiohttp client for the vector service's JSON API."""

    def __init__(
        self,
        config: SemanticSearchConfig,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """Initialize the client.

        Args:
            config: Semantic search settings (base URL, timeout, breaker)
            session: Optional shared session; one is created lazily otherwise
        """
        self.config = config
        self.enabled = bool(config.enabled and config.base_url)
        self.base_url = (config.base_url or "").rstrip("/")
        self.logger = get_logger(__name__, base_url=self.base_url or None)
        self.session = session
        self._owns_session = session is None
        self.circuit_breaker = CircuitBreaker(
            "vector_service",
            failure_threshold=config.failure_threshold,
            recovery_timeout=config.recovery_timeout,
        )

        if self.enabled:
            self.logger.info("Vector service integration enabled")
        else:
            self.logger.warning("Vector service integration disabled")

    def is_enabled(self) -> bool:
        return self.enabled

    def _get_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.timeout),
                headers={"Content-Type": "application/json"},
            )
            self._owns_session = True
        return self.session

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Issue one call and decode its JSON body.

        Raises:
            UpstreamTimeoutError: The call exceeded the configured timeout
            SemanticServiceError: Circuit open, connection failure (no
                status) or an HTTP error response (with status)
        """
        if not self.circuit_breaker.can_execute():
            raise SemanticServiceError(operation, "circuit breaker open")

        try:
            async with self._get_session().request(
                method,
                f"{self.base_url}{path}",
                json=payload,
                params=params,
                timeout=aiohttp.ClientTimeout(total=self.config.timeout),
            ) as response:
                if response.status >= 500:
                    self.circuit_breaker.record_failure()
                    raise SemanticServiceError(
                        operation, f"HTTP {response.status}", status=response.status
                    )
                self.circuit_breaker.record_success()
                if response.status >= 400:
                    raise SemanticServiceError(
                        operation, f"HTTP {response.status}", status=response.status
                    )
                if response.content_length == 0:
                    return {}
                return await response.json(content_type=None) or {}

        except asyncio.TimeoutError as e:
            self.circuit_breaker.record_failure()
            raise UpstreamTimeoutError(operation, self.config.timeout) from e
        except aiohttp.ClientError as e:
            self.circuit_breaker.record_failure()
            raise SemanticServiceError(operation, str(e) or type(e).__name__) from e

    async def search(
        self, query: str, limit: int = 20, filters: Optional[Dict[str, Any]] = None
    ) -> List[SemanticHit]:
        if not self.enabled:
            self.logger.warning("Semantic search called while disabled")
            return []

        try:
            data = await self._request(
                "search",
                "POST",
                "/api/vectors/search",
                {"query": query, "limit": limit, "filters": filters},
            )
        except UpstreamTimeoutError:
            self.logger.warning("Vector service timed out, skipping semantic search")
            return []
        except SemanticServiceError as e:
            if e.data.get("status") is None:
                self.logger.warning(
                    "Vector service unavailable, skipping semantic search",
                    reason=e.data.get("reason"),
                )
                return []
            raise

        hits = _parse_hits(data.get("results") or [])
        self.logger.debug("Semantic search completed", query=query, hits=len(hits))
        return hits

    async def index_document(
        self, id: str, text: str, metadata: Optional[Dict[str, Any]] = None
    ) -> str:
        if not self.enabled:
            raise SemanticServiceError("index_document", "semantic search is disabled")

        data = await self._request(
            "index_document",
            "POST",
            "/api/vectors/index",
            {"id": id, "text": text, "metadata": metadata or {}},
        )
        vector_ref = str(data.get("vectorId") or id)
        self.logger.debug("Document embedded", id=id, vector_ref=vector_ref)
        return vector_ref

    async def bulk_index(self, documents: List[Dict[str, Any]]) -> List[str]:
        """Embed many ``{id, text, metadata}`` documents in one call."""
        if not self.enabled:
            raise SemanticServiceError("bulk_index", "semantic search is disabled")

        data = await self._request(
            "bulk_index",
            "POST",
            "/api/vectors/bulk-index",
            {
                "documents": [
                    {
                        "id": doc["id"],
                        "text": doc["text"],
                        "metadata": doc.get("metadata") or {},
                    }
                    for doc in documents
                ]
            },
        )
        vector_ids = [str(vector_id) for vector_id in data.get("vectorIds") or []]
        self.logger.info("Bulk embedded documents", count=len(vector_ids))
        return vector_ids

    async def remove_document(self, vector_ref: str) -> bool:
        if not self.enabled:
            return False

        try:
            await self._request(
                "remove_document", "DELETE", f"/api/vectors/{quote(vector_ref, safe='')}"
            )
            return True
        except SemanticServiceError as e:
            if e.data.get("status") == 404:
                self.logger.warning("Vector not found", vector_ref=vector_ref)
            else:
                self.logger.error(
                    "Failed to remove vector", vector_ref=vector_ref, error=e.message
                )
            return False
        except UpstreamTimeoutError as e:
            self.logger.error(
                "Failed to remove vector", vector_ref=vector_ref, error=e.message
            )
            return False

    async def get_similar_documents(
        self, vector_ref: str, limit: int = 10
    ) -> List[SemanticHit]:
        if not self.enabled:
            return []

        try:
            data = await self._request(
                "get_similar_documents",
                "GET",
                f"/api/vectors/{quote(vector_ref, safe='')}/similar",
                params={"limit": limit},
            )
        except (SemanticServiceError, UpstreamTimeoutError) as e:
            self.logger.error("Failed to get similar documents", error=e.message)
            return []
        return _parse_hits(data.get("results") or [])

    async def get_stats(self) -> Optional[Dict[str, Any]]:
        if not self.enabled:
            return None

        try:
            return await self._request("get_stats", "GET", "/api/vectors/stats")
        except (SemanticServiceError, UpstreamTimeoutError) as e:
            self.logger.error("Failed to get vector service stats", error=e.message)
            return None

    async def health_check(self) -> bool:
        if not self.enabled:
            return False

        try:
            data = await self._request("health_check", "GET", "/api/health")
        except (SemanticServiceError, UpstreamTimeoutError) as e:
            self.logger.error("Vector service health check failed", error=e.message)
            return False
        return data.get("status") == "ok"

    async def close(self) -> None:
        if self.session is not None and self._owns_session and not self.session.closed:
            await self.session.close()
        self.session = None
