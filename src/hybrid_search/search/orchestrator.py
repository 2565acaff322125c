"""Search orchestration across the keyword and semantic backends.

Per request the orchestrator fans out to the keyword provider and, when
asked and available, the semantic client; fuses and sorts the candidates;
attaches fallback suggestions to sparse results; learns from successful
queries; and logs every execution to the analytics sink. Only keyword
failures reach the caller.
"""

import asyncio
import math
import time
from dataclasses import replace
from typing import Any, Dict, List, Optional, Tuple

from ..config.logging import get_logger, log_performance, sanitize_log_data
from ..config.settings import SearchConfig
from .analytics import AnalyticsService
from .cache import ResultCache
from .keyword_provider import KeywordProvider
from .models import (
    IndexedDocument,
    KeywordHit,
    SearchMode,
    SearchRequest,
    SearchResponse,
    SemanticHit,
)
from .ranking import fuse, sort_candidates
from .semantic_client import SemanticClient
from .suggestions import SuggestionService


class SearchOrchestrator:
    """Stateless coordinator over the four leaf stores."""

    def __init__(
        self,
        keyword_provider: KeywordProvider,
        semantic_client: SemanticClient,
        suggestion_service: SuggestionService,
        analytics: AnalyticsService,
        config: Optional[SearchConfig] = None,
        semantic_timeout: float = 10.0,
        cache: Optional[ResultCache] = None,
    ):
        """Initialize the orchestrator.

        Args:
            keyword_provider: Authoritative full-text backend
            semantic_client: Optional vector backend
            suggestion_service: Suggestion store for fallback and learning
            analytics: Sink for query telemetry
            config: Search settings (weights, thresholds, toggles)
            semantic_timeout: Deadline for the semantic branch in seconds
            cache: Optional response cache
        """
        self.keyword_provider = keyword_provider
        self.semantic_client = semantic_client
        self.suggestion_service = suggestion_service
        self.analytics = analytics
        self.config = config or SearchConfig()
        self.semantic_timeout = semantic_timeout
        self.cache = cache
        self.logger = get_logger(__name__)

    async def search(self, request: SearchRequest) -> SearchResponse:
        """Execute a search.

        Raises:
            BackendUnavailableError: The keyword backend failed or timed out
        """
        start = time.perf_counter()

        cache_key = request.cache_key() if self.cache is not None else None
        if cache_key is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                response = replace(cached, execution_time_ms=self._elapsed_ms(start))
                if response.total > 0 and self.config.enable_learning:
                    await self._learn(request)
                await self._track(request, response.total, response.execution_time_ms)
                return response

        try:
            response = await self._execute(request, start)
        except Exception as e:
            elapsed = self._elapsed_ms(start)
            self.logger.error(
                "Search execution failed",
                query=request.query,
                mode=request.mode.value,
                error=str(e),
            )
            await self._track(request, 0, elapsed)
            raise

        if cache_key is not None:
            self.cache.set(cache_key, response, request.entity_types)

        if response.total > 0 and self.config.enable_learning:
            await self._learn(request)

        await self._track(request, response.total, response.execution_time_ms)
        log_performance(
            self.logger,
            "search",
            response.execution_time_ms,
            mode=request.mode.value,
            total=response.total,
        )
        return response

    async def _execute(self, request: SearchRequest, start: float) -> SearchResponse:
        use_keyword = request.mode in (SearchMode.KEYWORD, SearchMode.HYBRID)
        use_semantic = request.mode in (
            SearchMode.SEMANTIC,
            SearchMode.HYBRID,
        ) and self.semantic_client.is_enabled()

        keyword_task: Optional[asyncio.Task] = None
        semantic_task: Optional[asyncio.Task] = None
        if use_keyword:
            keyword_task = asyncio.create_task(
                self.keyword_provider.search(
                    request.query,
                    entity_types=request.entity_types,
                    fuzzy=request.fuzzy,
                    filters=request.filters,
                    limit=request.limit,
                    offset=request.offset,
                )
            )
        if use_semantic:
            semantic_task = asyncio.create_task(self._semantic_matches(request))

        try:
            keyword_hits: List[KeywordHit] = await keyword_task if keyword_task else []
            semantic_matches = await semantic_task if semantic_task else []
        finally:
            for task in (keyword_task, semantic_task):
                if task is not None and not task.done():
                    task.cancel()

        candidates = fuse(
            keyword_hits, semantic_matches, self.config.weights, request.mode
        )
        ordered = sort_candidates(candidates, request.sort_by)

        total = len(ordered)
        results = [candidate.to_result() for candidate in ordered[: request.limit]]

        suggestions = None
        if total < self.config.suggestion_threshold:
            suggestions = await self._fallback_suggestions(request.query)

        return SearchResponse(
            results=results,
            total=total,
            page=request.page,
            limit=request.limit,
            total_pages=math.ceil(total / request.limit),
            execution_time_ms=self._elapsed_ms(start),
            suggestions=suggestions,
        )

    async def _semantic_matches(
        self, request: SearchRequest
    ) -> List[Tuple[IndexedDocument, float]]:
        """Semantic hits resolved to indexed documents; empty on any failure."""
        filters = dict(request.filters)
        if request.entity_types:
            filters["entityType"] = request.entity_types

        try:
            hits = await asyncio.wait_for(
                self.semantic_client.search(
                    request.query, limit=request.limit, filters=filters or None
                ),
                timeout=self.semantic_timeout,
            )
            documents = await asyncio.gather(*(self._resolve(hit) for hit in hits))
        except asyncio.TimeoutError:
            self.logger.warning(
                "Semantic search timed out, using keyword results only",
                timeout=self.semantic_timeout,
            )
            return []
        except Exception as e:
            self.logger.warning(
                "Semantic search failed, using keyword results only", error=str(e)
            )
            return []

        matches = []
        for hit, document in zip(hits, documents):
            if document is None:
                continue
            if request.entity_types and document.entity_type not in request.entity_types:
                continue
            matches.append((document, hit.score))
        return matches

    async def _resolve(self, hit: SemanticHit) -> Optional[IndexedDocument]:
        """Map a vector id back to its keyword-indexed document."""
        document = await self.keyword_provider.find_by_vector_ref(hit.id)
        if document is not None:
            return document

        entity_type = hit.metadata.get("entityType")
        entity_id = hit.metadata.get("entityId")
        if entity_type and entity_id is not None:
            return await self.keyword_provider.find_document(entity_type, str(entity_id))
        return None

    async def _fallback_suggestions(self, query: str) -> Optional[List[str]]:
        try:
            terms = await asyncio.wait_for(
                self.suggestion_service.find_related_terms(
                    query, limit=self.config.fallback_suggestion_limit
                ),
                timeout=self.config.suggestion_timeout,
            )
        except Exception as e:
            self.logger.warning("Suggestion fallback failed", error=str(e) or type(e).__name__)
            return None
        return terms or None

    async def _learn(self, request: SearchRequest) -> None:
        try:
            await self.suggestion_service.learn_from_query(
                request.query, request.entity_type_hint
            )
        except Exception as e:
            self.logger.warning("Failed to learn from query", error=str(e))

    async def _track(
        self, request: SearchRequest, results_count: int, execution_time_ms: float
    ) -> None:
        if not self.config.enable_analytics:
            return

        filters: Dict[str, Any] = {
            "entity_types": request.entity_types,
            "mode": request.mode.value,
            **request.filters,
        }
        try:
            await self.analytics.track_query(
                query=request.query,
                results_count=results_count,
                execution_time_ms=execution_time_ms,
                user_id=request.user_id,
                filters=filters,
                entity_type=request.entity_type_hint,
            )
        except Exception as e:
            self.logger.error(
                "Failed to record query analytics",
                filters=sanitize_log_data(filters),
                error=str(e),
            )

    def invalidate(self, entity_type: str) -> None:
        if self.cache is not None:
            self.cache.invalidate(entity_type)

    @staticmethod
    def _elapsed_ms(start: float) -> float:
        return round((time.perf_counter() - start) * 1000, 2)
