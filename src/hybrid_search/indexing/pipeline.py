"""Indexing pipeline: dual write to the keyword index and the vector service.

The keyword index is the system of record and is written first; a failure
there fails the operation. The vector service is a derived projection
written best-effort, its reference stored back on the keyword document.
Documents whose projection is missing are repaired by
``reconcile_vector_refs``.
"""

import asyncio
import time
from typing import Any, Dict, List, Optional, Sequence

from asyncio_throttle import Throttler

from ..config.logging import get_logger
from ..exceptions import SearchEngineError
from ..search.cache import ResultCache
from ..search.keyword_provider import KeywordProvider
from ..search.models import (
    IndexDocumentRequest,
    IndexResult,
    ReconcileResult,
    ReindexResult,
    make_index_id,
)
from ..search.semantic_client import SemanticClient


class IndexingPipeline:
    """Upserts and removes logical documents across both backends."""

    def __init__(
        self,
        keyword_provider: KeywordProvider,
        semantic_client: SemanticClient,
        cache: Optional[ResultCache] = None,
        batch_size: int = 100,
        reconcile_rate_limit: int = 10,
    ):
        """Initialize the pipeline.

        Args:
            keyword_provider: Authoritative keyword index
            semantic_client: Vector service, used only when enabled
            cache: Search response cache invalidated on writes
            batch_size: Default reindex batch size
            reconcile_rate_limit: Vector index calls per second when reconciling
        """
        self.keyword_provider = keyword_provider
        self.semantic_client = semantic_client
        self.cache = cache
        self.batch_size = batch_size
        self.throttler = Throttler(rate_limit=reconcile_rate_limit, period=1.0)
        self.logger = get_logger(__name__)

    async def index_document(self, request: IndexDocumentRequest) -> IndexResult:
        """Index one document; never raises for backend failures."""
        start = time.perf_counter()

        try:
            index_id = await self.keyword_provider.index_document(request)
        except SearchEngineError as e:
            self.logger.error(
                "Failed to index document",
                entity_type=request.entity_type,
                entity_id=request.entity_id,
                error=e.message,
            )
            return IndexResult(
                success=False,
                index_id=request.index_id,
                processing_time_ms=self._elapsed_ms(start),
                error=e.message,
            )

        if self.semantic_client.is_enabled():
            await self._embed(
                request.entity_type,
                request.entity_id,
                f"{request.title} {request.content}",
                request.metadata,
            )

        self._invalidate(request.entity_type)
        elapsed = self._elapsed_ms(start)
        self.logger.info(
            "Indexed document",
            entity_type=request.entity_type,
            entity_id=request.entity_id,
            processing_time_ms=elapsed,
        )
        return IndexResult(success=True, index_id=index_id, processing_time_ms=elapsed)

    async def _embed(
        self,
        entity_type: str,
        entity_id: str,
        text: str,
        metadata: Dict[str, Any],
    ) -> bool:
        """Write the vector projection and record its reference."""
        try:
            vector_ref = await self.semantic_client.index_document(
                id=make_index_id(entity_type, entity_id),
                text=text,
                metadata={"entityType": entity_type, "entityId": entity_id, **metadata},
            )
            await self.keyword_provider.set_vector_ref(entity_type, entity_id, vector_ref)
            return True
        except SearchEngineError as e:
            self.logger.warning(
                "Failed to generate vector embedding",
                entity_type=entity_type,
                entity_id=entity_id,
                error=e.message,
            )
            return False

    async def remove_from_index(self, entity_type: str, entity_id: str) -> bool:
        """Remove a document; False when it was never indexed.

        Raises:
            BackendUnavailableError: The keyword index could not be reached
        """
        document = await self.keyword_provider.find_document(entity_type, entity_id)
        removed = await self.keyword_provider.remove_document(entity_type, entity_id)

        if document is not None and document.vector_ref and self.semantic_client.is_enabled():
            if not await self.semantic_client.remove_document(document.vector_ref):
                self.logger.warning(
                    "Failed to remove vector embedding",
                    entity_type=entity_type,
                    entity_id=entity_id,
                    vector_ref=document.vector_ref,
                )

        if removed:
            self._invalidate(entity_type)
            self.logger.info(
                "Removed document", entity_type=entity_type, entity_id=entity_id
            )
        return removed

    async def reindex(
        self,
        documents: Sequence[IndexDocumentRequest],
        batch_size: Optional[int] = None,
    ) -> ReindexResult:
        """Index in batches; a failed document never stops the rest."""
        start = time.perf_counter()
        batch_size = batch_size or self.batch_size
        successful = 0
        failed_ids: List[str] = []

        for offset in range(0, len(documents), batch_size):
            batch = documents[offset : offset + batch_size]
            results = await asyncio.gather(
                *(self.index_document(doc) for doc in batch), return_exceptions=True
            )
            for doc, result in zip(batch, results):
                if isinstance(result, IndexResult) and result.success:
                    successful += 1
                else:
                    failed_ids.append(f"{doc.entity_type}/{doc.entity_id}")

        result = ReindexResult(
            processed=len(documents),
            successful=successful,
            failed=len(failed_ids),
            failed_ids=failed_ids,
            processing_time_ms=self._elapsed_ms(start),
        )
        self.logger.info(
            "Reindex complete", successful=result.successful, failed=result.failed
        )
        return result

    async def reconcile_vector_refs(self, batch_size: Optional[int] = None) -> ReconcileResult:
        """Re-derive vector references missing after failed best-effort writes."""
        if not self.semantic_client.is_enabled():
            return ReconcileResult(checked=0, repaired=0, failed=0)

        checked = repaired = 0
        async for batch in self.keyword_provider.iter_documents_without_vector_ref(
            batch_size or self.batch_size
        ):
            for document in batch:
                checked += 1
                async with self.throttler:
                    if await self._embed(
                        document.entity_type,
                        document.entity_id,
                        f"{document.title} {document.content}",
                        document.metadata,
                    ):
                        repaired += 1

        result = ReconcileResult(checked=checked, repaired=repaired, failed=checked - repaired)
        self.logger.info("Vector reconciliation complete", **result.to_dict())
        return result

    def _invalidate(self, entity_type: str) -> None:
        if self.cache is not None:
            self.cache.invalidate(entity_type)

    @staticmethod
    def _elapsed_ms(start: float) -> float:
        return round((time.perf_counter() - start) * 1000, 2)
