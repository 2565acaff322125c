"""Keyword (full-text) provider backed by a Whoosh index.

The Whoosh index is the system of record for indexed documents. All whoosh
calls are blocking, so they run in worker threads; writes are serialized by
a process-wide lock so concurrent upserts of one key leave one document.
"""

import asyncio
import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Union

from whoosh import index
from whoosh.index import Index
from whoosh.query import NullQuery, Or, Term

from ..config.logging import get_logger, log_performance
from ..config.settings import KeywordIndexConfig
from ..exceptions import BackendUnavailableError, DocumentNotFoundError
from .index_schema import (
    KEY_FIELD,
    create_document_schema,
    document_to_fields,
    fields_to_document,
)
from .models import (
    IndexDocumentRequest,
    IndexedDocument,
    KeywordHit,
    make_index_id,
)
from .query_builder import build_query, build_query_string

DocumentInput = Union[IndexDocumentRequest, IndexedDocument]


def matches_filters(metadata: Optional[Dict[str, Any]], filters: Dict[str, Any]) -> bool:
    """Equality match per key; a list filter value means "any of"."""
    metadata = metadata or {}
    for key, expected in filters.items():
        if key not in metadata:
            return False
        actual = metadata[key]
        candidates = expected if isinstance(expected, list) else [expected]
        if isinstance(actual, list):
            if not any(value in actual for value in candidates):
                return False
        elif actual not in candidates:
            return False
    return True


def _sort_key(hit: KeywordHit):
    updated = hit.document.updated_at.timestamp() if hit.document.updated_at else 0.0
    return (-hit.score, -hit.document.rank, -updated)


class KeywordProvider(ABC):
    """Full-text search and document CRUD against a keyword index."""

    @abstractmethod
    async def search(
        self,
        term: str,
        entity_types: Optional[Sequence[str]] = None,
        fuzzy: bool = True,
        filters: Optional[Dict[str, Any]] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> List[KeywordHit]:
        """Relevance-ranked search. Raises BackendUnavailableError on failure."""

    @abstractmethod
    async def index_document(self, document: DocumentInput) -> str:
        """Upsert a document keyed by (entity_type, entity_id); returns its index id."""

    @abstractmethod
    async def remove_document(self, entity_type: str, entity_id: str) -> bool:
        """Delete a document; True if something was removed."""

    @abstractmethod
    async def bulk_index(
        self, documents: Sequence[DocumentInput], batch_size: Optional[int] = None
    ) -> List[str]:
        """Upsert in fixed-size batches; returns ids of indexed documents."""

    @abstractmethod
    async def find_document(
        self, entity_type: str, entity_id: str
    ) -> Optional[IndexedDocument]:
        pass

    async def get_document(self, entity_type: str, entity_id: str) -> IndexedDocument:
        """Fetch a document, raising DocumentNotFoundError when it is absent."""
        document = await self.find_document(entity_type, entity_id)
        if document is None:
            raise DocumentNotFoundError(entity_type, entity_id)
        return document

    @abstractmethod
    async def health_check(self) -> bool:
        pass

    @abstractmethod
    async def update_rank(self, entity_type: str, entity_id: str, rank: float) -> bool:
        pass

    @abstractmethod
    async def set_vector_ref(
        self, entity_type: str, entity_id: str, vector_ref: Optional[str]
    ) -> bool:
        pass

    @abstractmethod
    async def find_by_vector_ref(self, vector_ref: str) -> Optional[IndexedDocument]:
        pass

    @abstractmethod
    def iter_documents_without_vector_ref(
        self, batch_size: int = 100
    ) -> AsyncIterator[List[IndexedDocument]]:
        """Yield batches of documents that have no semantic counterpart."""

    @abstractmethod
    async def count_documents(self, entity_type: Optional[str] = None) -> int:
        pass

    async def close(self) -> None:
        pass


class WhooshKeywordProvider(KeywordProvider):
    """KeywordProvider over an on-disk Whoosh index with BM25F scoring."""

    def __init__(self, index_dir: str, config: Optional[KeywordIndexConfig] = None):
        """Initialize the provider.

        Args:
            index_dir: Directory holding the whoosh index files
            config: Keyword index settings (timeouts, batch size)
        """
        self.index_dir = Path(index_dir)
        self.config = config or KeywordIndexConfig()
        self.logger = get_logger(__name__, index_dir=str(self.index_dir))
        self._index: Optional[Index] = None
        self._open_lock = threading.Lock()
        self._write_lock = threading.Lock()

    @property
    def index(self) -> Index:
        """Get or create the whoosh index.

        Raises:
            BackendUnavailableError: If the index cannot be opened or created
        """
        if self._index is None:
            with self._open_lock:
                if self._index is None:
                    try:
                        self.index_dir.mkdir(parents=True, exist_ok=True)
                        if index.exists_in(str(self.index_dir)):
                            self._index = index.open_dir(str(self.index_dir))
                        else:
                            self._index = index.create_in(
                                str(self.index_dir), create_document_schema()
                            )
                    except Exception as e:
                        raise BackendUnavailableError("open_index", str(e)) from e
        return self._index

    async def _run(self, operation: str, func, *args, timeout: Optional[float] = None):
        """Run a blocking whoosh call in a worker thread.

        Non-domain failures and timeouts become BackendUnavailableError.
        """
        try:
            call = asyncio.to_thread(func, *args)
            if timeout is not None:
                return await asyncio.wait_for(call, timeout=timeout)
            return await call
        except asyncio.TimeoutError as e:
            self.logger.error(
                "Keyword operation timed out", operation=operation, timeout=timeout
            )
            raise BackendUnavailableError(
                operation, f"timed out after {timeout}s"
            ) from e
        except BackendUnavailableError:
            raise
        except Exception as e:
            self.logger.error(
                "Keyword operation failed", operation=operation, error=str(e)
            )
            raise BackendUnavailableError(operation, str(e)) from e

    # Search

    async def search(
        self,
        term: str,
        entity_types: Optional[Sequence[str]] = None,
        fuzzy: bool = True,
        filters: Optional[Dict[str, Any]] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> List[KeywordHit]:
        start = time.perf_counter()
        hits = await self._run(
            "search",
            self._search_sync,
            term,
            list(entity_types or []),
            fuzzy,
            dict(filters or {}),
            limit,
            offset,
            timeout=self.config.query_timeout,
        )
        log_performance(
            self.logger,
            "keyword_search",
            (time.perf_counter() - start) * 1000,
            query=build_query_string(term, fuzzy),
            hits=len(hits),
        )
        return hits

    def _search_sync(
        self,
        term: str,
        entity_types: List[str],
        fuzzy: bool,
        filters: Dict[str, Any],
        limit: int,
        offset: int,
    ) -> List[KeywordHit]:
        query = build_query(term, fuzzy)
        if query is NullQuery:
            return []

        type_filter = None
        if entity_types:
            type_filter = Or([Term("entity_type", t) for t in entity_types])

        hits = []
        with self.index.searcher() as searcher:
            results = searcher.search(query, limit=None, filter=type_filter)
            for hit in results:
                stored = hit.fields()
                if filters and not matches_filters(stored.get("metadata"), filters):
                    continue
                hits.append(KeywordHit(fields_to_document(stored), float(hit.score)))

        hits.sort(key=_sort_key)
        return hits[offset : offset + limit]

    # Writes

    async def index_document(self, document: DocumentInput) -> str:
        doc = self._coerce(document)
        await self._run("index_document", self._upsert_batch_sync, [doc])
        self.logger.debug("Document indexed", index_id=doc.index_id)
        return doc.index_id

    async def bulk_index(
        self, documents: Sequence[DocumentInput], batch_size: Optional[int] = None
    ) -> List[str]:
        batch_size = batch_size or self.config.bulk_batch_size
        # update_document cannot see documents buffered in the same writer,
        # so repeated keys collapse to their last occurrence
        unique: Dict[str, IndexedDocument] = {}
        for document in documents:
            doc = self._coerce(document)
            unique[doc.index_id] = doc
        docs = list(unique.values())
        indexed: List[str] = []

        for start in range(0, len(docs), batch_size):
            batch = docs[start : start + batch_size]
            try:
                await self._run("bulk_index", self._upsert_batch_sync, batch)
                indexed.extend(doc.index_id for doc in batch)
            except BackendUnavailableError as e:
                self.logger.error(
                    "Bulk index batch failed",
                    batch_start=start,
                    batch_size=len(batch),
                    error=e.message,
                )

        return indexed

    def _upsert_batch_sync(self, documents: List[IndexedDocument]) -> None:
        now = datetime.now(timezone.utc)
        with self._write_lock:
            with self.index.searcher() as searcher:
                existing = {
                    doc.index_id: searcher.document(**{KEY_FIELD: doc.index_id})
                    for doc in documents
                }

            with self.index.writer() as writer:
                for doc in documents:
                    previous = existing.get(doc.index_id)
                    if previous:
                        # created_at and vector_ref survive an upsert
                        old = fields_to_document(previous)
                        doc.created_at = old.created_at or now
                        if doc.vector_ref is None:
                            doc.vector_ref = old.vector_ref
                    else:
                        doc.created_at = doc.created_at or now
                    doc.updated_at = now
                    writer.update_document(**document_to_fields(doc))

    async def remove_document(self, entity_type: str, entity_id: str) -> bool:
        removed = await self._run(
            "remove_document",
            self._remove_sync,
            make_index_id(entity_type, entity_id),
        )
        if removed:
            self.logger.debug(
                "Document removed", entity_type=entity_type, entity_id=entity_id
            )
        return removed

    def _remove_sync(self, index_id: str) -> bool:
        with self._write_lock:
            with self.index.writer() as writer:
                deleted_count = writer.delete_by_term(KEY_FIELD, index_id)
                return deleted_count > 0

    async def update_rank(self, entity_type: str, entity_id: str, rank: float) -> bool:
        return await self._run(
            "update_rank",
            self._modify_sync,
            make_index_id(entity_type, entity_id),
            {"rank": float(rank)},
            True,
        )

    async def set_vector_ref(
        self, entity_type: str, entity_id: str, vector_ref: Optional[str]
    ) -> bool:
        return await self._run(
            "set_vector_ref",
            self._modify_sync,
            make_index_id(entity_type, entity_id),
            {"vector_ref": vector_ref},
            False,
        )

    def _modify_sync(
        self, index_id: str, changes: Dict[str, Any], touch: bool
    ) -> bool:
        with self._write_lock:
            with self.index.searcher() as searcher:
                stored = searcher.document(**{KEY_FIELD: index_id})
            if stored is None:
                return False

            doc = fields_to_document(stored)
            for name, value in changes.items():
                setattr(doc, name, value)
            if touch:
                doc.updated_at = datetime.now(timezone.utc)

            with self.index.writer() as writer:
                writer.update_document(**document_to_fields(doc))
            return True

    # Reads

    async def find_document(
        self, entity_type: str, entity_id: str
    ) -> Optional[IndexedDocument]:
        return await self._run(
            "get_document",
            self._find_sync,
            KEY_FIELD,
            make_index_id(entity_type, entity_id),
        )

    async def find_by_vector_ref(self, vector_ref: str) -> Optional[IndexedDocument]:
        return await self._run(
            "find_by_vector_ref", self._find_sync, "vector_ref", vector_ref
        )

    def _find_sync(self, fieldname: str, value: str) -> Optional[IndexedDocument]:
        with self.index.searcher() as searcher:
            stored = searcher.document(**{fieldname: value})
        return fields_to_document(stored) if stored else None

    async def iter_documents_without_vector_ref(
        self, batch_size: int = 100
    ) -> AsyncIterator[List[IndexedDocument]]:
        documents = await self._run(
            "iter_documents_without_vector_ref", self._missing_vector_ref_sync
        )
        for start in range(0, len(documents), batch_size):
            yield documents[start : start + batch_size]

    def _missing_vector_ref_sync(self) -> List[IndexedDocument]:
        with self.index.searcher() as searcher:
            return [
                fields_to_document(stored)
                for stored in searcher.reader().all_stored_fields()
                if not stored.get("vector_ref")
            ]

    async def count_documents(self, entity_type: Optional[str] = None) -> int:
        return await self._run("count_documents", self._count_sync, entity_type)

    def _count_sync(self, entity_type: Optional[str]) -> int:
        with self.index.searcher() as searcher:
            if entity_type is None:
                return searcher.doc_count()
            return sum(1 for _ in searcher.document_numbers(entity_type=entity_type))

    async def health_check(self) -> bool:
        try:
            await self._run(
                "health_check",
                self._count_sync,
                None,
                timeout=self.config.query_timeout,
            )
            return True
        except BackendUnavailableError:
            return False

    async def close(self) -> None:
        """Close the index and release resources."""
        if self._index is not None:
            self._index.close()
            self._index = None

    @staticmethod
    def _coerce(document: DocumentInput) -> IndexedDocument:
        if isinstance(document, IndexedDocument):
            return IndexedDocument(**vars(document))
        return IndexedDocument(
            entity_type=document.entity_type,
            entity_id=document.entity_id,
            title=document.title,
            content=document.content,
            metadata=dict(document.metadata),
            rank=document.rank,
        )
