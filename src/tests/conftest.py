"""Pytest configuration and shared fixtures."""

import asyncio
from typing import Any, AsyncGenerator, Dict, List, Optional

import pytest
from faker import Faker

from hybrid_search.config.settings import KeywordIndexConfig
from hybrid_search.exceptions import SemanticServiceError, UpstreamTimeoutError
from hybrid_search.search.keyword_provider import WhooshKeywordProvider
from hybrid_search.search.models import IndexDocumentRequest, SemanticHit
from hybrid_search.search.semantic_client import SemanticClient
from hybrid_search.storage.database import ConnectionConfig, DatabaseManager

fake = Faker()


class FakeSemanticClient(SemanticClient):
    """In-memory vector service double.

    ``search_results`` is returned verbatim by ``search``; setting
    ``fail_search`` or ``fail_index`` makes the matching call raise.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self.indexed: Dict[str, Dict[str, Any]] = {}
        self.removed: List[str] = []
        self.search_results: List[SemanticHit] = []
        self.search_calls: List[Dict[str, Any]] = []
        self.fail_search: Optional[Exception] = None
        self.fail_index: Optional[Exception] = None
        self.search_delay: float = 0.0
        self.healthy = True

    def is_enabled(self) -> bool:
        return self.enabled

    async def search(self, query, limit=20, filters=None):
        self.search_calls.append({"query": query, "limit": limit, "filters": filters})
        if self.search_delay:
            await asyncio.sleep(self.search_delay)
        if self.fail_search is not None:
            raise self.fail_search
        return list(self.search_results)

    async def index_document(self, id, text, metadata=None):
        if self.fail_index is not None:
            raise self.fail_index
        vector_ref = f"vec-{id}"
        self.indexed[vector_ref] = {"id": id, "text": text, "metadata": metadata or {}}
        return vector_ref

    async def remove_document(self, vector_ref):
        self.removed.append(vector_ref)
        return self.indexed.pop(vector_ref, None) is not None

    async def health_check(self):
        return self.healthy


@pytest.fixture
async def db_manager(tmp_path) -> AsyncGenerator[DatabaseManager, None]:
    """Initialized database manager on a temporary SQLite file."""
    manager = DatabaseManager(
        ConnectionConfig(database_path=str(tmp_path / "search.db"), enable_wal=False)
    )
    await manager.initialize()

    yield manager

    await manager.close()


@pytest.fixture
async def keyword_provider(tmp_path) -> AsyncGenerator[WhooshKeywordProvider, None]:
    """Whoosh provider on a temporary index directory."""
    provider = WhooshKeywordProvider(
        str(tmp_path / "index"), KeywordIndexConfig(query_timeout=10.0)
    )

    yield provider

    await provider.close()


@pytest.fixture
def semantic_client() -> FakeSemanticClient:
    return FakeSemanticClient()


@pytest.fixture
def disabled_semantic_client() -> FakeSemanticClient:
    return FakeSemanticClient(enabled=False)


@pytest.fixture
def fake_semantic_failures():
    """Exceptions the semantic double can be told to raise."""
    return {
        "timeout": UpstreamTimeoutError("search", 0.1),
        "service": SemanticServiceError("search", "HTTP 500", status=500),
    }


def make_document(**overrides: Any) -> IndexDocumentRequest:
    """Build an indexing request with faker-generated defaults."""
    data = {
        "entity_type": "Document",
        "entity_id": str(fake.uuid4()),
        "title": fake.sentence(nb_words=4),
        "content": fake.paragraph(nb_sentences=3),
        "metadata": {"author": fake.name()},
        "rank": 0.0,
    }
    data.update(overrides)
    return IndexDocumentRequest(**data)


@pytest.fixture
def document_factory():
    return make_document
