"""Tests for request validation and response serialization."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from hybrid_search.search.models import (
    IndexDocumentRequest,
    SearchMode,
    SearchRequest,
    SearchResponse,
    SearchResultItem,
    SuggestionRequest,
    make_index_id,
)


@pytest.mark.unit
class TestSearchRequest:
    def test_defaults(self):
        request = SearchRequest(query="kafka")

        assert request.mode == SearchMode.HYBRID
        assert request.page == 1
        assert request.limit == 20
        assert request.fuzzy is True
        assert request.offset == 0

    def test_offset_from_page(self):
        assert SearchRequest(query="q", page=3, limit=10).offset == 20

    @pytest.mark.parametrize(
        "overrides",
        [{"page": 0}, {"limit": 0}, {"limit": 101}, {"mode": "vector"}],
    )
    def test_rejects_invalid_values(self, overrides):
        with pytest.raises(ValidationError):
            SearchRequest(query="q", **overrides)

    def test_cache_key_ignores_user_and_type_order(self):
        a = SearchRequest(query="q", entity_types=["File", "User"], user_id="a")
        b = SearchRequest(query="q", entity_types=["User", "File"], user_id="b")

        assert a.cache_key() == b.cache_key()
        assert a.cache_key() != SearchRequest(query="q", page=2).cache_key()

    def test_entity_type_hint(self):
        assert SearchRequest(query="q").entity_type_hint is None
        assert SearchRequest(query="q", entity_types=["File"]).entity_type_hint == "File"


@pytest.mark.unit
class TestIndexDocumentRequest:
    def test_integer_id_coerced(self):
        request = IndexDocumentRequest(entity_type="User", entity_id=7)

        assert request.entity_id == "7"
        assert request.index_id == "User:7"

    def test_index_id_distinguishes_colons_in_parts(self):
        left = IndexDocumentRequest(entity_type="a:b", entity_id="c")
        right = IndexDocumentRequest(entity_type="a", entity_id="b:c")

        assert left.index_id == "a\\:b:c"
        assert right.index_id == "a:b\\:c"
        assert make_index_id("a\\", "b") != make_index_id("a", "\\b")

    def test_requires_identity(self):
        with pytest.raises(ValidationError):
            IndexDocumentRequest(entity_type="", entity_id="1")
        with pytest.raises(ValidationError):
            IndexDocumentRequest(entity_type="User", entity_id="")

    def test_nested_metadata_accepted(self):
        request = IndexDocumentRequest(
            entity_type="Doc",
            entity_id="1",
            metadata={"tags": ["a", 1, None], "owner": {"name": "x", "active": True}},
        )

        assert request.metadata["owner"]["active"] is True

    def test_unsupported_metadata_rejected(self):
        with pytest.raises(ValidationError, match="owner.since"):
            IndexDocumentRequest(
                entity_type="Doc",
                entity_id="1",
                metadata={"owner": {"since": datetime(2026, 1, 1)}},
            )


@pytest.mark.unit
class TestResponses:
    def test_suggestion_limit_bounds(self):
        assert SuggestionRequest(query="k").limit == 5
        with pytest.raises(ValidationError):
            SuggestionRequest(query="k", limit=21)

    def test_search_response_serialization(self):
        item = SearchResultItem(
            entity_type="Document",
            entity_id="d1",
            title="t",
            excerpt="e",
            score=0.5,
            metadata={},
            created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
            updated_at=None,
        )
        response = SearchResponse(
            results=[item],
            total=1,
            page=1,
            limit=20,
            total_pages=1,
            execution_time_ms=3.2,
            suggestions=["kafka"],
        )

        data = response.to_dict()

        assert data["results"][0]["created_at"] == "2026-01-01T00:00:00+00:00"
        assert data["results"][0]["updated_at"] is None
        assert data["suggestions"] == ["kafka"]
