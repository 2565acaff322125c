"""Tests for suggestion learning, lookup and cleanup."""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from hybrid_search.config.settings import SuggestionConfig
from hybrid_search.search.cache import ResultCache
from hybrid_search.search.models import SuggestionRequest
from hybrid_search.search.suggestions import (
    SuggestionService,
    calculate_score,
    extract_terms,
)
from hybrid_search.storage.repositories import RepositoryError, SuggestionRepository


@pytest.fixture
def suggestion_service(db_manager):
    return SuggestionService(db_manager, SuggestionConfig(), ResultCache(name="suggestions"))


async def seed_term(db_manager, term, used_at, times=1, entity_type=None):
    async with db_manager.get_session() as session:
        repo = SuggestionRepository(session)
        for _ in range(times):
            await repo.upsert_term(term, entity_type, used_at)
        await session.commit()


@pytest.mark.unit
class TestExtractTerms:
    def test_drops_stop_words_and_short_tokens(self):
        assert extract_terms("the quick brown fox") == ["quick", "brown", "fox"]
        assert extract_terms("a b to x") == []

    def test_normalizes_case_and_punctuation(self):
        assert extract_terms("Kafka, Streams!") == ["kafka", "streams"]


@pytest.mark.unit
class TestCalculateScore:
    NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)

    def test_fresh_and_capped(self):
        assert calculate_score(150, self.NOW, self.NOW) == pytest.approx(1.0)

    def test_frequency_component(self):
        old = self.NOW - timedelta(days=60)

        assert calculate_score(50, old, self.NOW) == pytest.approx(0.35)

    def test_recency_decays_linearly(self):
        fifteen_days = self.NOW - timedelta(days=15)

        assert calculate_score(0, fifteen_days, self.NOW) == pytest.approx(0.15)

    def test_naive_timestamps_are_utc(self):
        naive = self.NOW.replace(tzinfo=None)

        assert calculate_score(100, naive, self.NOW) == pytest.approx(1.0)


@pytest.mark.unit
class TestSuggestionService:
    @pytest.mark.asyncio
    async def test_learn_from_query_creates_terms(self, suggestion_service, db_manager):
        learned = await suggestion_service.learn_from_query("the quick brown fox")

        assert learned == 3
        async with db_manager.get_session() as session:
            repo = SuggestionRepository(session)
            for term in ("quick", "brown", "fox"):
                stored = await repo.get_by_term(term)
                assert stored is not None
                assert stored.frequency == 1
            assert await repo.get_by_term("the") is None

    @pytest.mark.asyncio
    async def test_learning_twice_increments_frequency(
        self, suggestion_service, db_manager
    ):
        await suggestion_service.learn_from_query("microservices")
        await suggestion_service.learn_from_query("Microservices")

        async with db_manager.get_session() as session:
            stored = await SuggestionRepository(session).get_by_term("microservices")
        assert stored.frequency == 2

    @pytest.mark.asyncio
    async def test_failed_term_does_not_discard_earlier_terms(
        self, suggestion_service, db_manager
    ):
        original = SuggestionRepository.upsert_term

        async def failing_on_streams(repo, term, entity_type, used_at):
            if term == "streams":
                await repo.session.rollback()
                raise RepositoryError("constraint failed")
            await original(repo, term, entity_type, used_at)

        with patch.object(SuggestionRepository, "upsert_term", failing_on_streams):
            learned = await suggestion_service.learn_from_query("kafka streams tutorial")

        assert learned == 2
        async with db_manager.get_session() as session:
            repo = SuggestionRepository(session)
            assert await repo.get_by_term("kafka") is not None
            assert await repo.get_by_term("streams") is None
            assert await repo.get_by_term("tutorial") is not None

    @pytest.mark.asyncio
    async def test_prefix_lookup_orders_by_frequency(self, suggestion_service):
        await suggestion_service.learn_from_query("microscope")
        for _ in range(3):
            await suggestion_service.learn_from_query("microservices")
        await suggestion_service.learn_from_query("kafka")

        response = await suggestion_service.get_suggestions(
            SuggestionRequest(query="Micro")
        )

        assert [item.term for item in response.suggestions] == [
            "microservices",
            "microscope",
        ]
        assert response.suggestions[0].frequency == 3
        assert 0 < response.suggestions[0].score <= 1.0
        assert response.query == "Micro"

    @pytest.mark.asyncio
    async def test_prefix_lookup_is_literal(self, suggestion_service):
        await suggestion_service.learn_from_query("kafka")

        response = await suggestion_service.get_suggestions(
            SuggestionRequest(query="%")
        )

        assert response.suggestions == []

    @pytest.mark.asyncio
    async def test_entity_type_filter_and_limit(self, suggestion_service):
        await suggestion_service.learn_from_query("report one", entity_type="File")
        await suggestion_service.learn_from_query("reporting", entity_type="Document")
        await suggestion_service.learn_from_query("repository", entity_type="Document")

        files = await suggestion_service.get_suggestions(
            SuggestionRequest(query="rep", entity_type="File")
        )
        limited = await suggestion_service.get_suggestions(
            SuggestionRequest(query="rep", limit=2)
        )

        assert [item.term for item in files.suggestions] == ["report"]
        assert len(limited.suggestions) == 2

    @pytest.mark.asyncio
    async def test_learning_clears_cached_suggestions(self, suggestion_service):
        request = SuggestionRequest(query="kaf")
        assert (await suggestion_service.get_suggestions(request)).suggestions == []

        await suggestion_service.learn_from_query("kafka")

        response = await suggestion_service.get_suggestions(request)
        assert [item.term for item in response.suggestions] == ["kafka"]

    @pytest.mark.asyncio
    async def test_storage_failure_yields_empty_list(self, suggestion_service):
        with patch.object(
            SuggestionRepository,
            "find_by_prefix",
            side_effect=RepositoryError("database is locked"),
        ):
            response = await suggestion_service.get_suggestions(
                SuggestionRequest(query="any")
            )

        assert response.suggestions == []

    @pytest.mark.asyncio
    async def test_find_related_terms(self, suggestion_service):
        await suggestion_service.learn_from_query("microservices architecture")

        assert await suggestion_service.find_related_terms("service") == [
            "microservices"
        ]
        assert await suggestion_service.find_related_terms("  ") == []

    @pytest.mark.asyncio
    async def test_popular_suggestions(self, suggestion_service):
        for _ in range(2):
            await suggestion_service.learn_from_query("kafka")
        await suggestion_service.learn_from_query("redis")

        popular = await suggestion_service.get_popular_suggestions(limit=1)

        assert [item.term for item in popular] == ["kafka"]

    @pytest.mark.asyncio
    async def test_cleanup_removes_old_rare_terms_only(
        self, suggestion_service, db_manager
    ):
        old = datetime.now(timezone.utc) - timedelta(days=120)
        await seed_term(db_manager, "stale", old)
        await seed_term(db_manager, "popular", old, times=6)
        await suggestion_service.learn_from_query("fresh")

        removed = await suggestion_service.cleanup_old_suggestions(
            days_old=90, min_frequency=5
        )

        assert removed == 1
        async with db_manager.get_session() as session:
            repo = SuggestionRepository(session)
            assert await repo.get_by_term("stale") is None
            assert await repo.get_by_term("popular") is not None
            assert await repo.get_by_term("fresh") is not None
