"""Autocomplete suggestions learned from successful queries."""

from datetime import datetime, timedelta, timezone
from typing import List, Optional

from ..config.logging import get_logger
from ..config.settings import SuggestionConfig
from ..storage.database import DatabaseManager
from ..storage.models import SuggestionTerm, as_utc, utcnow
from ..storage.repositories import RepositoryError, SuggestionRepository
from .cache import ResultCache
from .models import SuggestionItem, SuggestionRequest, SuggestionResponse
from .query_builder import tokenize

STOP_WORDS = frozenset(
    "a an the and or but in on at to for of with by".split()
)
MIN_TERM_LENGTH = 2

FREQUENCY_WEIGHT = 0.7
RECENCY_WEIGHT = 0.3


def extract_terms(query: str) -> List[str]:
    """Tokens worth learning: no stop-words, at least two characters."""
    return [
        token
        for token in tokenize(query)
        if len(token) >= MIN_TERM_LENGTH and token not in STOP_WORDS
    ]


def calculate_score(
    frequency: int,
    last_used_at: datetime,
    now: Optional[datetime] = None,
    frequency_cap: int = 100,
    recency_window_days: int = 30,
) -> float:
    """Blend capped frequency with linearly decaying recency."""
    now = now or utcnow()
    normalized_frequency = min(frequency / frequency_cap, 1.0)
    days_since_used = (now - as_utc(last_used_at)).total_seconds() / 86400
    recency = max(0.0, 1.0 - days_since_used / recency_window_days)
    return FREQUENCY_WEIGHT * normalized_frequency + RECENCY_WEIGHT * recency


class SuggestionService:
    """Suggestion store over the search_suggestions table."""

    def __init__(
        self,
        db_manager: DatabaseManager,
        config: Optional[SuggestionConfig] = None,
        cache: Optional[ResultCache] = None,
    ):
        self.db_manager = db_manager
        self.config = config or SuggestionConfig()
        self.cache = cache
        self.logger = get_logger(__name__)

    def _to_item(self, term: SuggestionTerm, now: datetime) -> SuggestionItem:
        return SuggestionItem(
            term=term.term,
            score=calculate_score(
                term.frequency,
                term.last_used_at,
                now,
                self.config.frequency_cap,
                self.config.recency_window_days,
            ),
            frequency=term.frequency,
            entity_type=term.entity_type,
        )

    async def get_suggestions(self, request: SuggestionRequest) -> SuggestionResponse:
        """Prefix suggestions, most frequent then most recent first.

        Storage failures yield an empty list.
        """
        limit = min(request.limit, self.config.max_limit)
        cache_key = f"{request.query.lower()}|{request.entity_type or ''}|{limit}"
        if self.cache is not None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                return SuggestionResponse(suggestions=cached, query=request.query)

        try:
            async with self.db_manager.get_session() as session:
                terms = await SuggestionRepository(session).find_by_prefix(
                    request.query.strip(), request.entity_type, limit
                )
        except Exception as e:
            self.logger.error(
                "Failed to get suggestions", query=request.query, error=str(e)
            )
            return SuggestionResponse(suggestions=[], query=request.query)

        now = utcnow()
        items = [self._to_item(term, now) for term in terms]
        if self.cache is not None:
            self.cache.set(cache_key, items)
        return SuggestionResponse(suggestions=items, query=request.query)

    async def learn_from_query(self, query: str, entity_type: Optional[str] = None) -> int:
        """Upsert every qualifying term of ``query``; returns how many were learned."""
        terms = extract_terms(query)
        if not terms:
            return 0

        learned = 0
        used_at = utcnow()
        async with self.db_manager.get_session() as session:
            repo = SuggestionRepository(session)
            for term in terms:
                # A failed upsert rolls the session back, so commit per term
                try:
                    await repo.upsert_term(term, entity_type, used_at)
                    await session.commit()
                    learned += 1
                except RepositoryError as e:
                    self.logger.error("Failed to learn term", term=term, error=str(e))

        if self.cache is not None:
            self.cache.clear()
        self.logger.debug("Learned suggestion terms", count=learned)
        return learned

    async def get_popular_suggestions(
        self, entity_type: Optional[str] = None, limit: int = 10
    ) -> List[SuggestionItem]:
        try:
            async with self.db_manager.get_session() as session:
                terms = await SuggestionRepository(session).find_popular(
                    entity_type, limit
                )
        except Exception as e:
            self.logger.error("Failed to get popular suggestions", error=str(e))
            return []

        now = utcnow()
        return [self._to_item(term, now) for term in terms]

    async def find_related_terms(self, text: str, limit: int = 5) -> List[str]:
        """Stored terms containing ``text``; used when a search comes back sparse."""
        text = text.strip()
        if not text:
            return []

        async with self.db_manager.get_session() as session:
            terms = await SuggestionRepository(session).find_containing(text, limit)
        return [term.term for term in terms]

    async def cleanup_old_suggestions(
        self, days_old: Optional[int] = None, min_frequency: Optional[int] = None
    ) -> int:
        """Delete terms unused for ``days_old`` days AND below ``min_frequency``."""
        days_old = days_old if days_old is not None else self.config.cleanup_days
        min_frequency = (
            min_frequency if min_frequency is not None else self.config.min_frequency
        )
        cutoff = datetime.now(timezone.utc) - timedelta(days=days_old)

        try:
            async with self.db_manager.get_session() as session:
                removed = await SuggestionRepository(session).delete_stale(
                    cutoff, min_frequency
                )
                await session.commit()
        except Exception as e:
            self.logger.error("Failed to clean up suggestions", error=str(e))
            return 0

        if self.cache is not None:
            self.cache.clear()
        self.logger.info("Cleaned up old suggestions", removed=removed)
        return removed
