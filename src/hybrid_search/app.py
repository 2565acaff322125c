"""Application wiring: builds every component from Settings."""

from typing import Optional

from .config.logging import get_logger
from .config.settings import Settings, load_settings
from .health import HealthService
from .indexing.events import IndexEventHandler
from .indexing.pipeline import IndexingPipeline
from .search.analytics import AnalyticsService
from .search.cache import ResultCache
from .search.keyword_provider import KeywordProvider, WhooshKeywordProvider
from .search.orchestrator import SearchOrchestrator
from .search.semantic_client import HttpSemanticClient, SemanticClient
from .search.suggestions import SuggestionService
from .storage.database import ConnectionConfig, DatabaseManager


class SearchApplication:
    """Holds the wired components and owns their lifecycle."""

    def __init__(
        self,
        settings: Settings,
        keyword_provider: Optional[KeywordProvider] = None,
        semantic_client: Optional[SemanticClient] = None,
    ):
        """Build the component graph.

        Args:
            settings: Validated application settings
            keyword_provider: Override for the Whoosh provider (tests)
            semantic_client: Override for the HTTP vector client (tests)
        """
        self.settings = settings
        self.logger = get_logger(__name__)

        self.db_manager = DatabaseManager(
            ConnectionConfig(
                database_path=str(settings.get_database_path()),
                enable_wal=settings.database.enable_wal,
                connection_timeout=settings.database.timeout,
                busy_timeout=settings.database.timeout,
            )
        )
        self.keyword_provider = keyword_provider or WhooshKeywordProvider(
            str(settings.get_index_path()), settings.keyword_index
        )
        self.semantic_client = semantic_client or HttpSemanticClient(settings.semantic)

        search_config = settings.search
        self.result_cache: Optional[ResultCache] = None
        self.suggestion_cache: Optional[ResultCache] = None
        if search_config.cache_enabled:
            self.result_cache = ResultCache(
                search_config.cache_max_entries,
                search_config.cache_results_ttl,
                name="results",
            )
            self.suggestion_cache = ResultCache(
                search_config.cache_max_entries,
                search_config.cache_suggestions_ttl,
                name="suggestions",
            )

        self.analytics = AnalyticsService(self.db_manager)
        self.suggestions = SuggestionService(
            self.db_manager, settings.suggestions, self.suggestion_cache
        )
        self.orchestrator = SearchOrchestrator(
            self.keyword_provider,
            self.semantic_client,
            self.suggestions,
            self.analytics,
            config=search_config,
            semantic_timeout=settings.semantic.timeout,
            cache=self.result_cache,
        )
        self.pipeline = IndexingPipeline(
            self.keyword_provider,
            self.semantic_client,
            cache=self.result_cache,
            batch_size=settings.keyword_index.bulk_batch_size,
            reconcile_rate_limit=settings.semantic.reconcile_rate_limit,
        )
        self.events = IndexEventHandler(self.pipeline)
        self.health = HealthService(
            self.db_manager,
            self.keyword_provider,
            self.semantic_client,
            self.analytics,
        )

    async def initialize(self) -> None:
        await self.db_manager.initialize()
        self.logger.info(
            "Search application initialized",
            index_path=str(self.settings.get_index_path()),
            semantic_enabled=self.semantic_client.is_enabled(),
        )

    async def close(self) -> None:
        await self.semantic_client.close()
        await self.keyword_provider.close()
        await self.db_manager.close()

    async def __aenter__(self) -> "SearchApplication":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


def create_application(settings: Optional[Settings] = None) -> SearchApplication:
    """Create an application from ``settings`` or the environment.

    Raises:
        ConfigurationError: If the environment holds invalid settings
    """
    return SearchApplication(settings or load_settings())
