"""Application configuration settings."""

from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..exceptions import ConfigurationError

WEIGHT_TOLERANCE = 0.01


class LoggingConfig(BaseSettings):
    """Logging configuration settings."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: str = Field(default="INFO", description="Log level")
    file_path: Optional[str] = Field(default=None, description="Log file path")
    json_format: bool = Field(default=True, description="Use JSON log format")


class DatabaseConfig(BaseSettings):
    """Database configuration for the suggestion and analytics stores."""

    model_config = SettingsConfigDict(env_prefix="DB_")

    path: str = Field(default="hybrid_search.db", description="Database file path")
    enable_wal: bool = Field(default=True, description="Enable WAL journal mode")
    timeout: float = Field(default=30.0, description="Connection timeout in seconds")


class KeywordIndexConfig(BaseSettings):
    """Keyword (full-text) index configuration."""

    model_config = SettingsConfigDict(env_prefix="KEYWORD_INDEX_")

    index_directory: str = Field(
        default="keyword_index", description="Whoosh index directory"
    )
    query_timeout: float = Field(
        default=5.0, gt=0, description="Statement timeout in seconds"
    )
    bulk_batch_size: int = Field(
        default=100, ge=1, description="Documents per bulk indexing batch"
    )


class SemanticSearchConfig(BaseSettings):
    """Remote vector service configuration."""

    model_config = SettingsConfigDict(env_prefix="SEMANTIC_")

    enabled: bool = Field(default=True, description="Enable semantic search")
    base_url: Optional[str] = Field(
        default=None, description="Vector service base URL"
    )
    timeout: float = Field(
        default=10.0, gt=0, description="Per-call deadline in seconds"
    )
    failure_threshold: int = Field(
        default=5, ge=1, description="Failures before the circuit opens"
    )
    recovery_timeout: float = Field(
        default=30.0, ge=0, description="Seconds before a half-open retry"
    )
    reconcile_rate_limit: int = Field(
        default=10, ge=1, description="Vector index calls per second when reconciling"
    )


class RankingWeights(BaseSettings):
    """Weights of the fused ranking model; they must sum to 1.0."""

    model_config = SettingsConfigDict(env_prefix="SEARCH_WEIGHTS_")

    keyword: float = Field(default=0.4, ge=0, le=1)
    semantic: float = Field(default=0.2, ge=0, le=1)
    recency: float = Field(default=0.2, ge=0, le=1)
    popularity: float = Field(default=0.2, ge=0, le=1)

    @model_validator(mode="after")
    def check_sum(self) -> "RankingWeights":
        total = self.keyword + self.semantic + self.recency + self.popularity
        if abs(total - 1.0) > WEIGHT_TOLERANCE:
            raise ValueError(f"Search ranking weights must sum to 1.0, got {total}")
        return self


class SearchConfig(BaseSettings):
    """Search orchestration settings."""

    model_config = SettingsConfigDict(env_prefix="SEARCH_")

    default_limit: int = Field(default=20, ge=1, le=100)
    max_limit: int = Field(default=100, ge=1, le=1000)
    suggestion_threshold: int = Field(
        default=3, ge=0, description="Below this many results, attach suggestions"
    )
    fallback_suggestion_limit: int = Field(default=5, ge=1, le=20)
    suggestion_timeout: float = Field(
        default=2.0, gt=0, description="Deadline for the suggestion fallback"
    )
    enable_analytics: bool = Field(default=True)
    enable_learning: bool = Field(
        default=True, description="Learn suggestion terms from successful queries"
    )
    cache_enabled: bool = Field(default=True)
    cache_results_ttl: int = Field(default=300, ge=1, le=3600)
    cache_suggestions_ttl: int = Field(default=3600, ge=1, le=3600)
    cache_max_entries: int = Field(default=1000, ge=1)

    weights: RankingWeights = Field(default_factory=RankingWeights)


class SuggestionConfig(BaseSettings):
    """Autocomplete suggestion settings."""

    model_config = SettingsConfigDict(env_prefix="SUGGESTION_")

    default_limit: int = Field(default=5, ge=1, le=20)
    max_limit: int = Field(default=20, ge=1, le=20)
    cleanup_days: int = Field(default=90, ge=1)
    min_frequency: int = Field(default=5, ge=1)
    frequency_cap: int = Field(default=100, ge=1)
    recency_window_days: int = Field(default=30, ge=1)


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    keyword_index: KeywordIndexConfig = Field(default_factory=KeywordIndexConfig)
    semantic: SemanticSearchConfig = Field(default_factory=SemanticSearchConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    suggestions: SuggestionConfig = Field(default_factory=SuggestionConfig)

    debug: bool = Field(default=False, description="Enable debug mode")
    data_dir: str = Field(default="data", description="Data directory path")

    def get_log_file_path(self) -> Optional[Path]:
        """Get the log file path if configured."""
        if self.logging.file_path:
            return Path(self.logging.file_path)
        return None

    def get_database_path(self) -> Path:
        """Get the database file path."""
        if Path(self.database.path).is_absolute():
            return Path(self.database.path)
        return Path(self.data_dir) / self.database.path

    def get_index_path(self) -> Path:
        """Get the keyword index directory path."""
        index_path = Path(self.keyword_index.index_directory)
        if index_path.is_absolute():
            return index_path
        return Path(self.data_dir) / index_path


def load_settings(overrides: Optional[Dict[str, Any]] = None) -> Settings:
    """Build settings from the environment plus optional nested overrides.

    Raises:
        ConfigurationError: If any value fails validation, including ranking
            weights that do not sum to 1.0
    """
    try:
        return Settings(**(overrides or {}))
    except ValidationError as e:
        raise ConfigurationError(
            "Invalid search engine configuration",
            {"errors": [error["msg"] for error in e.errors()]},
        ) from e
