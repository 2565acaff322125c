"""Configuration management for the hybrid search engine."""

from ..exceptions import ConfigurationError
from .settings import (
    DatabaseConfig,
    KeywordIndexConfig,
    LoggingConfig,
    RankingWeights,
    SearchConfig,
    SemanticSearchConfig,
    Settings,
    SuggestionConfig,
    load_settings,
)

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "KeywordIndexConfig",
    "LoggingConfig",
    "RankingWeights",
    "SearchConfig",
    "SemanticSearchConfig",
    "Settings",
    "SuggestionConfig",
    "load_settings",
]
