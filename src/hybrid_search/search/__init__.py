"""Search components: keyword provider, semantic client, ranking and orchestration."""

from .analytics import AnalyticsService
from .cache import ResultCache
from .keyword_provider import KeywordProvider, WhooshKeywordProvider
from .models import (
    IndexDocumentRequest,
    IndexedDocument,
    IndexResult,
    KeywordHit,
    ReconcileResult,
    ReindexResult,
    SearchMode,
    SearchRequest,
    SearchResponse,
    SearchResultItem,
    SemanticHit,
    SortOrder,
    SuggestionItem,
    SuggestionRequest,
    SuggestionResponse,
)
from .orchestrator import SearchOrchestrator
from .query_builder import build_query, build_query_string, tokenize
from .semantic_client import HttpSemanticClient, SemanticClient
from .suggestions import SuggestionService

__all__ = [
    "AnalyticsService",
    "ResultCache",
    "KeywordProvider",
    "WhooshKeywordProvider",
    "HttpSemanticClient",
    "SemanticClient",
    "SearchOrchestrator",
    "SuggestionService",
    "build_query",
    "build_query_string",
    "tokenize",
    "IndexDocumentRequest",
    "IndexedDocument",
    "IndexResult",
    "KeywordHit",
    "ReconcileResult",
    "ReindexResult",
    "SearchMode",
    "SearchRequest",
    "SearchResponse",
    "SearchResultItem",
    "SemanticHit",
    "SortOrder",
    "SuggestionItem",
    "SuggestionRequest",
    "SuggestionResponse",
]
