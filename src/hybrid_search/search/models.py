"""Request and result types for search, indexing and suggestions."""

import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator

# Values allowed inside document metadata; nested maps and lists recurse.
MetadataValue = Union[str, int, float, bool, None, Dict[str, Any], List[Any]]
Metadata = Dict[str, MetadataValue]


class SearchMode(str, Enum):
    """Which backends a search consults."""

    KEYWORD = "keyword"
    SEMANTIC = "semantic"
    HYBRID = "hybrid"


class SortOrder(str, Enum):
    """Result ordering requested by the caller."""

    RELEVANCE = "relevance"
    DATE_DESC = "date_desc"
    DATE_ASC = "date_asc"
    POPULARITY = "popularity"


def _check_metadata_value(value: Any, path: str) -> None:
    if value is None or isinstance(value, (str, int, float, bool)):
        return
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise ValueError(f"metadata key at '{path}' must be a string")
            _check_metadata_value(item, f"{path}.{key}")
        return
    if isinstance(value, list):
        for position, item in enumerate(value):
            _check_metadata_value(item, f"{path}[{position}]")
        return
    raise ValueError(
        f"unsupported metadata value at '{path}': {type(value).__name__}"
    )


class SearchRequest(BaseModel):
    """A search as received at the boundary."""

    query: str = ""
    entity_types: Optional[List[str]] = None
    mode: SearchMode = SearchMode.HYBRID
    sort_by: SortOrder = SortOrder.RELEVANCE
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)
    fuzzy: bool = True
    filters: Dict[str, Any] = Field(default_factory=dict)
    user_id: Optional[str] = None

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def entity_type_hint(self) -> Optional[str]:
        """First requested entity type, used for analytics and learning."""
        if self.entity_types:
            return self.entity_types[0]
        return None

    def cache_key(self) -> str:
        """Canonical key for result caching; the caller identity is excluded."""
        payload = self.model_dump(mode="json", exclude={"user_id"})
        if payload.get("entity_types"):
            payload["entity_types"] = sorted(payload["entity_types"])
        canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class IndexDocumentRequest(BaseModel):
    """A document to upsert into the search indexes."""

    entity_type: str = Field(min_length=1)
    entity_id: str = Field(min_length=1)
    title: str = ""
    content: str = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)
    rank: float = 0.0

    @field_validator("entity_id", mode="before")
    @classmethod
    def coerce_entity_id(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("metadata")
    @classmethod
    def check_metadata(cls, value: Dict[str, Any]) -> Dict[str, Any]:
        for key, item in value.items():
            _check_metadata_value(item, key)
        return value

    @property
    def index_id(self) -> str:
        return make_index_id(self.entity_type, self.entity_id)


class SuggestionRequest(BaseModel):
    """Autocomplete lookup as received at the boundary."""

    query: str
    entity_type: Optional[str] = None
    limit: int = Field(default=5, ge=1, le=20)


def _escape_key_part(value: str) -> str:
    return value.replace("\\", "\\\\").replace(":", "\\:")


def make_index_id(entity_type: str, entity_id: str) -> str:
    """Unique key for (entity_type, entity_id); ``:`` inside either part is escaped."""
    return f"{_escape_key_part(entity_type)}:{_escape_key_part(entity_id)}"


@dataclass
class IndexedDocument:
    """One searchable entity as held by the keyword index."""

    entity_type: str
    entity_id: str
    title: str
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    rank: float = 0.0
    vector_ref: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def index_id(self) -> str:
        return make_index_id(self.entity_type, self.entity_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "title": self.title,
            "content": self.content,
            "metadata": self.metadata,
            "rank": self.rank,
            "vector_ref": self.vector_ref,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class KeywordHit:
    """A keyword index match with its BM25F relevance score."""

    document: IndexedDocument
    score: float

    @property
    def key(self) -> tuple:
        return (self.document.entity_type, self.document.entity_id)


@dataclass
class SemanticHit:
    """A nearest-neighbour match returned by the vector service."""

    id: str
    score: float
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SearchResultItem:
    """A single ranked result."""

    entity_type: str
    entity_id: str
    title: str
    excerpt: str
    score: float
    metadata: Dict[str, Any]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "title": self.title,
            "excerpt": self.excerpt,
            "score": self.score,
            "metadata": self.metadata,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class SearchResponse:
    """Complete search response with results and paging metadata."""

    results: List[SearchResultItem]
    total: int
    page: int
    limit: int
    total_pages: int
    execution_time_ms: float
    suggestions: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "results": [item.to_dict() for item in self.results],
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
            "total_pages": self.total_pages,
            "execution_time_ms": self.execution_time_ms,
        }
        if self.suggestions is not None:
            data["suggestions"] = self.suggestions
        return data


@dataclass
class IndexResult:
    success: bool
    index_id: str
    processing_time_ms: float
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "success": self.success,
            "index_id": self.index_id,
            "processing_time_ms": self.processing_time_ms,
        }
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class ReindexResult:
    processed: int
    successful: int
    failed: int
    failed_ids: List[str]
    processing_time_ms: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "successful": self.successful,
            "failed": self.failed,
            "failed_ids": self.failed_ids,
            "processing_time_ms": self.processing_time_ms,
        }


@dataclass
class ReconcileResult:
    """Outcome of one pass re-deriving missing vector references."""

    checked: int
    repaired: int
    failed: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "checked": self.checked,
            "repaired": self.repaired,
            "failed": self.failed,
        }


@dataclass
class SuggestionItem:
    term: str
    score: float
    frequency: int
    entity_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "term": self.term,
            "score": self.score,
            "entity_type": self.entity_type,
            "frequency": self.frequency,
        }


@dataclass
class SuggestionResponse:
    suggestions: List[SuggestionItem]
    query: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "suggestions": [item.to_dict() for item in self.suggestions],
            "query": self.query,
        }
