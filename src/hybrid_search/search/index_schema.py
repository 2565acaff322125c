"""Whoosh schema for the keyword document index.

One whoosh document per (entity_type, entity_id). The searchable ``body``
field concatenates title and content; everything needed to rebuild an
``IndexedDocument`` is kept in stored fields.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from whoosh.analysis import LowercaseFilter, RegexTokenizer
from whoosh.fields import ID, NUMERIC, STORED, TEXT, Schema

from .models import IndexedDocument, make_index_id

BODY_FIELD = "body"
KEY_FIELD = "doc_key"

# Splits on the same boundaries as query_builder.tokenize
BODY_ANALYZER = RegexTokenizer(r"\w+") | LowercaseFilter()


def create_document_schema() -> Schema:
    """Create the keyword index schema."""
    return Schema(
        doc_key=ID(stored=True, unique=True),
        entity_type=ID(stored=True),
        entity_id=ID(stored=True),
        vector_ref=ID(stored=True),
        body=TEXT(analyzer=BODY_ANALYZER),
        title=STORED(),
        content=STORED(),
        metadata=STORED(),
        rank=NUMERIC(stored=True, numtype=float),
        created_at=NUMERIC(stored=True, numtype=float),
        updated_at=NUMERIC(stored=True, numtype=float),
    )


def _to_epoch(value: Optional[datetime]) -> Optional[float]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


def _from_epoch(value: Optional[float]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


def document_to_fields(document: IndexedDocument) -> Dict[str, Any]:
    """Convert an IndexedDocument to whoosh writer keyword arguments.

    ``None`` values are left in place; whoosh skips them on write.
    """
    return {
        KEY_FIELD: make_index_id(document.entity_type, document.entity_id),
        "entity_type": document.entity_type,
        "entity_id": document.entity_id,
        "vector_ref": document.vector_ref,
        BODY_FIELD: f"{document.title} {document.content}".strip(),
        "title": document.title,
        "content": document.content,
        "metadata": dict(document.metadata or {}),
        "rank": float(document.rank or 0.0),
        "created_at": _to_epoch(document.created_at),
        "updated_at": _to_epoch(document.updated_at),
    }


def fields_to_document(stored: Dict[str, Any]) -> IndexedDocument:
    """Rebuild an IndexedDocument from a whoosh stored-fields dict."""
    return IndexedDocument(
        entity_type=stored["entity_type"],
        entity_id=stored["entity_id"],
        title=stored.get("title", ""),
        content=stored.get("content", ""),
        metadata=dict(stored.get("metadata") or {}),
        rank=float(stored.get("rank") or 0.0),
        vector_ref=stored.get("vector_ref"),
        created_at=_from_epoch(stored.get("created_at")),
        updated_at=_from_epoch(stored.get("updated_at")),
    )
