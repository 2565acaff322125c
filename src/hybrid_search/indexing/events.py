"""Maps upstream entity-change events onto indexing operations.

Events look like ``{"type": "user.created", "data": {...}}``. Users, files
and documents get dedicated field mappings; any other ``<type>.<action>``
event is indexed from its common descriptive fields.
"""

from typing import Any, Callable, Dict

from pydantic import ValidationError

from ..config.logging import get_logger
from ..exceptions import SearchEngineError
from ..search.models import IndexDocumentRequest
from .pipeline import IndexingPipeline

DELETE_ACTIONS = {"deleted", "removed"}
UPSERT_ACTIONS = {"created", "updated", "uploaded"}

SEARCHABLE_FIELDS = ("title", "name", "description", "content", "bio", "summary", "notes")


def _join(*parts: Any) -> str:
    return " ".join(str(part) for part in parts if part)


def _compact(values: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


def user_document(data: Dict[str, Any]) -> IndexDocumentRequest:
    profile = data.get("profile") or {}
    return IndexDocumentRequest(
        entity_type="User",
        entity_id=data["id"],
        title=data.get("username") or data.get("email") or "",
        content=_join(
            data.get("username"),
            data.get("email"),
            data.get("firstName"),
            data.get("lastName"),
            profile.get("bio"),
        ),
        metadata=_compact(
            {
                "email": data.get("email"),
                "username": data.get("username"),
                "firstName": data.get("firstName"),
                "lastName": data.get("lastName"),
            }
        ),
    )


def file_document(data: Dict[str, Any]) -> IndexDocumentRequest:
    extra = data.get("metadata") or {}
    return IndexDocumentRequest(
        entity_type="File",
        entity_id=data["id"],
        title=data.get("filename") or "",
        content=_join(
            data.get("filename"),
            extra.get("description"),
            " ".join(extra.get("tags") or []),
        ),
        metadata=_compact(
            {
                "filename": data.get("filename"),
                "mimeType": data.get("mimeType"),
                "size": data.get("size"),
                "uploadedBy": data.get("uploadedBy"),
                **extra,
            }
        ),
    )


def document_document(data: Dict[str, Any]) -> IndexDocumentRequest:
    tags = data.get("tags") or []
    return IndexDocumentRequest(
        entity_type="Document",
        entity_id=data["id"],
        title=data.get("title") or "",
        content=_join(data.get("content"), " ".join(tags)),
        metadata=_compact(
            {
                "author": data.get("author"),
                "tags": tags or None,
                "category": data.get("category"),
            }
        ),
    )


def generic_document(entity_type: str, data: Dict[str, Any]) -> IndexDocumentRequest:
    content = _join(*(data.get(name) for name in SEARCHABLE_FIELDS))
    tags = data.get("tags")
    if isinstance(tags, list):
        content = _join(content, " ".join(str(tag) for tag in tags))

    return IndexDocumentRequest(
        entity_type=entity_type,
        entity_id=data["id"],
        title=str(data.get("title") or data.get("name") or data["id"]),
        content=content,
        metadata=data.get("metadata") or {},
    )


DOCUMENT_BUILDERS: Dict[str, Callable[[Dict[str, Any]], IndexDocumentRequest]] = {
    "user": user_document,
    "file": file_document,
    "document": document_document,
}


class IndexEventHandler:
    """Applies entity events to the indexing pipeline; failures are logged."""

    def __init__(self, pipeline: IndexingPipeline):
        self.pipeline = pipeline
        self.logger = get_logger(__name__)

    async def handle(self, event: Dict[str, Any]) -> bool:
        """Apply one event; returns whether it was handled successfully."""
        event_type = str(event.get("type", ""))
        data = event.get("data") or {}
        source, _, action = event_type.partition(".")

        if not source or action not in UPSERT_ACTIONS | DELETE_ACTIONS or "id" not in data:
            self.logger.warning("Ignoring unsupported event", event_type=event_type)
            return False

        entity_type = event.get("entity_type") or self._entity_type(source)
        try:
            if action in DELETE_ACTIONS:
                await self.pipeline.remove_from_index(entity_type, str(data["id"]))
                handled = True
            else:
                result = await self.pipeline.index_document(self._build(source, entity_type, data))
                handled = result.success
        except (SearchEngineError, ValidationError) as e:
            self.logger.error(
                "Failed to handle entity event",
                event_type=event_type,
                entity_type=entity_type,
                error=str(e),
            )
            return False

        self.logger.info(
            "Handled entity event",
            event_type=event_type,
            entity_id=str(data["id"]),
            success=handled,
        )
        return handled

    @staticmethod
    def _entity_type(source: str) -> str:
        # user -> User, invoice_item -> Invoice_item
        return source[:1].upper() + source[1:]

    @staticmethod
    def _build(
        source: str, entity_type: str, data: Dict[str, Any]
    ) -> IndexDocumentRequest:
        builder = DOCUMENT_BUILDERS.get(source.lower())
        if builder is not None:
            return builder(data)
        return generic_document(entity_type, data)
