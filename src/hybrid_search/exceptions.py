"""Error taxonomy for the hybrid search engine.

Keyword-path errors surface to the caller; semantic, suggestion and
analytics errors are caught at the orchestrator and degrade the response.
"""

import time
from typing import Any, Dict, Optional


class SearchEngineError(Exception):
    """Base exception carrying a stable error code and structured context."""

    def __init__(
        self, code: str, message: str, data: Optional[Dict[str, Any]] = None
    ):
        """Initialize search engine error.

        Args:
            code: Stable machine-readable error code
            message: Human-readable error message
            data: Additional error context and debugging information
        """
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data or {}
        self.timestamp = time.time()

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to a serializable response fragment."""
        error_dict = {"code": self.code, "message": self.message}
        if self.data:
            error_dict["data"] = self.data
        return error_dict


class BackendUnavailableError(SearchEngineError):
    """The keyword index could not serve the request."""

    def __init__(self, operation: str, reason: str):
        super().__init__(
            code="backend_unavailable",
            message=f"Keyword backend unavailable during '{operation}': {reason}",
            data={
                "error_type": "backend_unavailable",
                "operation": operation,
                "reason": reason,
                "recoverable": True,
            },
        )


class UpstreamTimeoutError(SearchEngineError):
    """The semantic service did not answer within its deadline."""

    def __init__(self, operation: str, timeout_seconds: float):
        super().__init__(
            code="upstream_timeout",
            message=(
                f"Semantic service operation '{operation}' timed out "
                f"after {timeout_seconds}s"
            ),
            data={
                "error_type": "timeout_error",
                "operation": operation,
                "timeout_seconds": timeout_seconds,
                "recoverable": True,
            },
        )


class SemanticServiceError(SearchEngineError):
    """The semantic service answered with an error or could not be reached."""

    def __init__(
        self, operation: str, reason: str, status: Optional[int] = None
    ):
        data: Dict[str, Any] = {
            "error_type": "semantic_service_error",
            "operation": operation,
            "reason": reason,
        }
        if status is not None:
            data["status"] = status

        super().__init__(
            code="semantic_service_error",
            message=f"Semantic service operation '{operation}' failed: {reason}",
            data=data,
        )


class DocumentNotFoundError(SearchEngineError):
    """An explicit lookup targeted a document that is not indexed."""

    def __init__(self, entity_type: str, entity_id: str):
        super().__init__(
            code="not_found",
            message=f"Document {entity_type}/{entity_id} not found",
            data={
                "error_type": "not_found_error",
                "entity_type": entity_type,
                "entity_id": entity_id,
            },
        )
        self.entity_type = entity_type
        self.entity_id = entity_id


class ConfigurationError(SearchEngineError):
    """Configuration is invalid; raised at start-up, never per request."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(code="configuration_error", message=message, data=details)
        self.details = self.data

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message
