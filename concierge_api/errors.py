"""
Error handling for the concierge API.
Maps failures to stable categories and stable JSON error bodies.
"""
from typing import Any, Dict, Optional


class ErrorCategory:
    """Stable error categories."""

    # Caller mistakes
    MISSING_FIELDS = "request.missing_fields"
    INVALID_BODY = "request.invalid_body"
    UNAUTHORIZED = "request.unauthorized"

    # Conversation log
    LOG_WRITE_FAILED = "log.write_failed"

    # Anything else
    INTERNAL_ERROR = "internal.error"


_STATUS_CODES = {
    ErrorCategory.MISSING_FIELDS: 400,
    ErrorCategory.INVALID_BODY: 400,
    ErrorCategory.UNAUTHORIZED: 401,
    ErrorCategory.LOG_WRITE_FAILED: 500,
    ErrorCategory.INTERNAL_ERROR: 500,
}

_MESSAGES = {
    ErrorCategory.MISSING_FIELDS: "Missing required fields",
    ErrorCategory.INVALID_BODY: "Invalid request body",
    ErrorCategory.UNAUTHORIZED: "Unauthorized",
}


class ConciergeAPIError(Exception):
    """Raised for request failures that map onto a stable category."""

    def __init__(self, category: str, detail: Optional[str] = None):
        self.category = category
        self.detail = detail
        super().__init__(detail or _MESSAGES.get(category, category))

    @property
    def status_code(self) -> int:
        return _STATUS_CODES.get(self.category, 500)


class ConversationLogError(Exception):
    """Raised when a conversation row cannot be written."""


class ErrorHandler:
    """Classifies errors and renders error bodies."""

    @staticmethod
    def classify_error(error: Exception) -> str:
        """
        Classify an exception into a stable category.
        Returns error category string.
        """
        if isinstance(error, ConciergeAPIError):
            return error.category
        if isinstance(error, ConversationLogError):
            return ErrorCategory.LOG_WRITE_FAILED
        return ErrorCategory.INTERNAL_ERROR

    @staticmethod
    def status_code(category: str) -> int:
        return _STATUS_CODES.get(category, 500)

    @staticmethod
    def error_body(category: str, error: Optional[Exception] = None) -> Dict[str, Any]:
        """
        Build the JSON body returned to the caller.

        Caller mistakes get a fixed message. Server failures get the generic
        "Internal server error" plus the exception text, with anything that
        looks like a credential redacted.
        """
        if category in _MESSAGES:
            return {"error": _MESSAGES[category]}

        body: Dict[str, Any] = {"error": "Internal server error"}
        if error is not None:
            detail = str(error)
            lowered = detail.lower()
            if "secret" in lowered or "password" in lowered or "api_key" in lowered or "bearer" in lowered:
                detail = "[redacted: potential secret]"
            body["message"] = detail
        return body
