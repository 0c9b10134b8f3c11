"""
FastAPI dependencies shared by the concierge routes.

Responder and conversation log are process-wide singletons built lazily from
the current config; tests swap them via app.dependency_overrides or reset().
A build failure surfaces as an internal error so the route still answers
with the JSON error body.
"""
import hmac
from typing import Optional

from fastapi import Header

from .config import get_config
from .conversation_log import ConversationLog
from .errors import ConciergeAPIError, ErrorCategory
from .responder import Responder, build_responder


_responder: Optional[Responder] = None
_conversation_log: Optional[ConversationLog] = None


def get_responder() -> Responder:
    global _responder
    if _responder is None:
        try:
            _responder = build_responder(get_config().rule_set)
        except Exception as e:
            raise ConciergeAPIError(ErrorCategory.INTERNAL_ERROR, detail=str(e)) from e
    return _responder


def get_conversation_log() -> ConversationLog:
    global _conversation_log
    if _conversation_log is None:
        config = get_config()
        try:
            _conversation_log = ConversationLog(
                max_rows=config.conversation_log_max_rows,
                path=config.conversation_log_path,
            )
        except Exception as e:
            raise ConciergeAPIError(ErrorCategory.INTERNAL_ERROR, detail=str(e)) from e
    return _conversation_log


def reset() -> None:
    """Drop the singletons so they are rebuilt from the environment."""
    global _responder, _conversation_log
    _responder = None
    _conversation_log = None


def require_api_key(authorization: Optional[str] = Header(None, alias="Authorization")) -> None:
    """
    Enforce `Authorization: Bearer <key>` when CONCIERGE_API_KEY is set.
    No key configured means the API is open.
    """
    expected = get_config().api_key
    if not expected:
        return

    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not hmac.compare_digest(token.strip().encode(), expected.encode()):
        raise ConciergeAPIError(ErrorCategory.UNAUTHORIZED)
