"""
Conversation read API.

Lets operators inspect what was logged:
- list sessions seen by this process
- list the turns of one session
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from .conversation_log import ConversationLog
from .dependencies import get_conversation_log, require_api_key


router = APIRouter(
    prefix="/conversations",
    tags=["conversations"],
    dependencies=[Depends(require_api_key)],
)


class SessionSummary(BaseModel):
    """Session summary for the list endpoint."""
    session_id: str
    turns: int
    first_at: str
    last_at: str


class ConversationTurn(BaseModel):
    user_message: str
    bot_response: str
    created_at: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SessionConversation(BaseModel):
    session_id: str
    turns: List[ConversationTurn]
    count: int


@router.get("/sessions", response_model=List[SessionSummary])
async def list_sessions(
    conversation_log: ConversationLog = Depends(get_conversation_log),
) -> List[SessionSummary]:
    """List sessions that have at least one logged turn."""
    return [SessionSummary(**summary) for summary in conversation_log.sessions()]


@router.get("/{session_id}", response_model=SessionConversation)
async def get_session_conversation(
    session_id: str,
    limit: Optional[int] = Query(None, ge=1, le=1000, description="Max turns to return"),
    conversation_log: ConversationLog = Depends(get_conversation_log),
) -> SessionConversation:
    """Turns of one session, oldest first."""
    rows = conversation_log.query(session_id, limit=limit)
    if not rows:
        raise HTTPException(status_code=404, detail="Session not found")

    turns = [
        ConversationTurn(
            user_message=row.user_message,
            bot_response=row.bot_response,
            created_at=row.created_at.isoformat(),
            metadata=row.metadata,
        )
        for row in rows
    ]
    return SessionConversation(session_id=session_id, turns=turns, count=len(turns))
