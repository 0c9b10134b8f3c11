"""
Conversation log: one row per answered turn, tagged by session_id.

Rows are kept in a bounded in-memory deque (FIFO) so memory cannot grow
without limit. When a path is configured each row is also appended to it as
one JSON line, which is the durable copy.
"""

from __future__ import annotations

import json
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from logging_setup import get_logger, Component
from .errors import ConversationLogError


logger = get_logger(Component.CONVERSATION_LOG)


@dataclass
class ConversationRecord:
    """One exchange: what the guest said and what the concierge answered."""

    session_id: str
    user_message: str
    bot_response: str
    created_at: datetime
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        session_id: str,
        user_message: str,
        bot_response: str,
        intent: Optional[str] = None,
        history_length: int = 0,
    ) -> "ConversationRecord":
        created_at = datetime.now(timezone.utc)
        return cls(
            session_id=session_id,
            user_message=user_message,
            bot_response=bot_response,
            created_at=created_at,
            metadata={
                "timestamp": created_at.isoformat(),
                "messageLength": len(user_message),
                "intent": intent,
                "historyLength": history_length,
            },
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "user_message": self.user_message,
            "bot_response": self.bot_response,
            "created_at": self.created_at.isoformat(),
            "metadata": self.metadata,
        }


class ConversationLog:
    """
    Bounded conversation store with an optional JSON-lines file.

    Default max size: 10,000 rows (configurable).
    """

    def __init__(self, max_rows: int = 10000, path: Optional[str | Path] = None):
        if max_rows < 1:
            raise ValueError("max_rows must be at least 1")
        self._rows: deque[ConversationRecord] = deque(maxlen=max_rows)
        self.path = Path(path) if path else None

    def append(self, record: ConversationRecord) -> None:
        """
        Store a row.

        The file write happens first; a row that could not be persisted is
        not kept in memory either. Raises ConversationLogError on failure.
        """
        if self.path is not None:
            line = json.dumps(record.to_dict(), ensure_ascii=False)
            try:
                with open(self.path, "a", encoding="utf-8") as f:
                    f.write(line)
                    f.write("\n")
            except OSError as e:
                raise ConversationLogError(f"Could not write conversation log {self.path}: {e}") from e

        self._rows.append(record)
        logger.debug(
            "Conversation row stored",
            session_id=record.session_id,
            intent=record.metadata.get("intent"),
        )

    def query(self, session_id: str, limit: Optional[int] = None) -> List[ConversationRecord]:
        """Rows for one session, oldest first."""
        results: List[ConversationRecord] = []
        for row in self._rows:
            if row.session_id != session_id:
                continue
            results.append(row)
            if limit and len(results) >= limit:
                break
        return results

    def sessions(self) -> List[Dict[str, Any]]:
        """Per-session summaries in first-seen order."""
        summaries: Dict[str, Dict[str, Any]] = {}
        for row in self._rows:
            summary = summaries.get(row.session_id)
            if summary is None:
                summaries[row.session_id] = {
                    "session_id": row.session_id,
                    "turns": 1,
                    "first_at": row.created_at.isoformat(),
                    "last_at": row.created_at.isoformat(),
                }
            else:
                summary["turns"] += 1
                summary["last_at"] = row.created_at.isoformat()
        return list(summaries.values())

    def __len__(self) -> int:
        return len(self._rows)
