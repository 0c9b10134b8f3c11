"""
Client for the concierge API.

One call per guest turn: POST the utterance with the transcript so far and
get the concierge's reply text back.
"""

from __future__ import annotations

import asyncio
import time
from typing import Dict, List, Optional

import aiohttp

from logging_setup import get_logger, Component


logger = get_logger(Component.CONCIERGE_CLIENT)


class ConciergeRequestError(Exception):
    """The concierge API could not produce a reply."""


class ConciergeAPIClient:
    """Thin aiohttp wrapper around POST /hotel-voice-assistant."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout_seconds: float = 10,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session = session
        self._owns_session = session is None

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/hotel-voice-assistant"

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def ask(
        self,
        user_message: str,
        session_id: str,
        history: List[Dict[str, str]],
    ) -> str:
        """
        Send one utterance and return the reply text.

        Raises ConciergeRequestError on transport failures, non-2xx answers
        and bodies without a "response" string.
        """
        body = {
            "userMessage": user_message,
            "sessionId": session_id,
            "conversationHistory": history,
        }
        start_ts = time.time()
        try:
            async with self._get_session().post(
                self.endpoint,
                json=body,
                headers=self._headers(),
                timeout=self.timeout,
            ) as resp:
                if not 200 <= resp.status < 300:
                    logger.warning(
                        "Concierge API returned an error",
                        endpoint=self.endpoint,
                        session_id=session_id,
                        status=resp.status,
                        latency_ms=int((time.time() - start_ts) * 1000),
                    )
                    raise ConciergeRequestError(f"Failed to get response (status {resp.status})")
                data = await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.warning(
                "Concierge request failed",
                endpoint=self.endpoint,
                session_id=session_id,
                error=str(e),
                error_type=type(e).__name__,
                latency_ms=int((time.time() - start_ts) * 1000),
            )
            raise ConciergeRequestError(f"Concierge request failed: {e}") from e

        reply = data.get("response") if isinstance(data, dict) else None
        if not isinstance(reply, str):
            raise ConciergeRequestError("Concierge response has no reply text")

        logger.info(
            "Concierge replied",
            session_id=session_id,
            latency_ms=int((time.time() - start_ts) * 1000),
        )
        return reply

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
