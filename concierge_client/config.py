"""
Concierge client configuration.

Loads endpoint and call timing settings from environment variables.
"""
import os
from dataclasses import dataclass
from typing import Optional

from concierge_api.config import parse_int_env


@dataclass
class ClientConfig:
    """Concierge client configuration."""

    # Concierge API
    api_url: str
    api_key: Optional[str] = None
    request_timeout_seconds: int = 10

    # Call timing
    silence_delay_ms: int = 800  # wait after a final result before sending it
    resume_listening_delay_ms: int = 500  # pause after speaking before listening again
    no_speech_retry_ms: int = 1000  # restart delay after a "no-speech" recognizer error

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Load configuration from environment variables."""
        return cls(
            api_url=os.environ["CONCIERGE_API_URL"].rstrip("/"),
            api_key=os.environ.get("CONCIERGE_API_KEY") or None,
            request_timeout_seconds=parse_int_env("CONCIERGE_REQUEST_TIMEOUT_SECONDS", default=10),
            silence_delay_ms=parse_int_env("SILENCE_DELAY_MS", default=800),
            resume_listening_delay_ms=parse_int_env("RESUME_LISTENING_DELAY_MS", default=500),
            no_speech_retry_ms=parse_int_env("NO_SPEECH_RETRY_MS", default=1000),
        )
