"""
Call controller for the voice front-end.

One Call is one conversation with the concierge, from start_call() to
end_call(). It reacts to recognizer callbacks, sends finished utterances to
the concierge API and speaks the replies, then hands the microphone back.

All callbacks must be invoked from the event loop thread; timers are
scheduled with loop.call_later.
"""

from __future__ import annotations

import asyncio
import random
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Literal, Optional, Protocol

from logging_setup import get_logger, Component
from .config import ClientConfig


logger = get_logger(Component.CONCIERGE_CLIENT)

DEFAULT_GREETING = "Hello! Welcome to Grand Plaza Hotel. How may I assist you today?"
FALLBACK_APOLOGY = "I apologize, but I'm having trouble processing that. Could you please repeat?"

# Recognizer error code for "heard nothing"
NO_SPEECH = "no-speech"

_BASE36 = string.digits + string.ascii_lowercase


class RecognizerError(Exception):
    """Recognizer was started while running or stopped while idle."""


class SynthesizerError(Exception):
    """Speech synthesis failed for an utterance."""


class Recognizer(Protocol):
    def start(self) -> None: ...

    def stop(self) -> None: ...


class Synthesizer(Protocol):
    async def speak(self, text: str) -> None: ...

    def cancel(self) -> None: ...


class Concierge(Protocol):
    async def ask(self, user_message: str, session_id: str, history: List[Dict[str, str]]) -> str: ...


class CallStatus(str, Enum):
    """What the call is doing right now, as shown to the guest."""
    IDLE = "idle"
    LISTENING = "listening"
    MUTED = "muted"
    PROCESSING = "processing"
    SPEAKING = "speaking"


@dataclass
class Message:
    """One line of the call transcript."""

    role: Literal["user", "bot"]
    content: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_history_entry(self) -> Dict[str, str]:
        return {
            "role": "user" if self.role == "user" else "assistant",
            "content": self.content,
        }


def new_session_id() -> str:
    """Opaque client-side session tag: session-<epoch ms>-<base36 suffix>."""
    suffix = "".join(random.choice(_BASE36) for _ in range(6))
    return f"session-{int(time.time() * 1000)}-{suffix}"


class Call:
    """Conversation loop between the guest's microphone and the concierge."""

    def __init__(
        self,
        concierge: Concierge,
        recognizer: Optional[Recognizer] = None,
        synthesizer: Optional[Synthesizer] = None,
        session_id: Optional[str] = None,
        greeting: str = DEFAULT_GREETING,
        silence_delay_ms: int = 800,
        resume_listening_delay_ms: int = 500,
        no_speech_retry_ms: int = 1000,
    ):
        self.concierge = concierge
        self.recognizer = recognizer
        self.synthesizer = synthesizer
        self.session_id = session_id or new_session_id()
        self.greeting = greeting

        self.silence_delay = silence_delay_ms / 1000
        self.resume_listening_delay = resume_listening_delay_ms / 1000
        self.no_speech_retry_delay = no_speech_retry_ms / 1000

        self.messages: List[Message] = []
        self.current_transcript = ""
        self.is_call_active = False
        self.is_listening = False
        self.is_processing = False
        self.is_speaking = False

        self._silence_timer: Optional[asyncio.TimerHandle] = None
        self._retry_timer: Optional[asyncio.TimerHandle] = None
        self._turn_task: Optional[asyncio.Task] = None

        self.logger = logger.with_session(self.session_id)

    @classmethod
    def from_config(
        cls,
        concierge: Concierge,
        config: ClientConfig,
        recognizer: Optional[Recognizer] = None,
        synthesizer: Optional[Synthesizer] = None,
    ) -> "Call":
        return cls(
            concierge,
            recognizer=recognizer,
            synthesizer=synthesizer,
            silence_delay_ms=config.silence_delay_ms,
            resume_listening_delay_ms=config.resume_listening_delay_ms,
            no_speech_retry_ms=config.no_speech_retry_ms,
        )

    @property
    def status(self) -> CallStatus:
        if not self.is_call_active:
            return CallStatus.IDLE
        if self.is_speaking:
            return CallStatus.SPEAKING
        if self.is_processing:
            return CallStatus.PROCESSING
        if self.is_listening:
            return CallStatus.LISTENING
        return CallStatus.MUTED

    # --- recognizer plumbing ---

    def _start_recognition(self) -> None:
        if self.recognizer is None:
            return
        try:
            self.recognizer.start()
        except RecognizerError:
            self.logger.debug("Recognition already started")

    def _stop_recognition(self) -> None:
        if self.recognizer is None:
            return
        try:
            self.recognizer.stop()
        except RecognizerError:
            self.logger.debug("Recognition already stopped")

    def _cancel_silence_timer(self) -> None:
        if self._silence_timer is not None:
            self._silence_timer.cancel()
            self._silence_timer = None

    def _cancel_retry_timer(self) -> None:
        if self._retry_timer is not None:
            self._retry_timer.cancel()
            self._retry_timer = None

    # --- call lifecycle ---

    async def start_call(self) -> None:
        """Open the call: reset the transcript and speak the greeting."""
        self.is_call_active = True
        self.is_listening = True
        self.messages = [Message(role="bot", content=self.greeting)]
        self.logger.info("Call started")
        await self.speak(self.greeting)

    def end_call(self) -> None:
        """Hang up: silence everything and drop pending timers."""
        self.is_call_active = False
        self.is_listening = False
        self._stop_recognition()
        if self.synthesizer is not None:
            self.synthesizer.cancel()
        self._cancel_silence_timer()
        self._cancel_retry_timer()
        self.current_transcript = ""
        self.is_speaking = False
        self.logger.info("Call ended", messages=len(self.messages))

    def toggle_listening(self) -> bool:
        """
        Mute or unmute the microphone.

        Ignored while the concierge is thinking or speaking; returns whether
        the toggle was applied.
        """
        if self.is_speaking or self.is_processing:
            return False
        if self.is_listening:
            self._stop_recognition()
            self.is_listening = False
        else:
            self._start_recognition()
            self.is_listening = True
        return True

    # --- recognizer callbacks ---

    def on_recognition_result(self, text: str, is_final: bool) -> None:
        """
        Interim or final transcript from the recognizer.

        Every result resets the silence timer; a final result arms it, and the
        utterance is sent once the guest has been quiet for the silence delay.
        """
        if not self.is_call_active:
            return
        self.current_transcript = text
        self._cancel_silence_timer()

        if is_final and text.strip():
            loop = asyncio.get_running_loop()
            self._silence_timer = loop.call_later(self.silence_delay, self._on_silence, text)

    def _on_silence(self, text: str) -> None:
        self._silence_timer = None
        self._turn_task = asyncio.get_running_loop().create_task(self.handle_user_message(text))

    def on_recognition_end(self) -> None:
        """Recognizer stopped on its own; keep the microphone open while listening."""
        if self.is_call_active and self.is_listening and not self.is_speaking:
            self._start_recognition()

    def on_recognition_error(self, error: str) -> None:
        self.logger.warning("Speech recognition error", error=error)
        if error == NO_SPEECH and self.is_call_active:
            self._cancel_retry_timer()
            loop = asyncio.get_running_loop()
            self._retry_timer = loop.call_later(self.no_speech_retry_delay, self._retry_recognition)

    def _retry_recognition(self) -> None:
        self._retry_timer = None
        if self.is_call_active and self.is_listening:
            self._start_recognition()

    # --- turns ---

    async def handle_user_message(self, text: str) -> None:
        """
        Send one utterance to the concierge and speak the answer.

        The history sent is the transcript before this utterance. Any failure
        is answered with a spoken apology instead of the concierge's reply.
        """
        if not text.strip():
            return

        self.current_transcript = ""
        self.is_processing = True
        self._stop_recognition()

        history = [m.as_history_entry() for m in self.messages]
        self.messages.append(Message(role="user", content=text))
        self.logger.debug_pii("Utterance captured", user_message=text)

        try:
            reply = await self.concierge.ask(text, self.session_id, history)
            self.messages.append(Message(role="bot", content=reply))
            await self.speak(reply)
        except Exception as e:
            self.logger.warning(
                "Error processing message",
                error=str(e),
                error_type=type(e).__name__,
            )
            self.messages.append(Message(role="bot", content=FALLBACK_APOLOGY))
            await self.speak(FALLBACK_APOLOGY)
        finally:
            self.is_processing = False

    async def speak(self, text: str) -> None:
        """
        Speak text, then reopen the microphone after a short pause if the call
        is still active and listening.

        A failed synthesis leaves the microphone closed.
        """
        if self.synthesizer is not None:
            self.synthesizer.cancel()
            self.is_speaking = True
            try:
                await self.synthesizer.speak(text)
            except SynthesizerError as e:
                self.logger.warning("Speech synthesis failed", error=str(e))
                return
            except Exception as e:
                self.logger.exception("Synthesizer crashed", error_type=type(e).__name__)
                return
            finally:
                self.is_speaking = False

        await asyncio.sleep(self.resume_listening_delay)
        if self.is_call_active and self.is_listening:
            self._start_recognition()
