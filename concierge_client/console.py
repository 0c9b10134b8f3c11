"""
Text console front-end: type what the guest would say.

Each line typed is treated as a final transcript. Commands:
    /mute   toggle the microphone
    /quit   hang up
"""

from __future__ import annotations

import asyncio
import sys
from typing import Callable, Optional, TextIO

from logging_setup import get_logger, Component
from .api_client import ConciergeAPIClient
from .call import Call, RecognizerError
from .config import ClientConfig


logger = get_logger(Component.CONCIERGE_CLIENT)


class ConsoleRecognizer:
    """Tracks the running state a real recognizer would have."""

    def __init__(self):
        self.running = False

    def start(self) -> None:
        if self.running:
            raise RecognizerError("recognition already started")
        self.running = True

    def stop(self) -> None:
        if not self.running:
            raise RecognizerError("recognition already stopped")
        self.running = False


class ConsoleSynthesizer:
    """Prints what the concierge would say."""

    def __init__(self, write: Callable[[str], None] = print):
        self._write = write

    async def speak(self, text: str) -> None:
        self._write(f"Concierge: {text}")

    def cancel(self) -> None:
        pass


async def run_console(
    call: Call,
    stdin: TextIO = sys.stdin,
    write: Callable[[str], None] = print,
) -> None:
    """Drive a call from lines of text until EOF or /quit."""
    loop = asyncio.get_running_loop()
    await call.start_call()
    try:
        while call.is_call_active:
            line = await loop.run_in_executor(None, stdin.readline)
            if not line:
                break
            text = line.strip()
            if not text:
                continue
            if text == "/quit":
                break
            if text == "/mute":
                if call.toggle_listening():
                    write("(microphone on)" if call.is_listening else "(microphone muted)")
                continue
            if not call.is_listening:
                write("(microphone muted, type /mute to unmute)")
                continue
            # Typed lines are already final; no silence debounce needed.
            await call.handle_user_message(text)
    finally:
        if call.is_call_active:
            call.end_call()


async def main(config: Optional[ClientConfig] = None) -> None:
    config = config or ClientConfig.from_env()
    client = ConciergeAPIClient(
        config.api_url,
        api_key=config.api_key,
        timeout_seconds=config.request_timeout_seconds,
    )
    call = Call.from_config(
        client,
        config,
        recognizer=ConsoleRecognizer(),
        synthesizer=ConsoleSynthesizer(),
    )
    logger.info("Console call starting", endpoint=client.endpoint, session_id=call.session_id)
    try:
        await run_console(call)
    finally:
        await client.close()
