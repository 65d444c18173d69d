"""
Offline speech output via pyttsx3 (system voices).

pyttsx3's runAndWait() blocks, so each utterance runs on a worker thread
with its own engine instance.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Any

import pyttsx3

from adapters.tts.base import SpeechAdapter


class Pyttsx3Speech(SpeechAdapter):
    """System text-to-speech engine, one utterance at a time."""

    def __init__(self, *, rate_factor: float = 1.0, voice: str | None = None) -> None:
        self._rate_factor = rate_factor
        self._voice = voice

        self._engine: Any = None
        self._lock = threading.Lock()

    async def speak(self, text: str) -> None:
        if not text.strip():
            return
        await asyncio.to_thread(self._speak_blocking, text)

    def cancel(self) -> None:
        with self._lock:
            engine = self._engine
        if engine is not None:
            engine.stop()

    def _speak_blocking(self, text: str) -> None:
        engine = pyttsx3.init()
        if self._rate_factor != 1.0:
            rate = engine.getProperty("rate")
            engine.setProperty("rate", int(rate * self._rate_factor))
        if self._voice is not None:
            engine.setProperty("voice", self._voice)

        with self._lock:
            self._engine = engine
        try:
            engine.say(text)
            engine.runAndWait()
        finally:
            with self._lock:
                self._engine = None
