"""
Speech output adapter contract.

This module defines the *interface only*: no hold times, no retries and no
orchestration decisions live here.

Key invariants:
- speak() returns only once playback has finished (or failed).
- The agent loop decides how long to stay in TALKING afterwards.
- cancel() is a best-effort request to cut ongoing playback and MUST be
  idempotent; it is a no-op when nothing is playing.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class SpeechAdapter(ABC):
    """
    Abstract interface for a blocking-until-done text-to-speech engine.

    Non-responsibilities:
    - No text chunking
    - No state machine logic (IDLE/LISTENING/PROCESSING/TALKING)
    - No timers owned by the reducer
    """

    @abstractmethod
    async def speak(self, text: str) -> None:
        """
        Speak text aloud.

        Contract:
        - Returns after the engine reports completion.
        - Raises on engine failure; the caller treats that as "done".
        - Must NOT block the event loop while audio plays.
        """
        raise NotImplementedError

    @abstractmethod
    def cancel(self) -> None:
        """Request that ongoing speech stop as quickly as possible."""
        raise NotImplementedError
