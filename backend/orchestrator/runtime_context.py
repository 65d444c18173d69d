"""
Runtime execution context.

Provides Runtime with live access to the session-owned collaborators
needed for command execution and side effects (capture, speech, intent
service).

This module contains:
- Narrow Protocols (capabilities, not implementations)
- Zero orchestration logic
- Zero state mutation
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from audio.sample import AudioSample
from protocol.intent import IntentResponse


# ---------------------------------------------------------------------
# Adapter Protocols
# ---------------------------------------------------------------------

@runtime_checkable
class CaptureAdapterProtocol(Protocol):
    async def start(self) -> None: ...
    async def stop(self) -> AudioSample | None: ...
    async def discard(self) -> None:
        """
        Close the microphone without producing a sample.
        Idempotent; a no-op when nothing is open.
        """
    def release(self, sample: AudioSample) -> None:
        """
        Delete a sample's backing resource once it is no longer needed.
        """


@runtime_checkable
class SpeechAdapterProtocol(Protocol):
    async def speak(self, text: str) -> None:
        """
        Speak text; return once playback has finished.
        """
    def cancel(self) -> None:
        """
        Best-effort interruption of ongoing speech.
        """


@runtime_checkable
class IntentClientProtocol(Protocol):
    async def submit(
        self,
        sample: AudioSample,
        *,
        active_mode: bool,
    ) -> IntentResponse: ...


# ---------------------------------------------------------------------
# Runtime Execution Context
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class RuntimeExecutionContext:
    """
    Imperative execution context for Runtime.

    Runtime is allowed to:
    - Call adapters
    - Read session metadata

    Runtime is NOT allowed to:
    - Perform orchestration decisions
    """

    session_id: str
    capture: CaptureAdapterProtocol
    speech: SpeechAdapterProtocol
    intent_client: IntentClientProtocol
