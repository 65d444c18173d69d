"""
Unified event definitions for the agent loop reducer (v1).

Rules:
- Events describe facts that have occurred.
- Events carry data only (no behavior).
- All reducer decisions are based on these events.
- No clocks, no timers, no async, no side effects.

Cycle-scoped events carry the cycle_id they were produced for.
The reducer ignores any whose cycle_id is not the current one.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from audio.sample import AudioSample
from protocol.intent import IntentResponse


# =============================================================================
# Event Type Enumeration
# =============================================================================

class EventType(str, Enum):
    """
    Canonical event types understood by the reducer.

    Every (state, event_type) pair must be explicitly handled
    or explicitly ignored by the reducer.
    """

    # ------------------------------------------------------------------
    # Session control
    # ------------------------------------------------------------------
    START = "START"
    STOP = "STOP"

    # ------------------------------------------------------------------
    # Audio capture
    # ------------------------------------------------------------------
    CAPTURE_STARTED = "CAPTURE_STARTED"
    CAPTURE_FAILED = "CAPTURE_FAILED"
    CAPTURE_STOPPED = "CAPTURE_STOPPED"

    # ------------------------------------------------------------------
    # Intent service
    # ------------------------------------------------------------------
    INTENT_RECEIVED = "INTENT_RECEIVED"
    INTENT_FAILED = "INTENT_FAILED"

    # ------------------------------------------------------------------
    # Speech output
    # ------------------------------------------------------------------
    SPEECH_DONE = "SPEECH_DONE"

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------
    SAMPLE_WINDOW_ELAPSED = "SAMPLE_WINDOW_ELAPSED"
    POST_SPEECH_DELAY_ELAPSED = "POST_SPEECH_DELAY_ELAPSED"
    TALKING_COOLDOWN_ELAPSED = "TALKING_COOLDOWN_ELAPSED"
    FAILURE_BACKOFF_ELAPSED = "FAILURE_BACKOFF_ELAPSED"
    CAPTURE_RETRY_ELAPSED = "CAPTURE_RETRY_ELAPSED"


# =============================================================================
# Base Event
# =============================================================================

@dataclass(frozen=True)
class Event:
    """
    Base event type.

    All events must specify:
    - event_type: discriminant
    - ts_ms: timestamp provided by the source (or fake in tests)
    """

    event_type: EventType
    ts_ms: int


@dataclass(frozen=True)
class CycleEvent(Event):
    """
    Base class for events produced on behalf of one capture cycle.

    The reducer MUST ignore events whose cycle_id does not match the
    current cycle.
    """

    cycle_id: int


# =============================================================================
# Session Control Events
# =============================================================================

@dataclass(frozen=True)
class Start(Event):
    """Caller asked the loop to run."""


@dataclass(frozen=True)
class Stop(Event):
    """Caller asked the loop to stop (cancel everything in flight)."""


# =============================================================================
# Capture Events
# =============================================================================

@dataclass(frozen=True)
class CaptureStarted(CycleEvent):
    """Microphone is open and recording."""


@dataclass(frozen=True)
class CaptureFailed(CycleEvent):
    """Microphone could not be opened (unavailable, permission denied)."""
    reason: str


@dataclass(frozen=True)
class CaptureStopped(CycleEvent):
    """
    Microphone closed.

    sample is None when nothing usable was recorded.
    """
    sample: AudioSample | None


# =============================================================================
# Intent Events
# =============================================================================

@dataclass(frozen=True)
class IntentReceived(CycleEvent):
    """Server answered with a well-formed envelope."""
    response: IntentResponse


@dataclass(frozen=True)
class IntentFailed(CycleEvent):
    """Request failed: timeout, transport error, bad status or bad body."""
    reason: str


# =============================================================================
# Speech Events
# =============================================================================

@dataclass(frozen=True)
class SpeechDone(CycleEvent):
    """Speech adapter finished (or gave up on) the utterance."""


# =============================================================================
# Timer Events
# =============================================================================

@dataclass(frozen=True)
class SampleWindowElapsed(CycleEvent):
    """Sampling window is over; the capture should be stopped."""


@dataclass(frozen=True)
class PostSpeechDelayElapsed(CycleEvent):
    """Fixed hold after speaking is over."""


@dataclass(frozen=True)
class TalkingCooldownElapsed(CycleEvent):
    """Re-check whether speech playback has finished."""


@dataclass(frozen=True)
class FailureBackoffElapsed(CycleEvent):
    """Backoff after a failed intent request is over."""


@dataclass(frozen=True)
class CaptureRetryElapsed(CycleEvent):
    """Delay after a skipped (failed) capture is over."""


TIMER_EVENT_CLASSES: dict[EventType, type[CycleEvent]] = {
    EventType.SAMPLE_WINDOW_ELAPSED: SampleWindowElapsed,
    EventType.POST_SPEECH_DELAY_ELAPSED: PostSpeechDelayElapsed,
    EventType.TALKING_COOLDOWN_ELAPSED: TalkingCooldownElapsed,
    EventType.FAILURE_BACKOFF_ELAPSED: FailureBackoffElapsed,
    EventType.CAPTURE_RETRY_ELAPSED: CaptureRetryElapsed,
}
