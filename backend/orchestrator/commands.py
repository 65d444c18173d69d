"""
Side-effect command definitions for the agent loop (v1).

Rules:
- Commands are declarative requests for side effects.
- Commands are emitted by the reducer and executed by the runtime.
- No behavior, no async, no I/O, no clocks.
- Reducer logic remains pure and deterministic.
Invariant:
    - All concrete Command subclasses MUST be frozen dataclasses.
    - Commands are immutable value objects emitted by the reducer.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from audio.sample import AudioSample
from orchestrator.enums.state import AgentState
from orchestrator.events import EventType

# =============================================================================
# Command Type Enumeration
# =============================================================================

class CommandType(str, Enum):
    """
    Canonical command types emitted by the reducer.

    These are stable discriminants used for logging and runtime dispatch.
    """

    # Capture
    START_CAPTURE = "START_CAPTURE"
    STOP_CAPTURE = "STOP_CAPTURE"
    DISCARD_CAPTURE = "DISCARD_CAPTURE"
    RELEASE_SAMPLE = "RELEASE_SAMPLE"

    # Intent service
    SUBMIT_INTENT = "SUBMIT_INTENT"
    CANCEL_INTENT = "CANCEL_INTENT"

    # Speech
    SPEAK = "SPEAK"
    CANCEL_SPEECH = "CANCEL_SPEECH"

    # Timers
    START_TIMER = "START_TIMER"
    CANCEL_TIMER = "CANCEL_TIMER"

    # Observers
    NOTIFY_STATE_CHANGE = "NOTIFY_STATE_CHANGE"

    # Observability
    LOG_EVENT = "LOG_EVENT"


# =============================================================================
# Base Command
# =============================================================================

class Command:
    """
    Base command type.

    command_type is an explicit discriminant and must never be inferred
    from Python type identity.
    """

    command_type: CommandType


# =============================================================================
# Capture Commands
# =============================================================================

@dataclass(frozen=True)
class StartCapture(Command):
    """Open the microphone for a new cycle."""
    cycle_id: int
    command_type: CommandType = CommandType.START_CAPTURE


@dataclass(frozen=True)
class StopCapture(Command):
    """Close the microphone and hand over the recorded sample."""
    cycle_id: int
    command_type: CommandType = CommandType.STOP_CAPTURE


@dataclass(frozen=True)
class DiscardCapture(Command):
    """Close the microphone and drop whatever was recorded."""
    cycle_id: int
    command_type: CommandType = CommandType.DISCARD_CAPTURE


@dataclass(frozen=True)
class ReleaseSample(Command):
    """Delete a recorded sample that will never be uploaded."""
    sample: AudioSample
    command_type: CommandType = CommandType.RELEASE_SAMPLE


# =============================================================================
# Intent Commands
# =============================================================================

@dataclass(frozen=True)
class SubmitIntent(Command):
    """
    Upload one sample with the mode flag captured at submission time.

    The runtime releases the sample once the request settles.
    """
    cycle_id: int
    sample: AudioSample
    active_mode: bool
    command_type: CommandType = CommandType.SUBMIT_INTENT


@dataclass(frozen=True)
class CancelIntent(Command):
    """Abandon an in-flight intent request."""
    cycle_id: int
    command_type: CommandType = CommandType.CANCEL_INTENT


# =============================================================================
# Speech Commands
# =============================================================================

@dataclass(frozen=True)
class Speak(Command):
    """
    Speak text aloud.

    The runtime must emit exactly one SpeechDone for this cycle afterwards,
    whether speech succeeded or failed.
    """
    cycle_id: int
    text: str
    command_type: CommandType = CommandType.SPEAK


@dataclass(frozen=True)
class CancelSpeech(Command):
    """Cut any ongoing speech."""
    command_type: CommandType = CommandType.CANCEL_SPEECH


# =============================================================================
# Timer Commands
# =============================================================================

@dataclass(frozen=True)
class StartTimer(Command):
    """
    Request to start a named timer.

    On expiration, the runtime must inject the specified timeout event
    stamped with cycle_id.
    """
    timer_id: str
    duration_ms: int
    timeout_event_type: EventType
    cycle_id: int
    command_type: CommandType = CommandType.START_TIMER


@dataclass(frozen=True)
class CancelTimer(Command):
    """Request to cancel a previously scheduled timer."""
    timer_id: str
    command_type: CommandType = CommandType.CANCEL_TIMER


# =============================================================================
# Observer Commands
# =============================================================================

@dataclass(frozen=True)
class NotifyStateChange(Command):
    """Tell the registered observer about one state transition."""
    from_state: AgentState
    to_state: AgentState
    command_type: CommandType = CommandType.NOTIFY_STATE_CHANGE


# =============================================================================
# Observability Commands
# =============================================================================

@dataclass(frozen=True)
class LogEvent(Command):
    """Request to emit a structured observability event."""
    event: dict[str, Any]
    command_type: CommandType = CommandType.LOG_EVENT
