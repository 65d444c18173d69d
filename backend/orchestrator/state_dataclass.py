"""
Authoritative agent loop state container.

Rules:
- This dataclass is a pure data model.
- It contains ALL state the reducer may ever need.
- No behavior, no helpers, no derived logic.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from constants import AGENT_TIMINGS_V1, AgentTimings
from orchestrator.enums.state import AgentState


@dataclass(frozen=True)
class AgentLoopState:
    """Immutable snapshot of all loop-owned state."""

    # ------------------------------------------------------------------
    # Control state
    # ------------------------------------------------------------------
    state: AgentState = AgentState.IDLE

    # True between start() and stop()
    running: bool = False

    # True once the wake word was heard and not yet cancelled.
    # Sent to the server with every request.
    active_mode: bool = False

    # ------------------------------------------------------------------
    # Cycle tracking
    # ------------------------------------------------------------------
    # Bumped on every new capture cycle; 0 means "no cycle yet".
    cycle_id: int = 0

    # True from StartCapture until the capture is stopped, failed or
    # discarded. Never two at once.
    capture_open: bool = False

    # True from SubmitIntent until a response or failure arrives
    request_in_flight: bool = False

    # Mode flag as it was when the in-flight request was submitted
    request_active_mode: bool = False

    # ------------------------------------------------------------------
    # TALKING bookkeeping
    # ------------------------------------------------------------------
    speech_done: bool = False
    post_speech_elapsed: bool = False

    # ------------------------------------------------------------------
    # Tunables
    # ------------------------------------------------------------------
    timings: AgentTimings = field(default=AGENT_TIMINGS_V1)

    # ------------------------------------------------------------------
    # Error handling
    # ------------------------------------------------------------------
    last_error: str | None = None
