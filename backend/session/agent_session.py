"""
Agent session: the public face of the client-side agent loop.

Owns:
- One Runtime (authoritative state + command execution)
- The adapters injected by the caller

Exposes the loop contract:
- start() / stop() (both idempotent)
- on_state_change(observer)
- read-only state and active_mode

Contains no orchestration logic; every decision happens in the reducer.
"""

from __future__ import annotations

import time
from uuid import uuid4

from constants import AGENT_TIMINGS_V1, AgentTimings
from orchestrator.enums.state import AgentState
from orchestrator.events import EventType, Start, Stop
from orchestrator.runtime import Runtime, StateObserver
from orchestrator.runtime_context import (
    CaptureAdapterProtocol,
    IntentClientProtocol,
    RuntimeExecutionContext,
    SpeechAdapterProtocol,
)
from orchestrator.state_dataclass import AgentLoopState

from observability.logger import log_event


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _new_session_id() -> str:
    return f"agent_{uuid4().hex[:12]}"


class AgentSession:
    """
    One session == one agent loop on one microphone.

    Usage:
        session = AgentSession(capture=..., speech=..., intent_client=...)
        session.on_state_change(lambda prev, cur: print(prev, "->", cur))
        await session.start()
        ...
        await session.close()
    """

    def __init__(
        self,
        *,
        capture: CaptureAdapterProtocol,
        speech: SpeechAdapterProtocol,
        intent_client: IntentClientProtocol,
        timings: AgentTimings = AGENT_TIMINGS_V1,
        session_id: str | None = None,
    ) -> None:
        self.session_id = session_id or _new_session_id()

        context = RuntimeExecutionContext(
            session_id=self.session_id,
            capture=capture,
            speech=speech,
            intent_client=intent_client,
        )
        self._runtime = Runtime(
            initial_state=AgentLoopState(timings=timings),
            context=context,
        )

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "AGENT_SESSION_CREATED",
            "session_id": self.session_id,
            "timings": {
                "sample_window_ms": timings.sample_window_ms,
                "talking_cooldown_ms": timings.talking_cooldown_ms,
                "failure_backoff_ms": timings.failure_backoff_ms,
            },
        })

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def state(self) -> AgentState:
        return self._runtime.state.state

    @property
    def active_mode(self) -> bool:
        return self._runtime.state.active_mode

    @property
    def running(self) -> bool:
        return self._runtime.state.running

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    def on_state_change(self, observer: StateObserver | None) -> None:
        """
        Register the observer called with (previous, current) on every
        transition. A later registration replaces the earlier one.
        """
        self._runtime.set_observer(observer)

    async def start(self) -> None:
        """Begin cycling. No-op while already running."""
        await self._runtime.handle_event(
            Start(event_type=EventType.START, ts_ms=_now_ms())
        )

    async def stop(self) -> None:
        """
        Halt the loop: timers cancelled, capture discarded, upload and
        speech abandoned, state IDLE, active mode cleared.
        """
        await self._runtime.handle_event(
            Stop(event_type=EventType.STOP, ts_ms=_now_ms())
        )

    async def close(self) -> None:
        """Stop the loop and wait for every runtime task to unwind."""
        await self.stop()
        await self._runtime.shutdown()

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "AGENT_SESSION_CLOSED",
            "session_id": self.session_id,
        })
