"""
Runtime execution shell for a single agent session.

Responsibilities:
- Own the authoritative loop state
- Call the pure reducer
- Execute commands with side effects (capture, upload, speech, timers)
- Convert adapter results and timer expiry into events
- Notify the registered state observer

Non-responsibilities:
- Orchestration decisions (reducer only)
- Transport details (adapters only)
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Coroutine
from typing import Any, Callable

from audio.sample import AudioSample
from orchestrator.reducer import reduce
from orchestrator.commands import (
    CancelIntent,
    CancelSpeech,
    CancelTimer,
    Command,
    DiscardCapture,
    LogEvent,
    NotifyStateChange,
    ReleaseSample,
    Speak,
    StartCapture,
    StartTimer,
    StopCapture,
    SubmitIntent,
)
from orchestrator.enums.mode import Mode
from orchestrator.enums.state import AgentState
from orchestrator.events import (
    TIMER_EVENT_CLASSES,
    CaptureFailed,
    CaptureStarted,
    CaptureStopped,
    Event,
    EventType,
    IntentFailed,
    IntentReceived,
    SpeechDone,
)
from orchestrator.runtime_context import RuntimeExecutionContext
from orchestrator.state_dataclass import AgentLoopState

from observability.logger import log_event, log_exception
from observability.metrics import timed


StateObserver = Callable[[AgentState, AgentState], None]

# Keys for the cancellable adapter tasks (at most one of each at a time)
_TASK_CAPTURE = "capture"
_TASK_INTENT = "intent"
_TASK_SPEECH = "speech"


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class Runtime:
    """
    Runtime execution boundary for a single agent session.

    Architectural role:
    Runtime is the bridge between the pure orchestration layer
    (reducer + immutable state) and the imperative world
    (microphone, HTTP, speech, logging, time).

    Guarantees:
    - Reducer is always called exactly once per incoming event
    - State is swapped before any command executes
    - Commands are executed in reducer-emitted order, without awaiting,
      so no other event can interleave with a reduction
    - Adapter calls run in tasks that re-enter handle_event() with
      their outcome; adapter exceptions never escape those tasks
    - Timers emit events back into handle_event (single entry point)
    """

    def __init__(
        self,
        *,
        initial_state: AgentLoopState,
        context: RuntimeExecutionContext,
    ) -> None:
        self._state = initial_state
        self._ctx = context
        self._observer: StateObserver | None = None

        self._timers: dict[str, asyncio.Task[None]] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}

        # Every task spawned by this runtime, for shutdown
        self._background: set[asyncio.Future[Any]] = set()

    @property
    def state(self) -> AgentLoopState:
        """
        Return the current immutable loop state.

        Consumers must never modify this state directly; it only changes
        through the reducer.
        """
        return self._state

    def set_observer(self, observer: StateObserver | None) -> None:
        """Register the single state observer (last registration wins)."""
        self._observer = observer

    async def handle_event(self, event: Event) -> None:
        """
        Process a single event through the orchestration pipeline.

        This method is the *only* entry point for events affecting
        loop state. All event sources converge here:
        - Session (start / stop)
        - Adapter tasks (capture, intent, speech outcomes)
        - Timers
        """
        new_state, commands = reduce(self._state, event)
        self._state = new_state

        for cmd in commands:
            self._execute_command(cmd)

    async def shutdown(self) -> None:
        """
        Clean shutdown of runtime.

        Cancels timers, the in-flight upload and speech, then waits for
        every spawned task to finish. Capture tasks are left to complete
        so the microphone discard always runs and stray samples are
        released.
        """
        for timer_id in list(self._timers.keys()):
            self._cancel_timer(timer_id)

        self._cancel_task(_TASK_INTENT)
        self._cancel_task(_TASK_SPEECH)

        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ------------------------------------------------------------------
    # Command execution (side effects)
    # ------------------------------------------------------------------

    def _execute_command(self, cmd: Command) -> None:
        """Execute a single command with side effects."""

        if isinstance(cmd, LogEvent):
            log_event({
                **cmd.event,
                "session_id": self._ctx.session_id,
            })

        elif isinstance(cmd, NotifyStateChange):
            self._notify(cmd.from_state, cmd.to_state)

        # Capture operations are chained: each one waits for the previous
        # capture task, so the device sees start/stop/discard in order
        elif isinstance(cmd, StartCapture):
            previous = self._tasks.get(_TASK_CAPTURE)
            self._spawn(
                self._run_start_capture(cmd.cycle_id, previous),
                key=_TASK_CAPTURE,
            )

        elif isinstance(cmd, StopCapture):
            previous = self._tasks.get(_TASK_CAPTURE)
            self._spawn(
                self._run_stop_capture(cmd.cycle_id, previous),
                key=_TASK_CAPTURE,
            )

        elif isinstance(cmd, DiscardCapture):
            # A pending start/stop is not cancelled: its outcome event is
            # ignored by the reducer, which releases any sample it carries
            previous = self._tasks.get(_TASK_CAPTURE)
            self._spawn(
                self._run_discard_capture(cmd.cycle_id, previous),
                key=_TASK_CAPTURE,
            )

        elif isinstance(cmd, ReleaseSample):
            self._release(cmd.sample)

        elif isinstance(cmd, SubmitIntent):
            self._spawn(self._run_submit_intent(cmd), key=_TASK_INTENT)

        elif isinstance(cmd, CancelIntent):
            self._cancel_task(_TASK_INTENT)
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "intent_cancel_executed",
                "session_id": self._ctx.session_id,
                "cycle_id": cmd.cycle_id,
            })

        elif isinstance(cmd, Speak):
            self._spawn(self._run_speak(cmd), key=_TASK_SPEECH)

        elif isinstance(cmd, CancelSpeech):
            self._cancel_task(_TASK_SPEECH)
            try:
                self._ctx.speech.cancel()
            except Exception as exc:  # pylint: disable=broad-exception-caught
                log_exception("SPEECH_CANCEL_FAILED", exc, session_id=self._ctx.session_id)

        elif isinstance(cmd, StartTimer):
            self._start_timer(
                timer_id=cmd.timer_id,
                duration_ms=cmd.duration_ms,
                timeout_event_type=cmd.timeout_event_type,
                cycle_id=cmd.cycle_id,
            )

        elif isinstance(cmd, CancelTimer):
            self._cancel_timer(cmd.timer_id)

        else:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "COMMAND_NOT_IMPLEMENTED",
                "session_id": self._ctx.session_id,
                "command_type": type(cmd).__name__,
            })

    def _notify(self, from_state: AgentState, to_state: AgentState) -> None:
        observer = self._observer
        if observer is None:
            return
        try:
            observer(from_state, to_state)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_exception(
                "STATE_OBSERVER_ERROR",
                exc,
                session_id=self._ctx.session_id,
                to_state=to_state.value,
            )

    def _release(self, sample: AudioSample) -> None:
        try:
            self._ctx.capture.release(sample)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_exception(
                "SAMPLE_RELEASE_FAILED",
                exc,
                session_id=self._ctx.session_id,
                path=sample.path,
            )

    # ------------------------------------------------------------------
    # Adapter tasks
    # ------------------------------------------------------------------

    @staticmethod
    async def _after(previous: asyncio.Task[None] | None) -> None:
        if previous is not None and not previous.done():
            await asyncio.gather(previous, return_exceptions=True)

    async def _run_start_capture(
        self,
        cycle_id: int,
        previous: asyncio.Task[None] | None = None,
    ) -> None:
        await self._after(previous)
        try:
            await self._ctx.capture.start()
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_exception(
                "CAPTURE_START_FAILED",
                exc,
                session_id=self._ctx.session_id,
                cycle_id=cycle_id,
            )
            await self.handle_event(
                CaptureFailed(
                    event_type=EventType.CAPTURE_FAILED,
                    ts_ms=_now_ms(),
                    cycle_id=cycle_id,
                    reason=type(exc).__name__,
                )
            )
            return

        await self.handle_event(
            CaptureStarted(
                event_type=EventType.CAPTURE_STARTED,
                ts_ms=_now_ms(),
                cycle_id=cycle_id,
            )
        )

    async def _run_stop_capture(
        self,
        cycle_id: int,
        previous: asyncio.Task[None] | None = None,
    ) -> None:
        await self._after(previous)

        # The device is closed before encoding; once stop() is running the
        # file gets written whether or not this task survives
        stop_task = asyncio.ensure_future(self._ctx.capture.stop())
        self._track(stop_task)

        sample: AudioSample | None
        try:
            sample = await asyncio.shield(stop_task)
        except asyncio.CancelledError:
            stop_task.add_done_callback(self._release_orphan)
            raise
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_exception(
                "CAPTURE_STOP_FAILED",
                exc,
                session_id=self._ctx.session_id,
                cycle_id=cycle_id,
            )
            sample = None

        await self.handle_event(
            CaptureStopped(
                event_type=EventType.CAPTURE_STOPPED,
                ts_ms=_now_ms(),
                cycle_id=cycle_id,
                sample=sample,
            )
        )

    async def _run_discard_capture(
        self,
        cycle_id: int,
        previous: asyncio.Task[None] | None = None,
    ) -> None:
        await self._after(previous)
        try:
            await self._ctx.capture.discard()
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_exception(
                "CAPTURE_DISCARD_FAILED",
                exc,
                session_id=self._ctx.session_id,
                cycle_id=cycle_id,
            )
            return

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "capture_discard_executed",
            "session_id": self._ctx.session_id,
            "cycle_id": cycle_id,
        })

    async def _run_submit_intent(self, cmd: SubmitIntent) -> None:
        event: Event
        try:
            with timed(
                "intent_request_latency",
                session_id=self._ctx.session_id,
                details={"mode": Mode.from_flag(cmd.active_mode).value},
            ):
                response = await self._ctx.intent_client.submit(
                    cmd.sample,
                    active_mode=cmd.active_mode,
                )
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_exception(
                "INTENT_REQUEST_FAILED",
                exc,
                session_id=self._ctx.session_id,
                cycle_id=cmd.cycle_id,
            )
            event = IntentFailed(
                event_type=EventType.INTENT_FAILED,
                ts_ms=_now_ms(),
                cycle_id=cmd.cycle_id,
                reason=f"{type(exc).__name__}: {exc}",
            )
        else:
            event = IntentReceived(
                event_type=EventType.INTENT_RECEIVED,
                ts_ms=_now_ms(),
                cycle_id=cmd.cycle_id,
                response=response,
            )
        finally:
            # Samples never outlive their cycle
            self._release(cmd.sample)

        await self.handle_event(event)

    async def _run_speak(self, cmd: Speak) -> None:
        try:
            await self._ctx.speech.speak(cmd.text)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_exception(
                "SPEECH_FAILED",
                exc,
                session_id=self._ctx.session_id,
                cycle_id=cmd.cycle_id,
            )

        await self.handle_event(
            SpeechDone(
                event_type=EventType.SPEECH_DONE,
                ts_ms=_now_ms(),
                cycle_id=cmd.cycle_id,
            )
        )

    # ------------------------------------------------------------------
    # Task management
    # ------------------------------------------------------------------

    def _spawn(
        self,
        coro: Coroutine[Any, Any, None],
        *,
        key: str | None = None,
    ) -> None:
        task = asyncio.create_task(coro)
        self._track(task)
        if key is not None:
            self._tasks[key] = task

            def _unkey(t: asyncio.Task[None]) -> None:
                if self._tasks.get(key) is t:
                    self._tasks.pop(key, None)

            task.add_done_callback(_unkey)

    def _track(self, task: asyncio.Future[Any]) -> None:
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _release_orphan(self, task: asyncio.Future[Any]) -> None:
        """Release a sample produced by a stop() nobody is waiting for."""
        if task.cancelled() or task.exception() is not None:
            return
        sample = task.result()
        if sample is not None:
            self._release(sample)

    def _cancel_task(self, key: str) -> None:
        task = self._tasks.pop(key, None)
        if task is not None and not task.done():
            task.cancel()

    # ------------------------------------------------------------------
    # Timer management
    # ------------------------------------------------------------------

    def _start_timer(
        self,
        *,
        timer_id: str,
        duration_ms: int,
        timeout_event_type: EventType,
        cycle_id: int,
    ) -> None:
        """
        Start or replace a timer that emits a timeout event.

        Timer tasks re-enter handle_event() when they expire,
        maintaining the single event entry point invariant.
        """
        self._cancel_timer(timer_id)

        event_cls = TIMER_EVENT_CLASSES.get(timeout_event_type)
        if event_cls is None:
            raise ValueError(
                f"Unknown timeout event type: {timeout_event_type} "
                f"for timer_id: {timer_id}"
            )

        async def _timer_task() -> None:
            try:
                await asyncio.sleep(duration_ms / 1000.0)
            except asyncio.CancelledError:
                # Timer was cancelled - this is normal
                return

            self._timers.pop(timer_id, None)
            await self.handle_event(
                event_cls(
                    event_type=timeout_event_type,
                    ts_ms=_now_ms(),
                    cycle_id=cycle_id,
                )
            )

        self._timers[timer_id] = asyncio.create_task(_timer_task())

    def _cancel_timer(self, timer_id: str) -> None:
        """
        Cancel an in-flight timer if it exists.

        Idempotent: safe to call even if timer doesn't exist.
        """
        task = self._timers.pop(timer_id, None)
        if task is not None and not task.done():
            task.cancel()
