"""
Pure agent loop reducer.

(state, event) -> (new_state, commands)

Rules:
- Pure: no side effects, no IO, no clocks.
- Deterministic: output depends only on inputs.
- Total: every (state, event) pair is handled or explicitly ignored (logged).

Cycle shape:
    IDLE -> LISTENING -> PROCESSING -> (TALKING ->) IDLE -> LISTENING ...

Every path out of PROCESSING is explicit, so the loop can never stall
mid-cycle.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

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
    CaptureFailed,
    CaptureRetryElapsed,
    CaptureStarted,
    CaptureStopped,
    CycleEvent,
    Event,
    EventType,
    FailureBackoffElapsed,
    IntentFailed,
    IntentReceived,
    PostSpeechDelayElapsed,
    SampleWindowElapsed,
    SpeechDone,
    Start,
    Stop,
    TalkingCooldownElapsed,
)
from orchestrator.state_dataclass import AgentLoopState
from protocol.intent import IntentAction
from constants import WAKE_ACKNOWLEDGEMENT


# =============================================================================
# Timer IDs
# =============================================================================

TIMER_SAMPLE_WINDOW = "sample_window"
TIMER_POST_SPEECH = "post_speech_delay"
TIMER_TALKING_COOLDOWN = "talking_cooldown"
TIMER_FAILURE_BACKOFF = "failure_backoff"
TIMER_CAPTURE_RETRY = "capture_retry"

ALL_TIMERS: tuple[str, ...] = (
    TIMER_SAMPLE_WINDOW,
    TIMER_POST_SPEECH,
    TIMER_TALKING_COOLDOWN,
    TIMER_FAILURE_BACKOFF,
    TIMER_CAPTURE_RETRY,
)


# =============================================================================
# Small helpers
# =============================================================================

def _log(
    state: AgentLoopState,
    event: Event,
    decision: str,
    details: dict[str, Any] | None = None,
) -> LogEvent:
    return LogEvent(
        event={
            "ts_ms": event.ts_ms,
            "state": state.state.value,
            "event_type": event.event_type.value,
            "decision": decision,
            "cycle_id": state.cycle_id,
            "active_mode": state.active_mode,
            "details": details or {},
        }
    )


def _logs_last(commands: tuple[Command, ...]) -> tuple[Command, ...]:
    non_logs: list[Command] = []
    logs: list[Command] = []
    state_change_logs: list[Command] = []

    for command in commands:
        if isinstance(command, LogEvent):
            if command.event.get("decision") == "state_changed":
                state_change_logs.append(command)
            else:
                logs.append(command)
        else:
            non_logs.append(command)

    return tuple(non_logs + logs + state_change_logs)


def _ignore(
    state: AgentLoopState, event: Event, reason: str
) -> tuple[AgentLoopState, tuple[Command, ...]]:
    cmds: tuple[Command, ...] = (_log(state, event, "ignore", {"reason": reason}),)

    # A recording nobody will upload must still be deleted
    if isinstance(event, CaptureStopped) and event.sample is not None:
        cmds = (ReleaseSample(sample=event.sample),) + cmds

    return state, cmds


def _transition(
    old: AgentLoopState,
    new: AgentLoopState,
    event: Event,
    source: str,
) -> tuple[Command, ...]:
    """Observer notification + state_changed log, or nothing if unchanged."""
    if old.state is new.state:
        return ()
    return (
        NotifyStateChange(from_state=old.state, to_state=new.state),
        _log(
            new,
            event,
            "state_changed",
            {
                "from_state": old.state.value,
                "to_state": new.state.value,
                "source": source,
            },
        ),
    )


def _timer(
    state: AgentLoopState,
    timer_id: str,
    duration_ms: int,
    timeout_event_type: EventType,
) -> StartTimer:
    return StartTimer(
        timer_id=timer_id,
        duration_ms=duration_ms,
        timeout_event_type=timeout_event_type,
        cycle_id=state.cycle_id,
    )


# =============================================================================
# Cycle boundaries
# =============================================================================

def _begin_cycle(
    state: AgentLoopState, event: Event, source: str
) -> tuple[AgentLoopState, tuple[Command, ...]]:
    """
    Open a new capture cycle: bump cycle_id, enter LISTENING, start capture.

    Refuses (and logs) if a capture is somehow still open: the microphone
    is never opened twice.
    """
    if state.capture_open:
        return state, (_log(state, event, "capture_already_open", {"source": source}),)

    cycle_id = state.cycle_id + 1
    new_state = replace(
        state,
        state=AgentState.LISTENING,
        cycle_id=cycle_id,
        capture_open=True,
        request_in_flight=False,
        speech_done=False,
        post_speech_elapsed=False,
    )
    return new_state, _logs_last(
        _transition(state, new_state, event, source)
        + (
            _log(
                new_state,
                event,
                "begin_cycle",
                {"request_mode": Mode.from_flag(new_state.active_mode).value},
            ),
            StartCapture(cycle_id=cycle_id),
        )
    )


def _finish_cycle(
    state: AgentLoopState, event: Event, source: str
) -> tuple[AgentLoopState, tuple[Command, ...]]:
    """
    Return to IDLE, then immediately begin the next cycle while running.
    """
    cmds: tuple[Command, ...] = ()
    if state.state is AgentState.TALKING:
        cmds += (
            CancelTimer(timer_id=TIMER_POST_SPEECH),
            CancelTimer(timer_id=TIMER_TALKING_COOLDOWN),
        )

    idle = replace(
        state,
        state=AgentState.IDLE,
        request_in_flight=False,
        speech_done=False,
        post_speech_elapsed=False,
    )
    cmds += _transition(state, idle, event, source)

    if not idle.running:
        return idle, _logs_last(cmds)

    next_state, more = _begin_cycle(idle, event, "next_cycle")
    return next_state, _logs_last(cmds + more)


def _skip_cycle(
    state: AgentLoopState, event: Event, reason: str
) -> tuple[AgentLoopState, tuple[Command, ...]]:
    """
    Capture produced nothing: no request, back to IDLE, retry after a delay.
    """
    idle = replace(
        state,
        state=AgentState.IDLE,
        capture_open=False,
        last_error=reason,
    )
    return idle, _logs_last(
        (
            CancelTimer(timer_id=TIMER_SAMPLE_WINDOW),
            _timer(
                idle,
                TIMER_CAPTURE_RETRY,
                idle.timings.capture_retry_delay_ms,
                EventType.CAPTURE_RETRY_ELAPSED,
            ),
            _log(idle, event, "capture_skipped", {"reason": reason}),
        )
        + _transition(state, idle, event, "capture_skipped")
    )


def _start_talking(
    state: AgentLoopState,
    event: Event,
    text: str,
    hold_ms: int,
    source: str,
) -> tuple[AgentLoopState, tuple[Command, ...]]:
    talking = replace(
        state,
        state=AgentState.TALKING,
        speech_done=False,
        post_speech_elapsed=False,
    )
    return talking, _logs_last(
        _transition(state, talking, event, source)
        + (
            Speak(cycle_id=talking.cycle_id, text=text),
            _timer(
                talking,
                TIMER_POST_SPEECH,
                hold_ms,
                EventType.POST_SPEECH_DELAY_ELAPSED,
            ),
            _log(talking, event, "speak", {"chars": len(text), "source": source}),
        )
    )


def _stop(
    state: AgentLoopState, event: Stop
) -> tuple[AgentLoopState, tuple[Command, ...]]:
    """
    Stop is total: timers cancelled, capture discarded, request abandoned,
    speech cut, flag cleared, IDLE.
    """
    if not state.running:
        return _ignore(state, event, "not_running")

    cmds: list[Command] = [CancelTimer(timer_id=t) for t in ALL_TIMERS]
    if state.capture_open:
        cmds.append(DiscardCapture(cycle_id=state.cycle_id))
    if state.request_in_flight:
        cmds.append(CancelIntent(cycle_id=state.cycle_id))
    if state.state is AgentState.TALKING:
        cmds.append(CancelSpeech())

    new_state = replace(
        state,
        state=AgentState.IDLE,
        running=False,
        active_mode=False,
        capture_open=False,
        request_in_flight=False,
        request_active_mode=False,
        speech_done=False,
        post_speech_elapsed=False,
    )
    cmds.append(
        _log(
            new_state,
            event,
            "stop",
            {
                "discarded_capture": state.capture_open,
                "cancelled_request": state.request_in_flight,
            },
        )
    )
    return new_state, _logs_last(
        tuple(cmds) + _transition(state, new_state, event, "stop")
    )


# =============================================================================
# Per-event handlers (cycle-scoped, already gated)
# =============================================================================

def _on_capture_stopped(
    state: AgentLoopState, event: CaptureStopped
) -> tuple[AgentLoopState, tuple[Command, ...]]:
    if state.state is not AgentState.LISTENING:
        return _ignore(state, event, "capture_stopped_not_listening")

    if event.sample is None:
        return _skip_cycle(state, event, "empty_sample")

    processing = replace(
        state,
        state=AgentState.PROCESSING,
        capture_open=False,
        request_in_flight=True,
        request_active_mode=state.active_mode,
    )
    return processing, _logs_last(
        _transition(state, processing, event, "capture_stopped")
        + (
            SubmitIntent(
                cycle_id=processing.cycle_id,
                sample=event.sample,
                active_mode=processing.active_mode,
            ),
            _log(
                processing,
                event,
                "submit_intent",
                {
                    "request_mode": Mode.from_flag(processing.active_mode).value,
                    "duration_ms": event.sample.duration_ms,
                },
            ),
        )
    )


def _on_intent_received(
    state: AgentLoopState, event: IntentReceived
) -> tuple[AgentLoopState, tuple[Command, ...]]:
    if state.state is not AgentState.PROCESSING or not state.request_in_flight:
        return _ignore(state, event, "intent_not_expected")

    response = event.response
    settled = replace(state, request_in_flight=False)

    # ------------------------------------------------------------------
    # Wake-word check (request was sent in IDLE mode)
    # ------------------------------------------------------------------
    if not state.request_active_mode:
        if response.detected:
            activated = replace(settled, active_mode=True)
            new_state, cmds = _start_talking(
                activated,
                event,
                WAKE_ACKNOWLEDGEMENT,
                activated.timings.wake_post_speech_delay_ms,
                "wake_word_detected",
            )
            return new_state, _logs_last(
                (_log(new_state, event, "wake_word_detected"),) + cmds
            )

        new_state, cmds = _finish_cycle(settled, event, "wake_word_absent")
        return new_state, _logs_last(
            (_log(settled, event, "wake_word_absent"),) + cmds
        )

    # ------------------------------------------------------------------
    # Command mode (request was sent in ACTIVE mode)
    # ------------------------------------------------------------------
    stop_requested = response.action is IntentAction.STOP
    if stop_requested:
        settled = replace(settled, active_mode=False)

    intent_log = _log(
        settled,
        event,
        "intent_received",
        {
            "action": response.action.value if response.action else None,
            "has_reply": bool(response.reply),
            "deactivated": stop_requested,
        },
    )

    if response.reply:
        new_state, cmds = _start_talking(
            settled,
            event,
            response.reply,
            settled.timings.reply_post_speech_delay_ms,
            "intent_reply",
        )
        return new_state, _logs_last((intent_log,) + cmds)

    new_state, cmds = _finish_cycle(settled, event, "intent_without_reply")
    return new_state, _logs_last((intent_log,) + cmds)


def _on_intent_failed(
    state: AgentLoopState, event: IntentFailed
) -> tuple[AgentLoopState, tuple[Command, ...]]:
    if state.state is not AgentState.PROCESSING or not state.request_in_flight:
        return _ignore(state, event, "intent_failure_not_expected")

    # Stay in PROCESSING until the backoff elapses
    failed = replace(state, request_in_flight=False, last_error=event.reason)
    return failed, (
        _timer(
            failed,
            TIMER_FAILURE_BACKOFF,
            failed.timings.failure_backoff_ms,
            EventType.FAILURE_BACKOFF_ELAPSED,
        ),
        _log(failed, event, "intent_failed", {"reason": event.reason}),
    )


def _on_talking_tick(
    state: AgentLoopState, event: CycleEvent
) -> tuple[AgentLoopState, tuple[Command, ...]]:
    """
    SpeechDone / PostSpeechDelayElapsed / TalkingCooldownElapsed.

    TALKING ends once the hold has elapsed AND speech has finished;
    until then the cooldown re-checks periodically.
    """
    if state.state is not AgentState.TALKING:
        return _ignore(state, event, "not_talking")

    if isinstance(event, SpeechDone):
        new_state = replace(state, speech_done=True)
    else:
        new_state = replace(state, post_speech_elapsed=True)

    if new_state.speech_done and new_state.post_speech_elapsed:
        return _finish_cycle(new_state, event, "talking_complete")

    if isinstance(event, SpeechDone):
        return new_state, (_log(new_state, event, "speech_done_holding"),)

    return new_state, (
        _timer(
            new_state,
            TIMER_TALKING_COOLDOWN,
            new_state.timings.talking_cooldown_ms,
            EventType.TALKING_COOLDOWN_ELAPSED,
        ),
        _log(new_state, event, "still_talking"),
    )


# =============================================================================
# Reducer entrypoint
# =============================================================================

def reduce(
    state: AgentLoopState, event: Event
) -> tuple[AgentLoopState, tuple[Command, ...]]:
    """
    Pure reducer for the agent loop state machine.

    Given the current loop state and a single event, returns:
    - the next state
    - a tuple of commands describing required side effects

    Properties:
    - Deterministic: no IO, clocks, or randomness
    - Total: every (state, event) pair is handled or explicitly ignored
    - Version-safe: ignores events from previous cycles
    """
    # ------------------------------------------------------------------
    # Session control
    # ------------------------------------------------------------------
    if isinstance(event, Start):
        if state.running:
            return _ignore(state, event, "already_running")

        running = replace(state, running=True, active_mode=False, last_error=None)
        new_state, cmds = _begin_cycle(running, event, "start")
        return new_state, _logs_last((_log(running, event, "start"),) + cmds)

    if isinstance(event, Stop):
        return _stop(state, event)

    # ------------------------------------------------------------------
    # Cycle gating
    # ------------------------------------------------------------------
    if not isinstance(event, CycleEvent):
        return _ignore(state, event, "unknown_event")

    if not state.running:
        return _ignore(state, event, "not_running")

    if event.cycle_id != state.cycle_id:
        return _ignore(state, event, "stale_cycle")

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------
    if isinstance(event, CaptureStarted):
        if state.state is not AgentState.LISTENING or not state.capture_open:
            return _ignore(state, event, "capture_started_not_listening")
        return state, (
            _timer(
                state,
                TIMER_SAMPLE_WINDOW,
                state.timings.sample_window_ms,
                EventType.SAMPLE_WINDOW_ELAPSED,
            ),
            _log(state, event, "capture_started"),
        )

    if isinstance(event, CaptureFailed):
        if state.state is not AgentState.LISTENING:
            return _ignore(state, event, "capture_failed_not_listening")
        return _skip_cycle(state, event, f"capture_failed:{event.reason}")

    if isinstance(event, SampleWindowElapsed):
        if state.state is not AgentState.LISTENING or not state.capture_open:
            return _ignore(state, event, "sample_window_not_listening")
        return state, (
            StopCapture(cycle_id=state.cycle_id),
            _log(state, event, "stop_capture"),
        )

    if isinstance(event, CaptureStopped):
        return _on_capture_stopped(state, event)

    if isinstance(event, CaptureRetryElapsed):
        if state.state is not AgentState.IDLE:
            return _ignore(state, event, "capture_retry_not_idle")
        return _begin_cycle(state, event, "capture_retry")

    # ------------------------------------------------------------------
    # Intent
    # ------------------------------------------------------------------
    if isinstance(event, IntentReceived):
        return _on_intent_received(state, event)

    if isinstance(event, IntentFailed):
        return _on_intent_failed(state, event)

    if isinstance(event, FailureBackoffElapsed):
        if state.state is not AgentState.PROCESSING or state.request_in_flight:
            return _ignore(state, event, "backoff_not_pending")
        return _finish_cycle(state, event, "failure_backoff")

    # ------------------------------------------------------------------
    # Talking
    # ------------------------------------------------------------------
    if isinstance(event, (SpeechDone, PostSpeechDelayElapsed, TalkingCooldownElapsed)):
        return _on_talking_tick(state, event)

    return _ignore(state, event, "unhandled")
