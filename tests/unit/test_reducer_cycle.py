# pylint: disable=missing-module-docstring,missing-function-docstring
from __future__ import annotations

from audio.sample import AudioSample
from constants import AGENT_TIMINGS_V1, WAKE_ACKNOWLEDGEMENT
from orchestrator.reducer import (
    reduce,
    TIMER_CAPTURE_RETRY,
    TIMER_FAILURE_BACKOFF,
    TIMER_POST_SPEECH,
    TIMER_SAMPLE_WINDOW,
    TIMER_TALKING_COOLDOWN,
)
from orchestrator.state_dataclass import AgentLoopState
from orchestrator.enums.state import AgentState
from protocol.intent import IntentAction, IntentResponse

from orchestrator.events import (
    CaptureFailed,
    CaptureRetryElapsed,
    CaptureStarted,
    CaptureStopped,
    EventType,
    FailureBackoffElapsed,
    IntentFailed,
    IntentReceived,
    PostSpeechDelayElapsed,
    SampleWindowElapsed,
    SpeechDone,
    Start,
    TalkingCooldownElapsed,
)

from orchestrator.commands import (
    Command,
    LogEvent,
    NotifyStateChange,
    Speak,
    StartCapture,
    StartTimer,
    StopCapture,
    SubmitIntent,
)


SAMPLE = AudioSample(path="/tmp/clip.wav", mime_type="audio/wav", filename="audio.wav")


# ---------------------------------------------------------------------
# Event helpers (mirror runtime construction)
# ---------------------------------------------------------------------

def start() -> Start:
    return Start(event_type=EventType.START, ts_ms=0)


def capture_started(cycle_id: int) -> CaptureStarted:
    return CaptureStarted(event_type=EventType.CAPTURE_STARTED, ts_ms=0, cycle_id=cycle_id)


def capture_failed(cycle_id: int, reason: str = "CaptureFailure") -> CaptureFailed:
    return CaptureFailed(
        event_type=EventType.CAPTURE_FAILED, ts_ms=0, cycle_id=cycle_id, reason=reason
    )


def window_elapsed(cycle_id: int) -> SampleWindowElapsed:
    return SampleWindowElapsed(
        event_type=EventType.SAMPLE_WINDOW_ELAPSED, ts_ms=0, cycle_id=cycle_id
    )


def capture_stopped(cycle_id: int, sample: AudioSample | None = SAMPLE) -> CaptureStopped:
    return CaptureStopped(
        event_type=EventType.CAPTURE_STOPPED, ts_ms=0, cycle_id=cycle_id, sample=sample
    )


def retry_elapsed(cycle_id: int) -> CaptureRetryElapsed:
    return CaptureRetryElapsed(
        event_type=EventType.CAPTURE_RETRY_ELAPSED, ts_ms=0, cycle_id=cycle_id
    )


def received(cycle_id: int, **fields: object) -> IntentReceived:
    return IntentReceived(
        event_type=EventType.INTENT_RECEIVED,
        ts_ms=0,
        cycle_id=cycle_id,
        response=IntentResponse(success=True, **fields),
    )


def failed(cycle_id: int) -> IntentFailed:
    return IntentFailed(
        event_type=EventType.INTENT_FAILED, ts_ms=0, cycle_id=cycle_id, reason="timeout"
    )


def backoff_elapsed(cycle_id: int) -> FailureBackoffElapsed:
    return FailureBackoffElapsed(
        event_type=EventType.FAILURE_BACKOFF_ELAPSED, ts_ms=0, cycle_id=cycle_id
    )


def speech_done(cycle_id: int) -> SpeechDone:
    return SpeechDone(event_type=EventType.SPEECH_DONE, ts_ms=0, cycle_id=cycle_id)


def hold_elapsed(cycle_id: int) -> PostSpeechDelayElapsed:
    return PostSpeechDelayElapsed(
        event_type=EventType.POST_SPEECH_DELAY_ELAPSED, ts_ms=0, cycle_id=cycle_id
    )


def cooldown_elapsed(cycle_id: int) -> TalkingCooldownElapsed:
    return TalkingCooldownElapsed(
        event_type=EventType.TALKING_COOLDOWN_ELAPSED, ts_ms=0, cycle_id=cycle_id
    )


def of_type(commands: tuple[Command, ...], cls: type) -> list:
    return [c for c in commands if isinstance(c, cls)]


def transitions(commands: tuple[Command, ...]) -> list[tuple[AgentState, AgentState]]:
    return [(c.from_state, c.to_state) for c in of_type(commands, NotifyStateChange)]


def listening_with_sample() -> AgentLoopState:
    """Running loop, cycle 1, capture stopped with a sample -> PROCESSING."""
    state, _ = reduce(AgentLoopState(), start())
    state, _ = reduce(state, capture_started(1))
    state, _ = reduce(state, window_elapsed(1))
    state, _ = reduce(state, capture_stopped(1))
    return state


# ---------------------------------------------------------------------
# Start / capture
# ---------------------------------------------------------------------

def test_start_opens_first_cycle() -> None:
    state, cmds = reduce(AgentLoopState(), start())

    assert state.running is True
    assert state.state is AgentState.LISTENING
    assert state.cycle_id == 1
    assert state.capture_open is True
    assert of_type(cmds, StartCapture) == [StartCapture(cycle_id=1)]
    assert transitions(cmds) == [(AgentState.IDLE, AgentState.LISTENING)]


def test_start_while_running_is_noop() -> None:
    state, _ = reduce(AgentLoopState(), start())
    again, cmds = reduce(state, start())

    assert again == state
    assert not of_type(cmds, StartCapture)


def test_capture_started_arms_sample_window() -> None:
    state, _ = reduce(AgentLoopState(), start())
    _, cmds = reduce(state, capture_started(1))

    timers = of_type(cmds, StartTimer)
    assert len(timers) == 1
    assert timers[0].timer_id == TIMER_SAMPLE_WINDOW
    assert timers[0].duration_ms == AGENT_TIMINGS_V1.sample_window_ms
    assert timers[0].cycle_id == 1


def test_sample_window_stops_capture() -> None:
    state, _ = reduce(AgentLoopState(), start())
    state, _ = reduce(state, capture_started(1))
    state, cmds = reduce(state, window_elapsed(1))

    assert of_type(cmds, StopCapture) == [StopCapture(cycle_id=1)]
    assert state.state is AgentState.LISTENING


def test_sample_submitted_with_current_mode() -> None:
    state = listening_with_sample()

    assert state.state is AgentState.PROCESSING
    assert state.capture_open is False
    assert state.request_in_flight is True


def test_submit_intent_carries_sample_and_flag() -> None:
    state, _ = reduce(AgentLoopState(), start())
    state, _ = reduce(state, capture_started(1))
    state, _ = reduce(state, window_elapsed(1))
    _, cmds = reduce(state, capture_stopped(1))

    submits = of_type(cmds, SubmitIntent)
    assert submits == [SubmitIntent(cycle_id=1, sample=SAMPLE, active_mode=False)]


def test_capture_failure_goes_idle_without_request() -> None:
    state, _ = reduce(AgentLoopState(), start())
    state, cmds = reduce(state, capture_failed(1))

    assert state.state is AgentState.IDLE
    assert state.capture_open is False
    assert not of_type(cmds, SubmitIntent)
    retry = [t for t in of_type(cmds, StartTimer) if t.timer_id == TIMER_CAPTURE_RETRY]
    assert len(retry) == 1


def test_empty_sample_skips_request() -> None:
    state, _ = reduce(AgentLoopState(), start())
    state, _ = reduce(state, capture_started(1))
    state, _ = reduce(state, window_elapsed(1))
    state, cmds = reduce(state, capture_stopped(1, sample=None))

    assert state.state is AgentState.IDLE
    assert not of_type(cmds, SubmitIntent)
    assert state.last_error == "empty_sample"


def test_capture_retry_begins_next_cycle() -> None:
    state, _ = reduce(AgentLoopState(), start())
    state, _ = reduce(state, capture_failed(1))
    state, cmds = reduce(state, retry_elapsed(1))

    assert state.state is AgentState.LISTENING
    assert state.cycle_id == 2
    assert of_type(cmds, StartCapture) == [StartCapture(cycle_id=2)]


def test_capture_never_opened_twice() -> None:
    # IDLE with a capture still marked open must not open another
    state = AgentLoopState(state=AgentState.IDLE, running=True, cycle_id=3, capture_open=True)
    new_state, cmds = reduce(state, retry_elapsed(3))

    assert new_state == state
    assert not of_type(cmds, StartCapture)


# ---------------------------------------------------------------------
# Wake word (IDLE mode)
# ---------------------------------------------------------------------

def test_wake_word_detected_speaks_acknowledgement_and_activates() -> None:
    state = listening_with_sample()
    state, cmds = reduce(state, received(1, detected=True))

    assert state.state is AgentState.TALKING
    assert state.active_mode is True
    assert of_type(cmds, Speak) == [Speak(cycle_id=1, text=WAKE_ACKNOWLEDGEMENT)]

    hold = of_type(cmds, StartTimer)[0]
    assert hold.timer_id == TIMER_POST_SPEECH
    assert hold.duration_ms == AGENT_TIMINGS_V1.wake_post_speech_delay_ms


def test_wake_word_full_path_visits_every_state() -> None:
    seen: list[tuple[AgentState, AgentState]] = []

    state, cmds = reduce(AgentLoopState(), start())
    seen += transitions(cmds)
    for event in (
        capture_started(1),
        window_elapsed(1),
        capture_stopped(1),
        received(1, detected=True),
        speech_done(1),
        hold_elapsed(1),
    ):
        state, cmds = reduce(state, event)
        seen += transitions(cmds)

    assert seen == [
        (AgentState.IDLE, AgentState.LISTENING),
        (AgentState.LISTENING, AgentState.PROCESSING),
        (AgentState.PROCESSING, AgentState.TALKING),
        (AgentState.TALKING, AgentState.IDLE),
        (AgentState.IDLE, AgentState.LISTENING),
    ]
    assert state.active_mode is True
    assert state.cycle_id == 2


def test_wake_word_absent_returns_to_idle_then_listens() -> None:
    state = listening_with_sample()
    state, cmds = reduce(state, received(1, detected=False))

    assert transitions(cmds) == [
        (AgentState.PROCESSING, AgentState.IDLE),
        (AgentState.IDLE, AgentState.LISTENING),
    ]
    assert state.active_mode is False
    assert not of_type(cmds, Speak)


# ---------------------------------------------------------------------
# Command mode (ACTIVE)
# ---------------------------------------------------------------------

def active_processing() -> AgentLoopState:
    state = listening_with_sample()
    state, _ = reduce(state, received(1, detected=True))
    state, _ = reduce(state, speech_done(1))
    state, _ = reduce(state, hold_elapsed(1))
    state, _ = reduce(state, capture_started(2))
    state, _ = reduce(state, window_elapsed(2))
    state, cmds = reduce(state, capture_stopped(2))
    assert of_type(cmds, SubmitIntent)[0].active_mode is True
    return state


def test_stop_intent_speaks_reply_and_clears_flag() -> None:
    state = active_processing()
    state, cmds = reduce(
        state, received(2, action=IntentAction.STOP, reply="Deactivating agent.")
    )

    assert state.active_mode is False
    assert state.state is AgentState.TALKING
    assert of_type(cmds, Speak) == [Speak(cycle_id=2, text="Deactivating agent.")]

    hold = of_type(cmds, StartTimer)[0]
    assert hold.duration_ms == AGENT_TIMINGS_V1.reply_post_speech_delay_ms


def test_create_note_reply_keeps_flag() -> None:
    state = active_processing()
    state, cmds = reduce(
        state,
        received(2, action=IntentAction.CREATE_NOTE, content="buy milk", reply="Saving note..."),
    )

    assert state.active_mode is True
    assert of_type(cmds, Speak)[0].text == "Saving note..."


def test_active_response_without_reply_finishes_cycle() -> None:
    state = active_processing()
    state, cmds = reduce(state, received(2, action=IntentAction.UNKNOWN))

    assert not of_type(cmds, Speak)
    assert (AgentState.PROCESSING, AgentState.IDLE) in transitions(cmds)
    assert state.state is AgentState.LISTENING


def test_stop_intent_without_reply_still_clears_flag() -> None:
    state = active_processing()
    state, _ = reduce(state, received(2, action=IntentAction.STOP))

    assert state.active_mode is False


# ---------------------------------------------------------------------
# Talking hold
# ---------------------------------------------------------------------

def test_talking_rechecks_until_speech_done() -> None:
    state = listening_with_sample()
    state, _ = reduce(state, received(1, detected=True))

    # Hold over but engine still speaking: cooldown re-check
    state, cmds = reduce(state, hold_elapsed(1))
    assert state.state is AgentState.TALKING
    assert of_type(cmds, StartTimer)[0].timer_id == TIMER_TALKING_COOLDOWN
    assert not of_type(cmds, StartCapture)

    state, cmds = reduce(state, cooldown_elapsed(1))
    assert state.state is AgentState.TALKING
    assert of_type(cmds, StartTimer)[0].timer_id == TIMER_TALKING_COOLDOWN

    state, cmds = reduce(state, speech_done(1))
    assert state.state is AgentState.LISTENING
    assert of_type(cmds, StartCapture) == [StartCapture(cycle_id=2)]


def test_speech_done_before_hold_keeps_talking() -> None:
    state = listening_with_sample()
    state, _ = reduce(state, received(1, detected=True))
    state, cmds = reduce(state, speech_done(1))

    assert state.state is AgentState.TALKING
    assert state.speech_done is True
    assert not of_type(cmds, StartCapture)


# ---------------------------------------------------------------------
# Request failure
# ---------------------------------------------------------------------

def test_intent_failure_backs_off_then_idles() -> None:
    state = listening_with_sample()
    state, cmds = reduce(state, failed(1))

    assert state.state is AgentState.PROCESSING
    assert state.request_in_flight is False
    backoff = of_type(cmds, StartTimer)[0]
    assert backoff.timer_id == TIMER_FAILURE_BACKOFF
    assert backoff.duration_ms == AGENT_TIMINGS_V1.failure_backoff_ms

    state, cmds = reduce(state, backoff_elapsed(1))
    assert transitions(cmds)[0] == (AgentState.PROCESSING, AgentState.IDLE)
    assert state.state is AgentState.LISTENING
    assert state.cycle_id == 2


def test_intent_failure_keeps_active_mode() -> None:
    state = active_processing()
    state, _ = reduce(state, failed(2))
    state, _ = reduce(state, backoff_elapsed(2))

    assert state.active_mode is True


# ---------------------------------------------------------------------
# Log ordering contract
# ---------------------------------------------------------------------

def test_log_events_follow_side_effects() -> None:
    state = listening_with_sample()
    _, cmds = reduce(state, received(1, detected=True))

    first_log = next(i for i, c in enumerate(cmds) if isinstance(c, LogEvent))
    assert all(isinstance(c, LogEvent) for c in cmds[first_log:])
    assert cmds[-1].event["decision"] == "state_changed"
