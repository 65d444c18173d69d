"""
Intent resolution: one audio clip in, one response envelope out.

Pipeline:
1. Pick the prompt for the requested mode
2. Ask the model (raw text back)
3. Strip code fences, decode JSON, validate the shape
4. Persist a note for CREATE_NOTE with content

Stateless: nothing survives between calls except the note written in step 4.
"""

from __future__ import annotations

import json
import re
import time
from typing import Any

from pydantic import ValidationError

from adapters.llm.base import IntentModel, ModelCallError
from adapters.llm.prompts import INTENT_PROMPT_V1, PROMPT_VERSION, WAKE_WORD_PROMPT_V1
from observability.logger import log_event
from observability.metrics import timed
from orchestrator.enums.mode import Mode
from protocol.intent import IntentAction, IntentResult, WakeWordResult, success_envelope
from server.errors import PersistenceFailure, UpstreamModelError, UpstreamParseError
from services.note_service import NoteService, NoteStoreError


_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)

# Cap on raw model output copied into logs
_RAW_LOG_LIMIT = 500


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def mode_from_state(state: str | None) -> Mode:
    """Only an exact "IDLE" (or nothing) means wake-word detection."""
    if state is None or state == Mode.IDLE.value:
        return Mode.IDLE
    return Mode.ACTIVE


def build_prompt(mode: Mode) -> str:
    if mode is Mode.IDLE:
        return WAKE_WORD_PROMPT_V1
    return INTENT_PROMPT_V1


def strip_code_fences(text: str) -> str:
    """Remove ```json / ``` markers and surrounding whitespace."""
    return _FENCE_RE.sub("", text).strip()


def parse_model_output(raw: str, mode: Mode) -> WakeWordResult | IntentResult:
    """
    Decode and validate the model's answer for the given mode.

    Raises:
        UpstreamParseError: not JSON, or JSON of the wrong shape.
    """
    text = strip_code_fences(raw)
    try:
        data: Any = json.loads(text)
    except json.JSONDecodeError as e:
        raise UpstreamParseError() from e

    try:
        if mode is Mode.IDLE:
            return WakeWordResult.model_validate(data)
        return IntentResult.model_validate(data)
    except ValidationError as e:
        raise UpstreamParseError() from e


async def resolve_intent(
    *,
    model: IntentModel,
    notes: NoteService,
    audio: bytes,
    filename: str,
    mime_type: str,
    state: str | None,
) -> dict[str, Any]:
    """
    Run the full pipeline for one request and return the success envelope.

    Raises:
        UpstreamModelError: provider call failed.
        UpstreamParseError: unusable model output.
        PersistenceFailure: CREATE_NOTE could not be saved. The parsed
            fields are echoed in the error envelope.
    """
    mode = mode_from_state(state)

    try:
        with timed(
            "intent_model_latency",
            details={"mode": mode.value, "prompt_version": PROMPT_VERSION},
        ):
            raw = await model.complete(
                prompt=build_prompt(mode),
                audio=audio,
                filename=filename,
                mime_type=mime_type,
            )
    except ModelCallError as e:
        raise UpstreamModelError() from e

    try:
        result = parse_model_output(raw, mode)
    except UpstreamParseError:
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "INTENT_PARSE_FAILED",
            "mode": mode.value,
            "raw": raw[:_RAW_LOG_LIMIT],
        })
        raise

    log_event({
        "ts_ms": _now_ms(),
        "event_type": "INTENT_RESOLVED",
        "mode": mode.value,
        "prompt_version": PROMPT_VERSION,
        "result": result.model_dump(mode="json", exclude_none=True),
    })

    if (
        isinstance(result, IntentResult)
        and result.action is IntentAction.CREATE_NOTE
        and result.content
        and result.content.strip()
    ):
        try:
            note = notes.create_note(result.content)
        except (NoteStoreError, ValueError) as e:
            raise PersistenceFailure(
                **result.model_dump(mode="json", exclude_none=True)
            ) from e

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "NOTE_CREATED",
            "note_id": note.note_id,
        })

    return success_envelope(result)
