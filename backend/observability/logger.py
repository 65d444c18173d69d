"""
JSONL event logger.

- Write one JSON object per line
- Output to stdout
- No buffering, no batching
- No side effects beyond logging
"""

from __future__ import annotations

import json
import sys
import time
from typing import Any, Mapping, Callable


# ------------------------------------------------------------------
# Explicit output sink (patchable in tests)
# ------------------------------------------------------------------

def _stdout_print(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()

_print: Callable[[str], None] = _stdout_print

# When False, events are rendered as `event_type key=value ...` for humans
_json_enabled: bool = True

# Events without a "level" field count as INFO
_LEVELS: dict[str, int] = {"DEBUG": 10, "INFO": 20, "WARNING": 30, "ERROR": 40}
_min_level: int = _LEVELS["INFO"]


def configure(*, enable_json: bool, level: str = "INFO") -> None:
    """
    Select JSONL (default) or human-readable line rendering, and the
    lowest level that gets written.

    Raises ValueError for an unknown level name.
    """
    global _json_enabled, _min_level  # pylint: disable=global-statement
    name = level.upper()
    if name not in _LEVELS:
        raise ValueError(f"Unknown log level: {level}")
    _json_enabled = enable_json
    _min_level = _LEVELS[name]


def _level_of(event: Mapping[str, Any]) -> int:
    return _LEVELS.get(str(event.get("level", "INFO")).upper(), _LEVELS["INFO"])


def _render_plain(event: Mapping[str, Any]) -> str:
    head = str(event.get("event_type", "EVENT"))
    rest = " ".join(
        f"{k}={v}" for k, v in event.items() if k != "event_type"
    )
    return f"{head} {rest}".rstrip()


def log_event(event: Mapping[str, Any]) -> None:
    """
    Write a single event line to stdout.

    The caller is responsible for:
    - Supplying a fully-formed event dict
    - Including ts_ms, session_id, state, etc.

    This function:
    - Serializes to JSON (or plain text when configured)
    - Writes exactly one line
    - Flushes immediately (no buffering)
    - Drops events below the configured level
    - Never raises
    """
    if _level_of(event) < _min_level:
        return

    if not _json_enabled:
        _print(_render_plain(event))
        return

    try:
        line = json.dumps(event, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        # Last-resort fallback: logging must never crash the runtime
        fallback: dict[str, Any] = {
            "ts_ms": event.get("ts_ms"),
            "event_type": "LOGGER_SERIALIZATION_ERROR",
            "error": str(e),
            "original_event_repr": repr(event),
        }
        line = json.dumps(fallback, ensure_ascii=False, separators=(",", ":"))

    _print(line)


def log_exception(event_type: str, exc: BaseException, **fields: Any) -> None:
    """Log an exception with its type and message as a single event."""
    log_event({
        "ts_ms": time.time_ns() // 1_000_000,
        "event_type": event_type,
        "level": "ERROR",
        "exception": type(exc).__name__,
        "message": str(exc),
        **fields,
    })
