"""
BEHAVIOR-AS-CONSTANTS
---------------------
Single source of truth for all behavioral constants in the system.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Other modules MUST import from this file.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final, Tuple

# =============================================================================
# Agent loop timing
# =============================================================================

# How long the microphone stays open for one sample
SAMPLE_WINDOW_MS: Final[int] = 2_500

# Re-check interval while speech playback is still running
TALKING_COOLDOWN_MS: Final[int] = 1_000

# Hold after the wake-word acknowledgement starts playing
WAKE_POST_SPEECH_DELAY_MS: Final[int] = 2_000

# Hold after an intent reply starts playing
REPLY_POST_SPEECH_DELAY_MS: Final[int] = 3_000

# Wait after a failed intent request before the next cycle
FAILURE_BACKOFF_MS: Final[int] = 1_000

# Wait after a failed capture before the next cycle
CAPTURE_RETRY_DELAY_MS: Final[int] = 1_000

# =============================================================================
# Client -> server intent call
# =============================================================================

INTENT_REQUEST_TIMEOUT_S: Final[float] = 5.0

API_PREFIX: Final[str] = "/api"
AGENT_ENDPOINT_PATH: Final[str] = "/chat/agent"

AUDIO_FIELD_NAME: Final[str] = "audio"
STATE_FIELD_NAME: Final[str] = "state"

# Mime type the server assumes when an upload carries none
DEFAULT_UPLOAD_MIME: Final[str] = "audio/m4a"

# =============================================================================
# Audio capture (client)
# =============================================================================

CAPTURE_SAMPLE_RATE_HZ: Final[int] = 16_000
CAPTURE_CHANNELS: Final[int] = 1
CAPTURE_MIME: Final[str] = "audio/wav"
CAPTURE_FILENAME: Final[str] = "audio.wav"

# =============================================================================
# Agent persona
# =============================================================================

AGENT_NAME: Final[str] = "Ginger"

# Near-miss transcriptions of the wake word that still count
WAKE_WORD_ALIASES: Final[Tuple[str, ...]] = ("Jinger",)

WAKE_ACKNOWLEDGEMENT: Final[str] = "I'm listening."

# =============================================================================
# LLM
# =============================================================================

LLM_TEMPERATURE: Final[float] = 0.0

# =============================================================================
# Convenience Bundles
# =============================================================================

@dataclass(frozen=True)
class AgentTimings:
    """
    Immutable bundle of agent loop delays (milliseconds).

    This is a convenience wrapper for passing tunables around;
    it is NOT a second source of truth.
    """
    sample_window_ms: int = SAMPLE_WINDOW_MS
    talking_cooldown_ms: int = TALKING_COOLDOWN_MS
    wake_post_speech_delay_ms: int = WAKE_POST_SPEECH_DELAY_MS
    reply_post_speech_delay_ms: int = REPLY_POST_SPEECH_DELAY_MS
    failure_backoff_ms: int = FAILURE_BACKOFF_MS
    capture_retry_delay_ms: int = CAPTURE_RETRY_DELAY_MS


AGENT_TIMINGS_V1: Final[AgentTimings] = AgentTimings()
