"""
Authoritative agent state enumeration.

Rules:
- This enum defines ONLY the control-plane states.
- No behavior, no helper methods, no side effects.
- Transitions are defined exclusively in the reducer.
"""

from __future__ import annotations

from enum import Enum


class AgentState(str, Enum):
    """
    High-level states of the voice agent loop.

    Exactly one value holds at any instant. Observers (UI) learn about
    changes only through the session's state-change callback.
    """

    IDLE = "IDLE"
    LISTENING = "LISTENING"
    PROCESSING = "PROCESSING"
    TALKING = "TALKING"
