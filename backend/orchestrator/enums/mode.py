"""
Agent mode enumeration.

Modes are orthogonal to control states:
- State answers: "What is the loop doing?"
- Mode answers:  "What should the server listen for?"
"""

from __future__ import annotations

from enum import Enum


class Mode(str, Enum):
    """
    Wire tag sent with every intent request.

    IDLE:
        Only check the clip for the wake word.

    ACTIVE:
        The wake word was heard; interpret the clip as a command.
    """

    IDLE = "IDLE"
    ACTIVE = "ACTIVE"

    @classmethod
    def from_flag(cls, active_mode: bool) -> Mode:
        """Map the loop's active-mode flag onto the wire tag."""
        return cls.ACTIVE if active_mode else cls.IDLE
