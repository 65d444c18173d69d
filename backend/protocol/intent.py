"""
Intent wire protocol (v1).

Shared by the agent client and the intent resolution endpoint.

Contents:
- IntentAction enumeration (the ONLY actions the model may pick)
- Model output schemas (what the LLM must return, validated strictly)
- Response envelope (what the endpoint returns to clients)

Rules:
- Models are data only. No IO.
- Validation errors propagate as pydantic.ValidationError; callers map
  them onto their own failure types.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, StrictBool, StrictStr


class IntentAction(str, Enum):
    """Actions the model may choose in active mode."""

    CREATE_NOTE = "CREATE_NOTE"
    STOP = "STOP"
    UNKNOWN = "UNKNOWN"


# =============================================================================
# Model output schemas
# =============================================================================

class WakeWordResult(BaseModel):
    """Model answer in IDLE mode: was the wake word said?"""

    model_config = ConfigDict(extra="ignore")

    detected: StrictBool


class IntentResult(BaseModel):
    """Model answer in ACTIVE mode: what does the user want?"""

    model_config = ConfigDict(extra="ignore")

    action: IntentAction
    reply: StrictStr
    content: StrictStr | None = None


# =============================================================================
# Endpoint envelope
# =============================================================================

class IntentResponse(BaseModel):
    """
    Decoded reply of POST /chat/agent.

    Consumed once per agent cycle. Fields absent from the wire are None.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    success: bool
    detected: bool | None = None
    action: IntentAction | None = None
    content: str | None = None
    reply: str | None = None
    error: str | None = None


def success_envelope(result: WakeWordResult | IntentResult) -> dict[str, Any]:
    """Echo every parsed field plus the success flag."""
    return {"success": True, **result.model_dump(mode="json", exclude_none=True)}


def failure_envelope(error: str, **fields: Any) -> dict[str, Any]:
    """Failure body: success flag false plus a human-readable error."""
    return {"success": False, "error": error, **fields}
