"""
Remote intent service client (agent side).

Uploads one AudioSample plus the current mode to POST {base}/chat/agent
and decodes the envelope.

Every way a request can go wrong surfaces as NetworkFailure:
- timeout or transport error
- non-2xx status
- body that is not JSON or not an envelope
- envelope with success == false

The caller never sees httpx or pydantic exceptions.
"""

from __future__ import annotations

from pathlib import Path

import httpx
from pydantic import ValidationError

from audio.sample import AudioSample
from constants import (
    AGENT_ENDPOINT_PATH,
    API_PREFIX,
    AUDIO_FIELD_NAME,
    INTENT_REQUEST_TIMEOUT_S,
    STATE_FIELD_NAME,
)
from orchestrator.enums.mode import Mode
from protocol.intent import IntentResponse


class NetworkFailure(RuntimeError):
    """The intent request did not produce a usable successful envelope."""


def normalize_base_url(base_url: str) -> str:
    """Ensure the base URL ends with the /api prefix (no trailing slash)."""
    url = base_url.rstrip("/")
    if not url.endswith(API_PREFIX):
        url = f"{url}{API_PREFIX}"
    return url


class HttpIntentClient:
    """httpx-backed implementation of the intent client protocol."""

    def __init__(
        self,
        *,
        base_url: str,
        timeout_s: float = INTENT_REQUEST_TIMEOUT_S,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.endpoint = normalize_base_url(base_url) + AGENT_ENDPOINT_PATH
        self._client = httpx.AsyncClient(timeout=timeout_s, transport=transport)

    async def submit(
        self,
        sample: AudioSample,
        *,
        active_mode: bool,
    ) -> IntentResponse:
        try:
            audio = Path(sample.path).read_bytes()
        except OSError as e:
            raise NetworkFailure(f"sample unreadable: {e}") from e

        try:
            resp = await self._client.post(
                self.endpoint,
                data={STATE_FIELD_NAME: Mode.from_flag(active_mode).value},
                files={AUDIO_FIELD_NAME: (sample.filename, audio, sample.mime_type)},
            )
        except httpx.TimeoutException as e:
            raise NetworkFailure("request timed out") from e
        except httpx.HTTPError as e:
            raise NetworkFailure(f"transport error: {e}") from e

        if not resp.is_success:
            raise NetworkFailure(f"HTTP {resp.status_code}")

        try:
            body = resp.json()
        except ValueError as e:
            raise NetworkFailure("response body is not JSON") from e

        try:
            response = IntentResponse.model_validate(body)
        except ValidationError as e:
            raise NetworkFailure("response body is not an intent envelope") from e

        if not response.success:
            raise NetworkFailure(response.error or "server reported failure")

        return response

    async def aclose(self) -> None:
        await self._client.aclose()
