"""
OpenAI-compatible intent model.

Two calls per clip:
1. audio.transcriptions (whisper) turns the clip into text
2. chat.completions classifies the transcript under the given prompt

Works against OpenAI or Groq; the client passed in decides which.
"""

from __future__ import annotations

from openai import AsyncOpenAI, OpenAIError

from adapters.llm.base import IntentModel, ModelCallError
from constants import LLM_TEMPERATURE


class OpenAIIntentModel(IntentModel):
    """IntentModel backed by an AsyncOpenAI client."""

    def __init__(
        self,
        *,
        client: AsyncOpenAI,
        model: str,
        transcription_model: str,
        temperature: float = LLM_TEMPERATURE,
    ) -> None:
        self._client = client
        self._model = model
        self._transcription_model = transcription_model
        self._temperature = temperature

    async def complete(
        self,
        *,
        prompt: str,
        audio: bytes,
        filename: str,
        mime_type: str,
    ) -> str:
        transcript = await self._transcribe(audio, filename=filename, mime_type=mime_type)
        return await self._chat(
            [
                {"role": "system", "content": prompt},
                {"role": "user", "content": f"Transcript: {transcript}"},
            ]
        )

    async def reply(self, *, message: str) -> str:
        return await self._chat([{"role": "user", "content": message}])

    async def _transcribe(self, audio: bytes, *, filename: str, mime_type: str) -> str:
        try:
            result = await self._client.audio.transcriptions.create(
                model=self._transcription_model,
                file=(filename, audio, mime_type),
            )
        except OpenAIError as e:
            raise ModelCallError(f"transcription failed: {e}") from e

        return result.text.strip()

    async def _chat(self, messages: list[dict[str, str]]) -> str:
        try:
            resp = await self._client.chat.completions.create(
                model=self._model,
                temperature=self._temperature,
                messages=messages,  # type: ignore[arg-type]
            )
        except OpenAIError as e:
            raise ModelCallError(f"completion failed: {e}") from e

        if not resp.choices:
            raise ModelCallError("completion returned no choices")

        content = resp.choices[0].message.content
        if not content:
            raise ModelCallError("completion returned empty content")
        return content
