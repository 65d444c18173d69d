"""
Intent model contract (v1).

Purpose:
- Define the interface the intent endpoint uses to reach a hosted model.
- Keep parsing, validation and persistence OUT of the adapter.

Rules:
- This file contains NO logic.
- No retries.
- No JSON parsing: adapters return raw model text.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class ModelCallError(RuntimeError):
    """The provider call failed (network, auth, quota, empty answer)."""


class IntentModel(ABC):
    """
    Abstract base class for intent models.

    The adapter is a *dumb pipe*:
    prompt + clip -> vendor -> raw text.

    Endpoint responsibilities (NOT here):
    - Choosing the prompt
    - Stripping fences and decoding JSON
    - Schema validation
    - Writing notes
    """

    @abstractmethod
    async def complete(
        self,
        *,
        prompt: str,
        audio: bytes,
        filename: str,
        mime_type: str,
    ) -> str:
        """
        Ask the model about one audio clip.

        Returns the model's raw text answer.

        Raises:
            ModelCallError: the provider could not be reached or answered
            with nothing.
        """
        raise NotImplementedError

    @abstractmethod
    async def reply(self, *, message: str) -> str:
        """
        Plain text chat: return the model's answer to one message.

        Raises:
            ModelCallError: as for complete().
        """
        raise NotImplementedError
