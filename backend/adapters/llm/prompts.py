"""
Prompt templates for intent resolution.

Versioned so logs can tie a classification back to the wording that
produced it. The model only ever sees a transcript of the clip, so the
prompts describe the transcript rather than the audio.
"""

from __future__ import annotations

from constants import AGENT_NAME, WAKE_WORD_ALIASES

PROMPT_VERSION: str = "v1"

_ALIASES = ", ".join(f'"{alias}"' for alias in WAKE_WORD_ALIASES)

WAKE_WORD_PROMPT_V1: str = f"""
You receive the transcript of a short audio clip.
Does the speaker clearly say the name "{AGENT_NAME}" (or something similar sounding like {_ALIASES})?
If YES, return JSON: {{"detected": true}}
If NO, return JSON: {{"detected": false}}
Return ONLY the JSON.
""".strip()

INTENT_PROMPT_V1: str = f"""
You are an AI agent named {AGENT_NAME}. Use the transcript of the user's speech to determine their intent.
Available actions:
1. "CREATE_NOTE": the user wants to save a note. Return {{"action": "CREATE_NOTE", "content": "note text", "reply": "Saving note..."}}
2. "STOP": the user says "stop" or "cancel". Return {{"action": "STOP", "reply": "Deactivating agent."}}
3. "UNKNOWN": anything unclear. Return {{"action": "UNKNOWN", "reply": "I didn't catch that."}}
Return ONLY the JSON.
""".strip()
