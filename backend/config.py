"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No orchestration logic
- No behavioral constants (see constants.py)
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Shared by the server app factory and the agent client.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str
    log_level: str

    # ------------------------------------------------------------------
    # LLM configuration
    # ------------------------------------------------------------------

    llm_provider: str
    llm_model: str
    transcription_model: str
    openai_api_key: str | None

    groq_api_key: str | None

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    enable_json_logs: bool

    # ------------------------------------------------------------------
    # Agent client
    # ------------------------------------------------------------------

    agent_server_url: str

    # ------------------------------------------------------------------
    # Derived
    # ------------------------------------------------------------------

    @property
    def provider_api_key(self) -> str | None:
        """API key for whichever LLM provider is selected."""
        if self.llm_provider.lower() == "groq":
            return self.groq_api_key
        return self.openai_api_key

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Missing API keys are NOT an error here; the server app factory
        decides whether a key is required.
        """
        return AppConfig(
            env=os.environ.get("ENV", "dev"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),

            llm_provider=os.environ.get("LLM_PROVIDER", "openai"),
            llm_model=os.environ.get("LLM_MODEL", "gpt-4o-mini"),
            transcription_model=os.environ.get("TRANSCRIPTION_MODEL", "whisper-1"),
            openai_api_key=os.environ.get("OPENAI_API_KEY"),
            groq_api_key=os.environ.get("GROQ_API_KEY"),

            enable_json_logs=os.environ.get("ENABLE_JSON_LOGS", "1") == "1",

            agent_server_url=os.environ.get("AGENT_SERVER_URL", "http://localhost:8000"),
        )
