"""
FastAPI app factory.

Responsibilities:
- Create and configure FastAPI app
- Set up middleware and error handlers
- Initialize shared resources (model client, note store)
- Register routes
"""

from __future__ import annotations

import time

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from openai import AsyncOpenAI

from adapters.llm.base import IntentModel
from adapters.llm.openai_model import OpenAIIntentModel
from config import AppConfig
from observability import logger
from services.note_service import NoteService

from server.errors import register_exception_handlers
from server.routes import register_routes


def create_app(
    config: AppConfig | None = None,
    *,
    intent_model: IntentModel | None = None,
    note_service: NoteService | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    This is the app factory pattern that allows:
    - Testing with injected collaborators
    - Environment-specific setup
    - ASGI server compatibility

    Raises:
        RuntimeError: no model was injected and the selected provider
        has no API key.
    """
    if config is None:
        config = AppConfig.load_from_env()

    logger.configure(enable_json=config.enable_json_logs, level=config.log_level)

    app = FastAPI(title="Note Agent API")

    app.state.config = config

    # Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # tighten later
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Model client is created ONCE per process
    if intent_model is None:
        if not config.provider_api_key:
            raise RuntimeError(
                f"API key for LLM provider '{config.llm_provider}' not set"
            )
        intent_model = OpenAIIntentModel(
            client=build_llm_client(config),
            model=config.llm_model,
            transcription_model=config.transcription_model,
        )

    app.state.intent_model = intent_model
    app.state.note_service = note_service if note_service is not None else NoteService()

    register_exception_handlers(app)
    register_routes(app)

    logger.log_event({
        "ts_ms": time.time_ns() // 1_000_000,
        "event_type": "APP_CONFIGURED",
        "env": config.env,
        "llm_provider": config.llm_provider,
        "llm_model": config.llm_model,
    })

    return app


def build_llm_client(config: AppConfig) -> AsyncOpenAI:
    """Build an LLM client with the provider selected by environment variables."""
    if config.llm_provider.lower() == "groq":
        return AsyncOpenAI(
            api_key=config.groq_api_key,
            base_url="https://api.groq.com/openai/v1",
        )

    return AsyncOpenAI(api_key=config.openai_api_key)
