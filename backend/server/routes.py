"""
Route registration for the note agent API.

Responsibilities:
- Define HTTP endpoints
- Pull dependencies from app.state
- Translate request shapes into service calls

All error bodies come from server.errors handlers.
"""

from __future__ import annotations

import time
from typing import Any

from fastapi import FastAPI, File, Form, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from adapters.llm.base import IntentModel, ModelCallError
from constants import DEFAULT_UPLOAD_MIME
from observability.logger import log_event
from server.errors import InvalidRequest, PersistenceFailure, UpstreamModelError
from server.intent import resolve_intent
from services.note_service import NoteService, NoteStoreError


class ChatRequest(BaseModel):
    message: str | None = None


class NoteCreateRequest(BaseModel):
    content: str | None = None


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def register_routes(app: FastAPI) -> None:
    """Register all routes on the FastAPI app."""

    @app.get("/health")
    async def health() -> dict[str, str]: # pyright: ignore[reportUnusedFunction]
        return {"status": "ok"}

    @app.post("/api/chat/agent")
    async def chat_agent( # pyright: ignore[reportUnusedFunction]
        audio: UploadFile | None = File(None),
        state: str = Form("IDLE"),
    ) -> dict[str, Any]:
        if audio is None:
            raise InvalidRequest("No audio")

        data = await audio.read()
        if not data:
            raise InvalidRequest("No audio")

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "AGENT_REQUEST",
            "state": state,
            "audio_bytes": len(data),
            "mime_type": audio.content_type,
        })

        model: IntentModel = app.state.intent_model
        notes: NoteService = app.state.note_service

        return await resolve_intent(
            model=model,
            notes=notes,
            audio=data,
            filename=audio.filename or "audio",
            mime_type=audio.content_type or DEFAULT_UPLOAD_MIME,
            state=state,
        )

    @app.post("/api/chat")
    async def chat(body: ChatRequest) -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        if not body.message:
            raise InvalidRequest("Message is required")

        model: IntentModel = app.state.intent_model
        try:
            reply = await model.reply(message=body.message)
        except ModelCallError as e:
            raise UpstreamModelError() from e

        return {"success": True, "reply": reply}

    @app.get("/api/notes")
    async def list_notes() -> dict[str, Any]: # pyright: ignore[reportUnusedFunction]
        notes: NoteService = app.state.note_service
        return {
            "success": True,
            "data": [note.to_dict() for note in notes.list_notes()],
        }

    @app.post("/api/notes")
    async def create_note(body: NoteCreateRequest) -> JSONResponse: # pyright: ignore[reportUnusedFunction]
        if not body.content or not body.content.strip():
            raise InvalidRequest("Content is required")

        notes: NoteService = app.state.note_service
        try:
            note = notes.create_note(body.content)
        except NoteStoreError as e:
            raise PersistenceFailure() from e

        return JSONResponse(
            status_code=201,
            content={"success": True, "data": note.to_dict()},
        )
