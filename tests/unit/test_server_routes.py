# pylint: disable=missing-module-docstring,missing-function-docstring,protected-access
from __future__ import annotations

import json
from typing import Any

import pytest
from fastapi.testclient import TestClient

from adapters.llm.base import IntentModel, ModelCallError
from adapters.llm.prompts import INTENT_PROMPT_V1, WAKE_WORD_PROMPT_V1
from config import AppConfig
from observability import logger
from server.app import create_app
from services.note_service import Note, NoteService, NoteStoreError


AUDIO = ("audio.wav", b"RIFF\x00\x00\x00\x00WAVEfmt ", "audio/wav")


def make_config(**overrides: Any) -> AppConfig:
    fields: dict[str, Any] = {
        "env": "test",
        "log_level": "INFO",
        "llm_provider": "openai",
        "llm_model": "gpt-4o-mini",
        "transcription_model": "whisper-1",
        "openai_api_key": None,
        "groq_api_key": None,
        "enable_json_logs": True,
        "agent_server_url": "http://localhost:8000",
    }
    fields.update(overrides)
    return AppConfig(**fields)


class FakeModel(IntentModel):
    def __init__(self, answer: str = '{"detected": false}', error: Exception | None = None) -> None:
        self.answer = answer
        self.error = error
        self.prompts: list[str] = []
        self.messages: list[str] = []

    async def complete(self, *, prompt: str, audio: bytes, filename: str, mime_type: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.answer

    async def reply(self, *, message: str) -> str:
        self.messages.append(message)
        if self.error is not None:
            raise self.error
        return self.answer


class BrokenNotes(NoteService):
    def create_note(self, content: str) -> Note:
        raise NoteStoreError("disk full")


def make_client(model: IntentModel, notes: NoteService | None = None) -> tuple[TestClient, NoteService]:
    notes = notes if notes is not None else NoteService()
    app = create_app(make_config(), intent_model=model, note_service=notes)
    return TestClient(app), notes


# ---------------------------------------------------------------------
# /api/chat/agent
# ---------------------------------------------------------------------

def test_missing_audio_is_400_without_model_call() -> None:
    model = FakeModel()
    client, notes = make_client(model)

    resp = client.post("/api/chat/agent", data={"state": "ACTIVE"})

    assert resp.status_code == 400
    assert resp.json() == {"success": False, "error": "No audio"}
    assert model.prompts == []
    assert len(notes) == 0


def test_empty_audio_is_400() -> None:
    model = FakeModel()
    client, _ = make_client(model)

    resp = client.post(
        "/api/chat/agent",
        data={"state": "IDLE"},
        files={"audio": ("audio.wav", b"", "audio/wav")},
    )

    assert resp.status_code == 400
    assert model.prompts == []


def test_idle_wake_word_detected() -> None:
    model = FakeModel('{"detected": true}')
    client, _ = make_client(model)

    resp = client.post("/api/chat/agent", data={"state": "IDLE"}, files={"audio": AUDIO})

    assert resp.status_code == 200
    assert resp.json() == {"success": True, "detected": True}
    assert model.prompts == [WAKE_WORD_PROMPT_V1]


def test_state_defaults_to_idle() -> None:
    model = FakeModel('{"detected": false}')
    client, _ = make_client(model)

    resp = client.post("/api/chat/agent", files={"audio": AUDIO})

    assert resp.json() == {"success": True, "detected": False}
    assert model.prompts == [WAKE_WORD_PROMPT_V1]


def test_fenced_unknown_reply_creates_no_note() -> None:
    model = FakeModel(
        '```json\n{"action": "UNKNOWN", "reply": "I didn\'t catch that."}\n```'
    )
    client, notes = make_client(model)

    resp = client.post("/api/chat/agent", data={"state": "ACTIVE"}, files={"audio": AUDIO})

    assert resp.status_code == 200
    assert resp.json() == {
        "success": True,
        "action": "UNKNOWN",
        "reply": "I didn't catch that.",
    }
    assert model.prompts == [INTENT_PROMPT_V1]
    assert len(notes) == 0


def test_create_note_persists_exactly_one_note() -> None:
    model = FakeModel(
        '{"action": "CREATE_NOTE", "content": "buy milk", "reply": "Saving note..."}'
    )
    client, notes = make_client(model)

    resp = client.post("/api/chat/agent", data={"state": "ACTIVE"}, files={"audio": AUDIO})

    assert resp.status_code == 200
    assert resp.json() == {
        "success": True,
        "action": "CREATE_NOTE",
        "content": "buy milk",
        "reply": "Saving note...",
    }
    assert [n.content for n in notes.list_notes()] == ["buy milk"]


def test_create_note_without_content_writes_nothing() -> None:
    model = FakeModel('{"action": "CREATE_NOTE", "reply": "Saving note..."}')
    client, notes = make_client(model)

    resp = client.post("/api/chat/agent", data={"state": "ACTIVE"}, files={"audio": AUDIO})

    assert resp.status_code == 200
    assert len(notes) == 0


def test_stop_action_echoed() -> None:
    model = FakeModel('{"action": "STOP", "reply": "Deactivating agent."}')
    client, _ = make_client(model)

    resp = client.post("/api/chat/agent", data={"state": "ACTIVE"}, files={"audio": AUDIO})

    assert resp.json()["action"] == "STOP"


def test_shape_mismatch_is_500_and_no_note() -> None:
    model = FakeModel('{"action": "CREATE_NOTE", "content": "buy milk"}')
    client, notes = make_client(model)

    resp = client.post("/api/chat/agent", data={"state": "ACTIVE"}, files={"audio": AUDIO})

    assert resp.status_code == 500
    assert resp.json() == {
        "success": False,
        "error": "Model returned an unexpected response",
    }
    assert len(notes) == 0


def test_non_json_model_output_is_500() -> None:
    client, _ = make_client(FakeModel("Sure! The user said Ginger."))

    resp = client.post("/api/chat/agent", data={"state": "IDLE"}, files={"audio": AUDIO})

    assert resp.status_code == 500
    assert resp.json()["success"] is False


def test_model_failure_is_502() -> None:
    client, _ = make_client(FakeModel(error=ModelCallError("quota")))

    resp = client.post("/api/chat/agent", data={"state": "IDLE"}, files={"audio": AUDIO})

    assert resp.status_code == 502
    assert resp.json()["success"] is False


def test_persistence_failure_reports_failure_with_parsed_fields() -> None:
    model = FakeModel(
        '{"action": "CREATE_NOTE", "content": "buy milk", "reply": "Saving note..."}'
    )
    client, _ = make_client(model, BrokenNotes())

    resp = client.post("/api/chat/agent", data={"state": "ACTIVE"}, files={"audio": AUDIO})

    assert resp.status_code == 500
    assert resp.json() == {
        "success": False,
        "error": "Failed to save note",
        "action": "CREATE_NOTE",
        "content": "buy milk",
        "reply": "Saving note...",
    }


# ---------------------------------------------------------------------
# /api/chat
# ---------------------------------------------------------------------

def test_chat_requires_message() -> None:
    client, _ = make_client(FakeModel())

    resp = client.post("/api/chat", json={})

    assert resp.status_code == 400
    assert resp.json()["error"] == "Message is required"


def test_chat_returns_reply() -> None:
    model = FakeModel("Hello there.")
    client, _ = make_client(model)

    resp = client.post("/api/chat", json={"message": "hi"})

    assert resp.status_code == 200
    assert resp.json() == {"success": True, "reply": "Hello there."}
    assert model.messages == ["hi"]


def test_chat_model_failure_is_error_envelope() -> None:
    client, _ = make_client(FakeModel(error=ModelCallError("down")))

    resp = client.post("/api/chat", json={"message": "hi"})

    assert resp.status_code == 502
    assert resp.json()["success"] is False


def test_chat_rejects_non_json_body() -> None:
    client, _ = make_client(FakeModel())

    resp = client.post(
        "/api/chat", content=b"not json", headers={"content-type": "application/json"}
    )

    assert resp.status_code == 400
    assert resp.json()["success"] is False


# ---------------------------------------------------------------------
# /api/notes
# ---------------------------------------------------------------------

def test_notes_create_and_list_newest_first() -> None:
    client, _ = make_client(FakeModel())

    first = client.post("/api/notes", json={"content": "one"})
    client.post("/api/notes", json={"content": "two"})
    listing = client.get("/api/notes")

    assert first.status_code == 201
    assert first.json()["data"]["content"] == "one"
    assert listing.status_code == 200
    assert [n["content"] for n in listing.json()["data"]] == ["two", "one"]


def test_notes_create_requires_content() -> None:
    client, notes = make_client(FakeModel())

    resp = client.post("/api/notes", json={"content": "  "})

    assert resp.status_code == 400
    assert len(notes) == 0


def test_notes_list_includes_agent_notes() -> None:
    model = FakeModel(
        '{"action": "CREATE_NOTE", "content": "buy milk", "reply": "Saving note..."}'
    )
    client, _ = make_client(model)
    client.post("/api/chat/agent", data={"state": "ACTIVE"}, files={"audio": AUDIO})

    assert [n["content"] for n in client.get("/api/notes").json()["data"]] == ["buy milk"]


# ---------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------

def test_health() -> None:
    client, _ = make_client(FakeModel())
    assert client.get("/health").json() == {"status": "ok"}


def test_missing_provider_key_is_fatal() -> None:
    with pytest.raises(RuntimeError):
        create_app(make_config(openai_api_key=None))


def test_groq_provider_uses_groq_key() -> None:
    with pytest.raises(RuntimeError):
        create_app(make_config(llm_provider="groq", openai_api_key="sk-openai"))

    app = create_app(make_config(llm_provider="groq", groq_api_key="gsk-test"))
    assert app.state.intent_model is not None


def test_app_applies_log_level_and_logs_env(monkeypatch: pytest.MonkeyPatch) -> None:
    lines: list[str] = []
    monkeypatch.setattr(logger, "_print", lines.append)
    monkeypatch.setattr(logger, "_json_enabled", True)
    monkeypatch.setattr(logger, "_min_level", logger._min_level)

    create_app(make_config(env="staging", log_level="debug"), intent_model=FakeModel())

    configured = [
        event for event in map(json.loads, lines)
        if event["event_type"] == "APP_CONFIGURED"
    ]
    assert configured[0]["env"] == "staging"
    assert logger._min_level == logger._LEVELS["DEBUG"]
