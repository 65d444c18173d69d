"""
Agent client entry point.

Runs the note agent loop on the default microphone and system voice
against a running intent server, until interrupted.

    note-agent --server http://localhost:8000
"""

from __future__ import annotations

import argparse
import asyncio
import time

from dotenv import load_dotenv

from adapters.capture.sounddevice_capture import SoundDeviceCapture
from adapters.intent.http_client import HttpIntentClient
from adapters.tts.pyttsx3_speech import Pyttsx3Speech
from config import AppConfig
from observability import logger
from observability.logger import log_event
from orchestrator.enums.state import AgentState
from session.agent_session import AgentSession


def _print_transition(previous: AgentState, current: AgentState) -> None:
    log_event({
        "ts_ms": time.time_ns() // 1_000_000,
        "event_type": "AGENT_STATE",
        "from": previous.value,
        "to": current.value,
    })


async def run(server_url: str) -> None:
    intent_client = HttpIntentClient(base_url=server_url)
    session = AgentSession(
        capture=SoundDeviceCapture(),
        speech=Pyttsx3Speech(),
        intent_client=intent_client,
    )
    session.on_state_change(_print_transition)

    await session.start()
    try:
        # Loop runs on timers; just keep the event loop alive
        await asyncio.Event().wait()
    finally:
        await session.close()
        await intent_client.aclose()


def main() -> None:
    load_dotenv()
    config = AppConfig.load_from_env()
    logger.configure(enable_json=config.enable_json_logs, level=config.log_level)

    parser = argparse.ArgumentParser(description="Voice note agent client")
    parser.add_argument(
        "--server",
        default=config.agent_server_url,
        help="Intent server base URL (/api is appended when missing)",
    )
    args = parser.parse_args()

    try:
        asyncio.run(run(args.server))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
