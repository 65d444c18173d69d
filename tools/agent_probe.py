"""
Post a recorded clip to the agent endpoint and print the envelope.

    python tools/agent_probe.py hello.wav --state ACTIVE
"""

import argparse
import json
import mimetypes
from pathlib import Path

import httpx

parser = argparse.ArgumentParser()
parser.add_argument("clip", type=Path)
parser.add_argument("--state", default="IDLE", choices=["IDLE", "ACTIVE"])
parser.add_argument("--server", default="http://localhost:8000/api")
args = parser.parse_args()

mime = mimetypes.guess_type(args.clip.name)[0] or "audio/wav"

resp = httpx.post(
    f"{args.server.rstrip('/')}/chat/agent",
    data={"state": args.state},
    files={"audio": (args.clip.name, args.clip.read_bytes(), mime)},
    timeout=30.0,
)
print("status:", resp.status_code)
print(json.dumps(resp.json(), indent=2))
