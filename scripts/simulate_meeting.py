#!/usr/bin/env python3
"""Simulate a Recall.ai bot sending webhooks for a meeting.

Usage:
    python scripts/simulate_meeting.py --bot-id <bot id>
    python scripts/simulate_meeting.py --bot-id <bot id> --transcript call.txt

Sends bot.in_call_recording, then one transcript.data event per line
(typed interactively, or read from a transcript file), then bot.done.
The bot id must belong to a meeting that already exists.

Transcript files use a two-line format per utterance:

    00:01:15 - (3)Jane Doe:
    We ingest about two million rows a minute.

Reads APP_URL and RECALL_AI_WEBHOOK_TOKEN from the environment or .env file.
"""

from __future__ import annotations

import argparse
import os
import re
import sys
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path

# Ensure project root is on sys.path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import httpx  # noqa: E402

from src.zoom_helper.config import get_settings  # noqa: E402

TIMEOUT = 15.0
HEADER_RE = re.compile(r"^(\d{2}):(\d{2}):(\d{2}) - \((\d+)\)([^:]+):$")


class Simulator:
    """Builds and posts Recall.ai-shaped webhook payloads for one bot."""

    def __init__(self, webhook_url: str, bot_id: str, token: str | None = None) -> None:
        self.webhook_url = webhook_url
        self.bot_id = bot_id
        self._headers = {"X-Recall-Token": token} if token else {}
        self._endpoint_id = str(uuid.uuid4())
        self._transcript_id = str(uuid.uuid4())
        self._recording_id = str(uuid.uuid4())

    def _bot(self) -> dict:
        return {"id": self.bot_id, "metadata": {}}

    def send(self, payload: dict) -> bool:
        try:
            response = httpx.post(
                self.webhook_url, json=payload, headers=self._headers, timeout=TIMEOUT
            )
        except httpx.HTTPError as exc:
            print(f"Error sending {payload['event']}: {exc}", file=sys.stderr)
            return False
        if response.status_code >= 400:
            print(
                f"Webhook failed: {response.status_code} {response.text}",
                file=sys.stderr,
            )
            return False
        print(f"Sent {payload['event']}")
        return True

    def status(self, code: str) -> bool:
        return self.send({
            "event": f"bot.{code}",
            "data": {
                "data": {
                    "code": code,
                    "sub_code": None,
                    "updated_at": datetime.now(timezone.utc).isoformat(),
                },
                "bot": self._bot(),
            },
        })

    def transcript(
        self,
        text: str,
        speaker: str = "Test User",
        participant_id: int = 12345,
        start: float = 0.0,
        end: float | None = None,
    ) -> bool:
        return self.send({
            "event": "transcript.data",
            "data": {
                "data": {
                    "words": [
                        {
                            "text": text,
                            "start_timestamp": {"relative": start},
                            "end_timestamp": {"relative": end} if end is not None else None,
                        },
                    ],
                    "participant": {
                        "id": participant_id,
                        "name": speaker,
                        "is_host": False,
                        "platform": "zoom",
                        "extra_data": {},
                    },
                },
                "realtime_endpoint": {"id": self._endpoint_id, "metadata": {}},
                "transcript": {"id": self._transcript_id, "metadata": {}},
                "recording": {"id": self._recording_id, "metadata": {}},
                "bot": self._bot(),
            },
        })


def parse_transcript_file(path: Path) -> list[tuple[float, int, str, str]]:
    """Parse a transcript file into (seconds, participant id, name, text) tuples."""
    lines = path.read_text(encoding="utf-8").splitlines()
    utterances = []
    i = 0
    while i < len(lines):
        match = HEADER_RE.match(lines[i].strip())
        if match and i + 1 < len(lines):
            hours, minutes, seconds, participant_id, name = match.groups()
            text = lines[i + 1].strip()
            if text:
                offset = int(hours) * 3600 + int(minutes) * 60 + int(seconds)
                utterances.append((float(offset), int(participant_id), name.strip(), text))
            i += 2
        else:
            i += 1
    return utterances


def run_interactive(sim: Simulator) -> None:
    print("Type messages to send as transcript data (Ctrl+D or Ctrl+C to exit):")
    for line in sys.stdin:
        message = line.strip()
        if message:
            sim.transcript(message, end=10.0)


def run_file(sim: Simulator, path: Path, delay: float) -> None:
    for offset, participant_id, name, text in parse_transcript_file(path):
        sim.transcript(text, speaker=name, participant_id=participant_id, start=offset)
        time.sleep(delay)


def main() -> int:
    parser = argparse.ArgumentParser(description="Simulate Recall.ai meeting webhooks")
    parser.add_argument("--bot-id", required=True, help="Bot id of an existing meeting")
    parser.add_argument("--transcript", type=Path, help="Replay a transcript file")
    parser.add_argument(
        "--delay", type=float, default=3.0, help="Seconds between replayed lines"
    )
    parser.add_argument("--url", help="Webhook URL (default: derived from APP_URL)")
    args = parser.parse_args()

    settings = get_settings()
    sim = Simulator(
        webhook_url=args.url or settings.webhook_url,
        bot_id=args.bot_id,
        token=settings.RECALL_AI_WEBHOOK_TOKEN,
    )
    print(f"Bot ID: {sim.bot_id}")
    print(f"Webhook: {sim.webhook_url}")

    if args.transcript is not None and not args.transcript.exists():
        print(f"Transcript file not found: {args.transcript}", file=sys.stderr)
        return 1

    if not sim.status("in_call_recording"):
        return 1

    try:
        if args.transcript is not None:
            run_file(sim, args.transcript, args.delay)
        else:
            run_interactive(sim)
    except KeyboardInterrupt:
        print("\nShutting down...")
    finally:
        sim.status("done")
    return 0


if __name__ == "__main__":
    sys.exit(main())
