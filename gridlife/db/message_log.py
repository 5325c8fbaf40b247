"""Append-only talk message logging (JSONL)."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable, Iterator

from gridlife.sim.contracts import Agent, Message

SCHEMA_VERSION = 1
MESSAGES_LOG_NAME = "messages.jsonl"


def append_message(path: Path, message: Message) -> None:
    payload: dict[str, Any] = {
        "schema_version": SCHEMA_VERSION,
        "message": message.model_dump(mode="json"),
    }
    _append_record(path, payload)


def read_messages(path: Path) -> Iterator[Message]:
    if not path.exists():
        return
    with path.open("r", encoding="utf-8") as handle:
        for line in handle:
            line = line.strip()
            if not line:
                continue
            record = json.loads(line)
            yield Message.model_validate(record["message"])


def recent_messages(
    messages: list[Message],
    agents: Iterable[Agent],
    *,
    since_tick: int | None = None,
    limit: int = 25,
) -> list[Message]:
    """Newest-first messages sent by `agents`, optionally no older than a tick.

    `messages` must be in the order they were written.
    """
    senders = {agent.id for agent in agents}
    if not senders or limit <= 0:
        return []
    found: list[Message] = []
    for message in reversed(messages):
        if since_tick is not None and message.tick < since_tick:
            break
        if message.sender_id in senders:
            found.append(message)
            if len(found) >= limit:
                break
    return found


def _append_record(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as handle:
        handle.write(json.dumps(payload))
        handle.write("\n")
