"""Deterministic prompt fixtures for FakeOracle and tests."""

from __future__ import annotations

import json
from typing import Any

from gridlife.llm.prompts import ActInput, MonologueInput, PromptId

_WANDER = ((1, 0), (0, 1), (-1, 0), (0, -1))


def fixture_for(prompt_id: PromptId, payload: Any) -> str:
    if prompt_id == PromptId.MONOLOGUE:
        data = MonologueInput.model_validate(payload)
        return _dump({"thoughts": _thoughts(data)})

    if prompt_id == PromptId.ACT:
        data = ActInput.model_validate(payload)
        return _dump(_act(data))

    return "{}"


def _thoughts(data: MonologueInput) -> str:
    if data.nearby_enemies:
        return "Something hostile is close. I need to deal with it."
    if data.messages:
        latest = data.messages[0]
        return f"{latest.sender} said something. I should answer."
    for cell in data.allowed_interactions:
        if cell.tile == "Tree":
            return "There is a tree right here. Wood would help us build."
    if data.nearby_agents:
        return f"I can see {data.nearby_agents[0].name}. Company would be nice."
    if data.is_night:
        return "It is dark. I should keep moving and stay alert."
    return "Nothing around. Time to explore."


def _act(data: ActInput) -> dict[str, Any]:
    if data.nearby_enemies:
        enemy = data.nearby_enemies[0]
        return {"kind": "Attack", "attack": {"position": {"x": enemy.x, "y": enemy.y}}}

    if data.messages and not _talked_last(data.context):
        return {
            "kind": "Talk",
            "talk": {"volume": 10, "message": f"I hear you, {data.messages[0].sender}!"},
        }

    for cell in data.allowed_interactions:
        position = {"x": cell.x, "y": cell.y}
        if cell.tile in {"Tree", "Water"}:
            return {"kind": "Interact", "interact": {"position": position}}
        if cell.tile == "Grass" and data.inventory.get("saplings", 0) > 0:
            return {"kind": "Use", "use": {"item": "saplings", "position": position}}

    if data.nearby_agents:
        other = data.nearby_agents[0]
        dx = (other.x > data.x) - (other.x < data.x)
        dy = (other.y > data.y) - (other.y < data.y)
        if abs(other.x - data.x) + abs(other.y - data.y) > 1:
            return {"kind": "Move", "move": {"dx": dx, "dy": dy}}

    dx, dy = _WANDER[len(data.context) % len(_WANDER)]
    return {"kind": "Move", "move": {"dx": dx, "dy": dy}}


def _talked_last(context: list[str]) -> bool:
    return bool(context) and "did: Talk" in context[-1]


def _dump(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=True)
