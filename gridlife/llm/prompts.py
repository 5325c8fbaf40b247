"""Prompt templates and parsing helpers."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from gridlife.llm.base import OracleRequest
from gridlife.sim.contracts import TileType


class PromptId(str, Enum):
    MONOLOGUE = "monologue"
    ACT = "act"


class CellView(BaseModel):
    model_config = ConfigDict(extra="forbid")

    x: int
    y: int
    tile: str


class AgentView(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    x: int
    y: int
    sleeping: bool = False


class EnemyView(BaseModel):
    model_config = ConfigDict(extra="forbid")

    x: int
    y: int
    hp: float


class HeardMessage(BaseModel):
    model_config = ConfigDict(extra="forbid")

    sender: str
    content: str
    volume: int


class MonologueInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    agent_name: str
    x: int
    y: int
    hp: float
    hunger: float
    fatigue: float
    social: float
    inventory: dict[str, int]
    is_night: bool
    emotions: dict[str, float] = Field(default_factory=dict)
    visible_area: list[str] = Field(default_factory=list)
    nearby_agents: list[AgentView] = Field(default_factory=list)
    nearby_enemies: list[EnemyView] = Field(default_factory=list)
    messages: list[HeardMessage] = Field(default_factory=list)
    allowed_interactions: list[CellView] = Field(default_factory=list)
    companions: list[str] = Field(default_factory=list)
    context: list[str] = Field(default_factory=list)


class MonologueOutput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    thoughts: str = Field(min_length=1)


class ActInput(MonologueInput):
    thoughts: str


TILE_LEGEND = ", ".join(f"{tile.value}={tile.name.title()}" for tile in TileType)

ACTION_SCHEMA = (
    '{ "kind": "Move|Interact|Talk|Use|Sleep|Build|Attack", '
    '"move": {"dx": -1..1, "dy": -1..1}, '
    '"interact": {"position": {"x": 0, "y": 0}}, '
    '"talk": {"volume": 0..100, "message": "..."}, '
    '"use": {"item": "wood|saplings|food", "position": {"x": 0, "y": 0}}, '
    '"build": {"structure": 4, "position": {"x": 0, "y": 0}}, '
    '"attack": {"position": {"x": 0, "y": 0}} }'
)


@dataclass(frozen=True)
class PromptSpec:
    prompt_id: PromptId
    instruction: str
    input_model: type[BaseModel]
    output_model: type[BaseModel] | None

    def render(self, payload: BaseModel | dict[str, Any]) -> str:
        if isinstance(payload, BaseModel):
            validated = payload
        else:
            validated = self.input_model.model_validate(payload)
        body = json.dumps(validated.model_dump(), indent=2, ensure_ascii=True)
        return f"{self.instruction}\nInput JSON:\n{body}\nOutput JSON:"

    def parse(self, text: str) -> BaseModel | dict[str, Any] | None:
        data = extract_json(text)
        if data is None:
            return None
        if self.output_model is None:
            return data
        try:
            return self.output_model.model_validate(data)
        except ValidationError:
            return None


CATALOG: dict[PromptId, PromptSpec] = {
    PromptId.MONOLOGUE: PromptSpec(
        prompt_id=PromptId.MONOLOGUE,
        instruction=(
            "You are a villager living on a tile grid. Think out loud in one or "
            "two sentences about your situation and what you want to do next. "
            "Your visible area is a list of rows of tile codes centred on you "
            f"({TILE_LEGEND}). Return JSON with a thoughts string."
        ),
        input_model=MonologueInput,
        output_model=MonologueOutput,
    ),
    PromptId.ACT: PromptSpec(
        prompt_id=PromptId.ACT,
        instruction=(
            "Choose exactly one action that follows from your thoughts. Interact "
            "and Use targets must come from allowed_interactions or be your own "
            "position. Return only JSON matching the action schema, including "
            f"only the block for the chosen kind: {ACTION_SCHEMA}"
        ),
        input_model=ActInput,
        output_model=None,
    ),
}


def render_prompt(prompt_id: PromptId, payload: BaseModel | dict[str, Any]) -> str:
    return CATALOG[prompt_id].render(payload)


def parse_prompt_output(
    prompt_id: PromptId, text: str
) -> BaseModel | dict[str, Any] | None:
    return CATALOG[prompt_id].parse(text)


def situation_from_request(request: OracleRequest) -> MonologueInput:
    """Flatten an oracle request into the prompt input model."""
    agent = request.agent
    perception = request.perception
    return MonologueInput(
        agent_name=agent.name,
        x=agent.position.x,
        y=agent.position.y,
        hp=agent.hp,
        hunger=round(agent.stats.hunger, 2),
        fatigue=round(agent.stats.fatigue, 2),
        social=round(agent.stats.social, 2),
        inventory=agent.inventory.model_dump(),
        is_night=perception.is_night,
        emotions={
            emotion.emotion: round(emotion.intensity, 2) for emotion in request.emotions
        },
        visible_area=[
            "".join(str(int(tile)) for tile in row) for row in perception.visible_area
        ],
        nearby_agents=[
            AgentView(
                name=other.name,
                x=other.position.x,
                y=other.position.y,
                sleeping=not other.is_awake,
            )
            for other in perception.nearby_agents
        ],
        nearby_enemies=[
            EnemyView(x=enemy.position.x, y=enemy.position.y, hp=enemy.hp)
            for enemy in perception.nearby_enemies
        ],
        messages=[
            HeardMessage(
                sender=message.sender_name,
                content=message.content,
                volume=message.volume,
            )
            for message in perception.messages
        ],
        allowed_interactions=[
            CellView(x=cell.position.x, y=cell.position.y, tile=cell.tile.name.title())
            for cell in request.allowed
        ],
        companions=list(request.companions),
        context=list(request.context),
    )


def extract_json(text: str) -> dict[str, Any] | None:
    marker_start = "Input JSON:"
    marker_end = "Output JSON:"
    if marker_start in text and marker_end in text:
        block = text.split(marker_start, 1)[1].split(marker_end, 1)[0].strip()
        if block:
            try:
                loaded = json.loads(block)
            except json.JSONDecodeError:
                loaded = None
            if isinstance(loaded, dict):
                return loaded
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end <= start:
        return None
    snippet = text[start : end + 1]
    try:
        loaded = json.loads(snippet)
    except json.JSONDecodeError:
        return None
    if isinstance(loaded, dict):
        return loaded
    return None
