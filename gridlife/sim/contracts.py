"""Core data contracts for the grid world."""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    model_validator,
)

DAY_MINUTES = 1440
NIGHT_START = 20 * 60
NIGHT_END = 6 * 60


class TileType(IntEnum):
    GRASS = 0
    TREE = 1
    WATER = 2
    HOUSE = 3
    WALL = 4
    DOOR = 5
    LOCKED_DOOR = 6
    BRIDGE = 7


# Tiles that stop a line-of-sight ray.
OBSTACLE_TILES: frozenset[TileType] = frozenset(
    {
        TileType.HOUSE,
        TileType.WALL,
        TileType.TREE,
        TileType.DOOR,
        TileType.LOCKED_DOOR,
    }
)

IMPASSABLE_TILES: frozenset[TileType] = frozenset(
    {TileType.WALL, TileType.LOCKED_DOOR, TileType.TREE, TileType.WATER}
)

ENEMY_IMPASSABLE_TILES: frozenset[TileType] = frozenset(
    {TileType.WATER, TileType.TREE}
)


def is_night_time(time_of_day: int) -> bool:
    return time_of_day >= NIGHT_START or time_of_day < NIGHT_END


class Position(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    x: int
    y: int

    def key(self) -> str:
        return f"{self.x},{self.y}"

    @classmethod
    def from_key(cls, key: str) -> "Position":
        x, y = key.split(",")
        return cls(x=int(x), y=int(y))

    def offset(self, dx: int, dy: int) -> "Position":
        return Position(x=self.x + dx, y=self.y + dy)

    def chebyshev(self, other: "Position") -> int:
        return max(abs(self.x - other.x), abs(self.y - other.y))

    def manhattan(self, other: "Position") -> int:
        return abs(self.x - other.x) + abs(self.y - other.y)


class Item(str, Enum):
    WOOD = "wood"
    SAPLINGS = "saplings"
    FOOD = "food"


class LifecycleState(str, Enum):
    AWAKE = "awake"
    SLEEPING = "sleeping"


class DecisionMode(str, Enum):
    HEURISTIC = "heuristic"
    ORACLE = "oracle"


def _clamp(value: float, low: float = 0, high: float = 100) -> float:
    return max(low, min(high, value))


class Stats(BaseModel):
    model_config = ConfigDict(extra="forbid")

    hunger: float = 0.0
    fatigue: float = 0.0
    social: float = 100.0

    def clamp(self) -> None:
        self.hunger = _clamp(self.hunger)
        self.fatigue = _clamp(self.fatigue)
        self.social = _clamp(self.social)


class Inventory(BaseModel):
    model_config = ConfigDict(extra="forbid")

    wood: int = 0
    saplings: int = 0
    food: int = 0

    def count(self, item: Item) -> int:
        return getattr(self, item.value)

    def clamp(self) -> None:
        self.wood = max(0, self.wood)
        self.saplings = max(0, self.saplings)
        self.food = max(0, self.food)


class Agent(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    name: str
    emoji: str
    position: Position
    stats: Stats = Field(default_factory=Stats)
    hp: float = 100.0
    inventory: Inventory = Field(default_factory=Inventory)
    state: LifecycleState = LifecycleState.AWAKE
    decision_mode: DecisionMode = DecisionMode.HEURISTIC
    context: list[str] | None = None
    last_talk_tick: int | None = None

    @property
    def is_awake(self) -> bool:
        return self.state == LifecycleState.AWAKE

    @property
    def uses_oracle(self) -> bool:
        return self.decision_mode == DecisionMode.ORACLE

    def clamp(self) -> None:
        self.stats.clamp()
        self.inventory.clamp()
        self.hp = _clamp(self.hp)


class Enemy(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    position: Position
    hp: float = 100.0
    emoji: str = "👹"


class BuildingProject(BaseModel):
    model_config = ConfigDict(extra="forbid")

    structure: TileType
    progress: int = Field(default=0, ge=0)
    position: Position


Grid = tuple[tuple[TileType, ...], ...]


class WorldState(BaseModel):
    """Root simulation state.

    The grid is stored as immutable row tuples. Writing a tile swaps in a new
    row, so `snapshot()` can share rows with the live state instead of
    copying every cell each tick.
    """

    model_config = ConfigDict(extra="forbid")

    grid: Grid
    agents: list[Agent] = Field(default_factory=list)
    enemies: list[Enemy] = Field(default_factory=list)
    seed_timers: dict[str, int] = Field(default_factory=dict)
    building_projects: list[BuildingProject] = Field(default_factory=list)
    is_night: bool = False
    time_of_day: int = Field(default=12 * 60, ge=0, lt=DAY_MINUTES)
    tick: int = 0

    @model_validator(mode="after")
    def validate_grid(self) -> "WorldState":
        if not self.grid or not self.grid[0]:
            raise ValueError("grid must have at least one row and column")
        width = len(self.grid[0])
        if any(len(row) != width for row in self.grid):
            raise ValueError("grid rows must share the same width")
        return self

    @property
    def width(self) -> int:
        return len(self.grid[0])

    @property
    def height(self) -> int:
        return len(self.grid)

    def in_bounds(self, position: Position) -> bool:
        return 0 <= position.x < self.width and 0 <= position.y < self.height

    def tile_at(self, position: Position) -> TileType:
        return self.grid[position.y][position.x]

    def set_tile(self, position: Position, tile: TileType) -> None:
        row = list(self.grid[position.y])
        row[position.x] = TileType(tile)
        rows = list(self.grid)
        rows[position.y] = tuple(row)
        self.grid = tuple(rows)

    def agent_at(
        self, position: Position, *, exclude_id: str | None = None
    ) -> Agent | None:
        for agent in self.agents:
            if agent.id != exclude_id and agent.position == position:
                return agent
        return None

    def enemy_at(self, position: Position) -> Enemy | None:
        for enemy in self.enemies:
            if enemy.position == position:
                return enemy
        return None

    def agent_by_id(self, agent_id: str) -> Agent | None:
        for agent in self.agents:
            if agent.id == agent_id:
                return agent
        return None

    def snapshot(self) -> "WorldState":
        return self.model_copy(
            update={
                "agents": [agent.model_copy(deep=True) for agent in self.agents],
                "enemies": [enemy.model_copy(deep=True) for enemy in self.enemies],
                "seed_timers": dict(self.seed_timers),
                "building_projects": [
                    project.model_copy() for project in self.building_projects
                ],
            }
        )


def blank_grid(width: int, height: int, tile: TileType = TileType.GRASS) -> Grid:
    row = tuple(tile for _ in range(width))
    return tuple(row for _ in range(height))


class Message(BaseModel):
    model_config = ConfigDict(extra="forbid")

    sender_id: str
    sender_name: str
    content: str
    volume: int
    position: Position
    tick: int
    created_at: str | None = None


class EmotionalOutput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    emotion: str
    intensity: float


class AdjacentTile(BaseModel):
    model_config = ConfigDict(extra="forbid")

    position: Position
    tile: TileType


class Perception(BaseModel):
    model_config = ConfigDict(extra="forbid")

    visible_area: list[list[TileType]]
    nearby_agents: list[Agent] = Field(default_factory=list)
    nearby_enemies: list[Enemy] = Field(default_factory=list)
    is_night: bool = False
    messages: list[Message] = Field(default_factory=list)


class ActionKind(str, Enum):
    MOVE = "Move"
    INTERACT = "Interact"
    TALK = "Talk"
    USE = "Use"
    SLEEP = "Sleep"
    BUILD = "Build"
    ATTACK = "Attack"


class MoveArgs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    dx: int = Field(ge=-1, le=1)
    dy: int = Field(ge=-1, le=1)


class TargetArgs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    position: Position


class TalkArgs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    volume: int = Field(ge=0, le=100)
    message: str


class UseArgs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    item: Item
    position: Position


class BuildArgs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    structure: TileType
    position: Position


_ARG_FIELDS: dict[ActionKind, str] = {
    ActionKind.MOVE: "move",
    ActionKind.INTERACT: "interact",
    ActionKind.TALK: "talk",
    ActionKind.USE: "use",
    ActionKind.BUILD: "build",
    ActionKind.ATTACK: "attack",
}


class Action(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: ActionKind
    move: MoveArgs | None = None
    interact: TargetArgs | None = None
    talk: TalkArgs | None = None
    use: UseArgs | None = None
    build: BuildArgs | None = None
    attack: TargetArgs | None = None

    @model_validator(mode="after")
    def validate_action(self) -> "Action":
        expected = _ARG_FIELDS.get(self.kind)
        for field_name in _ARG_FIELDS.values():
            value = getattr(self, field_name)
            if field_name == expected and value is None:
                raise ValueError(f"{self.kind.value} requires {field_name} args")
            if field_name != expected and value is not None:
                raise ValueError(f"{self.kind.value} cannot include {field_name} args")
        return self

    @classmethod
    def step(cls, dx: int, dy: int) -> "Action":
        return cls(kind=ActionKind.MOVE, move=MoveArgs(dx=dx, dy=dy))

    @classmethod
    def idle(cls) -> "Action":
        return cls.step(0, 0)

    @classmethod
    def interact_at(cls, position: Position) -> "Action":
        return cls(kind=ActionKind.INTERACT, interact=TargetArgs(position=position))

    @classmethod
    def attack_at(cls, position: Position) -> "Action":
        return cls(kind=ActionKind.ATTACK, attack=TargetArgs(position=position))

    @classmethod
    def say(cls, message: str, *, volume: int) -> "Action":
        return cls(kind=ActionKind.TALK, talk=TalkArgs(volume=volume, message=message))

    @classmethod
    def use_item(cls, item: Item, position: Position) -> "Action":
        return cls(kind=ActionKind.USE, use=UseArgs(item=item, position=position))

    @classmethod
    def build_at(cls, structure: TileType, position: Position) -> "Action":
        return cls(
            kind=ActionKind.BUILD,
            build=BuildArgs(structure=structure, position=position),
        )

    @classmethod
    def sleep(cls) -> "Action":
        return cls(kind=ActionKind.SLEEP)

    def describe(self) -> str:
        if self.move is not None:
            return f"{self.kind.value} ({self.move.dx}, {self.move.dy})"
        if self.talk is not None:
            return f"{self.kind.value} [{self.talk.volume}] {self.talk.message}"
        if self.use is not None:
            position = self.use.position
            return f"{self.kind.value} {self.use.item.value} ({position.x}, {position.y})"
        if self.build is not None:
            position = self.build.position
            return (
                f"{self.kind.value} {self.build.structure.name} "
                f"({position.x}, {position.y})"
            )
        target = self.interact or self.attack
        if target is not None:
            return f"{self.kind.value} ({target.position.x}, {target.position.y})"
        return self.kind.value


def parse_action(raw: Any) -> Action | None:
    """Validate a raw action payload, returning None when it is malformed."""
    try:
        return Action.model_validate(raw)
    except ValidationError:
        return None


def coerce_action(
    raw: Any, allowed: list[AdjacentTile] | None = None
) -> Action:
    """Validate an action or fall back to standing still."""
    action = parse_action(raw)
    if action is None:
        return Action.idle()

    if allowed is None:
        return action

    if action.kind == ActionKind.INTERACT and action.interact is not None:
        positions = {tile.position for tile in allowed}
        if action.interact.position not in positions:
            return Action.idle()

    return action
