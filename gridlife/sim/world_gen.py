"""Procedural world generation and spawn placement."""

from __future__ import annotations

import math
import random
from uuid import uuid4

from gridlife.sim.contracts import (
    Agent,
    DecisionMode,
    Enemy,
    Position,
    TileType,
    WorldState,
    blank_grid,
)

RIVER_LENGTH_BIAS = 0.7

CARDINAL_STEPS: tuple[tuple[int, int], ...] = ((-1, 0), (1, 0), (0, -1), (0, 1))

AGENT_EMOJIS = [
    "👤",
    "👩",
    "👨",
    "👱",
    "👵",
    "👴",
    "👧",
    "👦",
    "👮",
    "👷",
    "👸",
    "🤴",
    "🧙",
]

AGENT_NAMES = [
    "Ada",
    "Bjorn",
    "Cora",
    "Dax",
    "Elin",
    "Finn",
    "Greta",
    "Hugo",
    "Ingrid",
    "Jarl",
    "Kara",
    "Leif",
    "Mira",
    "Nils",
    "Olga",
    "Per",
    "Quinn",
    "Runa",
    "Sten",
    "Tova",
    "Ulla",
    "Vidar",
    "Wren",
    "Ylva",
]

AGENT_SURNAMES = [
    "Ashby",
    "Brook",
    "Carver",
    "Dale",
    "Fenn",
    "Holt",
    "Marsh",
    "Reed",
    "Stone",
    "Thorne",
    "Vale",
    "Wood",
]


def generate_world(width: int, height: int, rng: random.Random) -> WorldState:
    if width <= 0 or height <= 0:
        raise ValueError("world dimensions must be positive")
    cells = [list(row) for row in blank_grid(width, height)]

    for _ in range(rng.randint(1, 3)):
        start_x = rng.randrange(width)
        start_y = rng.randrange(height)
        min_length = min(width, height)
        max_length = width + height
        length = math.floor(
            min_length
            + (max_length - min_length) * rng.random() ** (1 - RIVER_LENGTH_BIAS)
        )
        _carve_river(cells, start_x, start_y, length, rng)

    for _ in range(rng.randint(5, 9)):
        center_x = rng.randrange(width)
        center_y = rng.randrange(height)
        size = rng.randint(20, 69)
        _plant_forest(cells, center_x, center_y, size, rng)

    return WorldState(grid=tuple(tuple(row) for row in cells))


def _carve_river(
    cells: list[list[TileType]],
    x: int,
    y: int,
    length: int,
    rng: random.Random,
) -> None:
    height = len(cells)
    width = len(cells[0])
    direction = 1 if rng.random() < 0.5 else -1
    for _ in range(length):
        if 0 <= y < height and 0 <= x < width:
            cells[y][x] = TileType.WATER
        roll = rng.random()
        if roll < 0.7:
            x += direction
        elif roll < 0.8:
            direction = -direction
            x += direction
        elif roll < 0.9:
            y += 1
        else:
            y -= 1


def _plant_forest(
    cells: list[list[TileType]],
    center_x: int,
    center_y: int,
    size: int,
    rng: random.Random,
) -> None:
    height = len(cells)
    width = len(cells[0])
    for _ in range(size):
        angle = rng.random() * 2 * math.pi
        distance = rng.random() * size / 2
        x = math.floor(center_x + math.cos(angle) * distance)
        y = math.floor(center_y + math.sin(angle) * distance)
        if 0 <= y < height and 0 <= x < width and cells[y][x] == TileType.GRASS:
            cells[y][x] = TileType.TREE


def find_safe_position(world: WorldState, rng: random.Random) -> Position:
    """Sample until a Grass cell with at least one Grass 4-neighbour turns up.

    The caller guarantees such a cell exists.
    """
    while True:
        candidate = Position(x=rng.randrange(world.width), y=rng.randrange(world.height))
        if world.tile_at(candidate) != TileType.GRASS:
            continue
        for dx, dy in CARDINAL_STEPS:
            neighbour = candidate.offset(dx, dy)
            if world.in_bounds(neighbour) and world.tile_at(neighbour) == TileType.GRASS:
                return candidate


def create_agent(
    rng: random.Random,
    *,
    mode: DecisionMode = DecisionMode.HEURISTIC,
    position: Position | None = None,
) -> Agent:
    name = f"{rng.choice(AGENT_NAMES)} {rng.choice(AGENT_SURNAMES)}"
    return Agent(
        id=uuid4().hex,
        name=name,
        emoji=rng.choice(AGENT_EMOJIS),
        position=position or Position(x=0, y=0),
        decision_mode=mode,
        context=[] if mode == DecisionMode.ORACLE else None,
    )


def create_enemy(position: Position) -> Enemy:
    return Enemy(id=uuid4().hex, position=position)


def add_agent_to_world(world: WorldState, agent: Agent, rng: random.Random) -> Agent:
    """Build the agent a house and place them on a free tile beside it."""
    house = _find_unoccupied_position(world, rng)
    world.set_tile(house, TileType.HOUSE)

    placement: Position | None = None
    for dx, dy in CARDINAL_STEPS:
        candidate = house.offset(dx, dy)
        if (
            world.in_bounds(candidate)
            and world.tile_at(candidate) == TileType.GRASS
            and world.agent_at(candidate) is None
        ):
            placement = candidate
            break
    if placement is None:
        placement = _find_unoccupied_position(world, rng)

    agent.position = placement
    world.agents.append(agent)
    return agent


def _find_unoccupied_position(world: WorldState, rng: random.Random) -> Position:
    while True:
        candidate = find_safe_position(world, rng)
        if world.agent_at(candidate) is None:
            return candidate
