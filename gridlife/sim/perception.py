"""Line-of-sight perception, emotional state and adjacent interactions."""

from __future__ import annotations

import random
from typing import Callable, Iterator

from gridlife.sim.contracts import (
    OBSTACLE_TILES,
    AdjacentTile,
    Agent,
    EmotionalOutput,
    Message,
    Perception,
    Position,
    Stats,
    TileType,
    WorldState,
)
from gridlife.sim.world_gen import CARDINAL_STEPS

MAX_VIEW_DISTANCE = 10

EMOTION_CHANNELS = ("joy", "fear", "anger", "sadness")

MessageSource = Callable[[list[Agent]], list[Message]]


def view_distance(world: WorldState) -> int:
    return min(max(world.width, world.height), MAX_VIEW_DISTANCE)


Cell = tuple[int, int]


def line_points(start: Cell, end: Cell) -> Iterator[Cell]:
    """Yield the Bresenham cells from start to end, excluding start."""
    x, y = start
    end_x, end_y = end
    dx = abs(end_x - x)
    dy = -abs(end_y - y)
    sx = 1 if x < end_x else -1
    sy = 1 if y < end_y else -1
    error = dx + dy
    while (x, y) != (end_x, end_y):
        doubled = 2 * error
        if doubled >= dy:
            error += dy
            x += sx
        if doubled <= dx:
            error += dx
            y += sy
        yield x, y


def occupied_cells(world: WorldState, *, exclude_id: str | None = None) -> set[Cell]:
    cells = {
        (agent.position.x, agent.position.y)
        for agent in world.agents
        if agent.id != exclude_id
    }
    cells.update((enemy.position.x, enemy.position.y) for enemy in world.enemies)
    return cells


def cast_ray(
    world: WorldState,
    origin: Position,
    target: Position,
    *,
    exclude_id: str | None = None,
    occupied: set[Cell] | None = None,
) -> tuple[TileType, Position]:
    """Return the tile the ray reports and the cell where it stopped.

    Out-of-bounds cells report Wall. Cells holding an agent or enemy stop the
    ray and report Grass.
    """
    if occupied is None:
        occupied = occupied_cells(world, exclude_id=exclude_id)
    grid = world.grid
    width, height = world.width, world.height
    end = (target.x, target.y)
    if (origin.x, origin.y) == end:
        return world.tile_at(origin), origin
    for x, y in line_points((origin.x, origin.y), end):
        if not (0 <= x < width and 0 <= y < height):
            return TileType.WALL, Position(x=x, y=y)
        tile = grid[y][x]
        if tile in OBSTACLE_TILES:
            return tile, Position(x=x, y=y)
        if (x, y) in occupied:
            return TileType.GRASS, Position(x=x, y=y)
    return grid[target.y][target.x], target


def is_visible(
    world: WorldState,
    origin: Position,
    target: Position,
    *,
    exclude_id: str | None = None,
    occupied: set[Cell] | None = None,
) -> bool:
    _, stopped_at = cast_ray(
        world, origin, target, exclude_id=exclude_id, occupied=occupied
    )
    return stopped_at == target


def perceive(
    agent: Agent,
    world: WorldState,
    *,
    messages: MessageSource | None = None,
) -> Perception:
    distance = view_distance(world)
    origin = agent.position
    occupied = occupied_cells(world, exclude_id=agent.id)

    visible_area: list[list[TileType]] = []
    for dy in range(-distance, distance + 1):
        row = []
        for dx in range(-distance, distance + 1):
            tile, _ = cast_ray(
                world, origin, origin.offset(dx, dy), occupied=occupied
            )
            row.append(tile)
        visible_area.append(row)

    nearby_agents = [
        other
        for other in world.agents
        if other.id != agent.id
        and origin.chebyshev(other.position) <= distance
        and is_visible(world, origin, other.position, occupied=occupied)
    ]
    nearby_enemies = [
        enemy
        for enemy in world.enemies
        if origin.chebyshev(enemy.position) <= distance
        and is_visible(world, origin, enemy.position, occupied=occupied)
    ]
    heard = messages(nearby_agents) if messages and nearby_agents else []

    return Perception(
        visible_area=visible_area,
        nearby_agents=nearby_agents,
        nearby_enemies=nearby_enemies,
        is_night=world.is_night,
        messages=heard,
    )


def _emotion_conditions(
    emotion: str, perception: Perception, stats: Stats
) -> list[bool] | None:
    has_agents = bool(perception.nearby_agents)
    has_enemies = bool(perception.nearby_enemies)
    if emotion == "joy":
        return [
            not perception.is_night,
            has_agents,
            stats.hunger < 50,
            stats.social > 50,
            stats.fatigue < 50,
        ]
    if emotion == "fear":
        return [
            perception.is_night,
            not has_agents,
            stats.hunger > 90,
            stats.fatigue > 95,
        ]
    if emotion in {"anger", "sadness"}:
        return [
            perception.is_night,
            has_enemies,
            stats.hunger > 50,
            stats.social < 20,
            stats.fatigue > 70,
        ]
    return None


def process_emotion(
    emotion: str,
    perception: Perception,
    stats: Stats,
    *,
    rng: random.Random | None = None,
) -> EmotionalOutput:
    conditions = _emotion_conditions(emotion, perception, stats)
    if conditions is None:
        baseline = (rng or random.Random()).random() * 0.1
        return EmotionalOutput(emotion=emotion, intensity=baseline)
    return EmotionalOutput(
        emotion=emotion, intensity=sum(conditions) / len(conditions)
    )


def process_emotions(
    perception: Perception,
    stats: Stats,
    *,
    channels: tuple[str, ...] = EMOTION_CHANNELS,
    rng: random.Random | None = None,
) -> list[EmotionalOutput]:
    return [
        process_emotion(emotion, perception, stats, rng=rng) for emotion in channels
    ]


def get_adjacent_actions(agent: Agent, world: WorldState) -> list[AdjacentTile]:
    """Interactable 4-neighbours; shared by the heuristic and the oracle."""
    adjacent: list[AdjacentTile] = []
    for dx, dy in CARDINAL_STEPS:
        position = agent.position.offset(dx, dy)
        if not world.in_bounds(position):
            continue
        tile = world.tile_at(position)
        if (
            tile == TileType.TREE
            or (tile == TileType.WATER and agent.inventory.wood > 2)
            or tile in {TileType.DOOR, TileType.LOCKED_DOOR}
            or (tile == TileType.GRASS and agent.inventory.saplings > 0)
        ):
            adjacent.append(AdjacentTile(position=position, tile=tile))
    return adjacent
