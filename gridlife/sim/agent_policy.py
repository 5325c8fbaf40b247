"""Heuristic action selection: a strict priority ladder, first match wins."""

from __future__ import annotations

import random

from gridlife.sim.config import BehaviorConfig
from gridlife.sim.contracts import (
    Action,
    Agent,
    Item,
    LifecycleState,
    Message,
    Perception,
    Position,
    TileType,
    WorldState,
)
from gridlife.sim.perception import get_adjacent_actions
from gridlife.sim.world_gen import CARDINAL_STEPS

NPC_MESSAGES = [
    "Hi!",
    "I am not very smart, and just perform actions based on heuristics. "
    "You can learn quite a bit just from watching me though!",
    "You can plant trees by using a sapling item from your inventory on a grass "
    "tile. After a while, it will grow into a tree!",
    "You should chop down every tree you find! You will get valuable wood, food "
    "and saplings from it.",
    "Eating food will lower your hunger. Be sure to keep plenty of food on hand!",
    "Will you please help me build a fence around my house?",
    "Enemies come out at night. You can attack them, but I think it would be a "
    "lot better to build a fence with a door and lock the door so they can't "
    "get in!",
    "I love collecting resources! Will you help me collect tons of resources?",
    "What's your name?",
    "I hope you aren't annoyed by me, I just struggle to say anything other "
    "than some preset phrases! =(",
    "We should try and stick together! It would be even better to get as many "
    "others with us as we can too!",
    "Why do you think we are here?",
]


def _sign(value: int) -> int:
    return (value > 0) - (value < 0)


def step_toward(origin: Position, target: Position) -> Action:
    return Action.step(_sign(target.x - origin.x), _sign(target.y - origin.y))


def choose_reflex_action(
    agent: Agent, perception: Perception, *, hungry_threshold: float = 40.0
) -> Action | None:
    """Survival rungs shared by heuristic and oracle-driven agents."""
    if agent.stats.fatigue > 99 or agent.state == LifecycleState.SLEEPING:
        return Action.sleep()

    if agent.stats.hunger > hungry_threshold and agent.inventory.food > 0:
        return Action.use_item(Item.FOOD, agent.position)

    if perception.nearby_enemies:
        return Action.attack_at(perception.nearby_enemies[0].position)

    return None


def choose_action(
    agent: Agent,
    world: WorldState,
    perception: Perception,
    *,
    rng: random.Random,
    behavior: BehaviorConfig | None = None,
) -> Action:
    behavior = behavior or BehaviorConfig()

    reflex = choose_reflex_action(
        agent, perception, hungry_threshold=behavior.hungry_threshold
    )
    if reflex is not None:
        return reflex

    if pending_messages(
        agent, perception, world, relay_cooldown=behavior.relay_cooldown
    ):
        return Action.say(
            _oracle_roll_call(world), volume=behavior.broadcast_volume
        )

    if rng.random() < behavior.social_chance:
        social = _choose_social_action(agent, world, rng, behavior)
        if social is not None:
            return social

    if agent.inventory.wood >= 5 and rng.random() < behavior.build_chance:
        house = find_nearest_house(agent, world)
        if house is not None:
            spot = find_perimeter_spot(
                agent, house, world, radius=behavior.perimeter_radius
            )
            if spot is not None:
                return Action.build_at(spot[1], spot[0])

    chore = _choose_chore(agent, world, rng, behavior)
    if chore is not None:
        return chore

    if world.is_night:
        house = find_nearest_house(agent, world)
        if house is not None:
            return step_toward(agent.position, house)

    dx, dy = rng.choice(CARDINAL_STEPS)
    return Action.step(dx, dy)


def pending_messages(
    agent: Agent,
    perception: Perception,
    world: WorldState,
    *,
    relay_cooldown: int = 10,
) -> list[Message]:
    """Overheard messages that arrived after the agent last spoke.

    An agent answers at most once every `relay_cooldown` ticks.
    """
    last = agent.last_talk_tick
    if last is not None and world.tick - last < relay_cooldown:
        return []
    return [
        message
        for message in perception.messages
        if message.sender_id != agent.id and (last is None or message.tick > last)
    ]


def _oracle_roll_call(world: WorldState) -> str:
    locations = [
        f"{other.name} ({other.position.x}, {other.position.y})"
        for other in world.agents
        if other.uses_oracle
    ]
    if not locations:
        return "I heard something, but nobody seems to be leading us."
    return "Smart agents are at: " + "; ".join(locations)


def _choose_social_action(
    agent: Agent,
    world: WorldState,
    rng: random.Random,
    behavior: BehaviorConfig,
) -> Action | None:
    closest: Agent | None = None
    closest_distance = 0
    for other in world.agents:
        if other.id == agent.id or not other.is_awake:
            continue
        if agent.position.chebyshev(other.position) > behavior.social_radius:
            continue
        distance = agent.position.manhattan(other.position)
        if closest is None or distance < closest_distance:
            closest = other
            closest_distance = distance

    if closest is None:
        return None

    if agent.position.chebyshev(closest.position) <= 1:
        if (
            closest.stats.hunger > behavior.hungry_threshold
            and agent.inventory.food > 0
        ):
            return Action.use_item(Item.FOOD, closest.position)
        return Action.say(rng.choice(NPC_MESSAGES), volume=1)

    return step_toward(agent.position, closest.position)


def _choose_chore(
    agent: Agent,
    world: WorldState,
    rng: random.Random,
    behavior: BehaviorConfig,
) -> Action | None:
    adjacent = get_adjacent_actions(agent, world)
    if not adjacent:
        return None

    def first(*tiles: TileType) -> Position | None:
        for candidate in adjacent:
            if candidate.tile in tiles:
                return candidate.position
        return None

    water = first(TileType.WATER)
    if water is not None and agent.inventory.wood > 2:
        return Action.interact_at(water)

    tree = first(TileType.TREE)
    if tree is not None:
        return Action.interact_at(tree)

    grass = first(TileType.GRASS)
    if (
        grass is not None
        and agent.inventory.saplings > 0
        and rng.random() < behavior.plant_chance
    ):
        return Action.use_item(Item.SAPLINGS, grass)

    door = first(TileType.DOOR, TileType.LOCKED_DOOR)
    if door is not None and rng.random() < behavior.door_toggle_chance:
        return Action.interact_at(door)

    return None


def find_nearest_house(agent: Agent, world: WorldState) -> Position | None:
    nearest: Position | None = None
    best = 0
    for y, row in enumerate(world.grid):
        for x, tile in enumerate(row):
            if tile != TileType.HOUSE:
                continue
            distance = abs(x - agent.position.x) + abs(y - agent.position.y)
            if nearest is None or distance < best:
                nearest = Position(x=x, y=y)
                best = distance
    return nearest


def find_perimeter_spot(
    agent: Agent,
    house: Position,
    world: WorldState,
    *,
    radius: int = 4,
) -> tuple[Position, TileType] | None:
    """Pick a Grass neighbour on the fence rectangle around a house.

    Cells centred on either axis of the house get a Door, the rest a Wall.
    """
    claimed = {project.position for project in world.building_projects}
    for dx, dy in CARDINAL_STEPS:
        candidate = agent.position.offset(dx, dy)
        if not world.in_bounds(candidate):
            continue
        if world.tile_at(candidate) != TileType.GRASS or candidate in claimed:
            continue
        distance_x = abs(candidate.x - house.x)
        distance_y = abs(candidate.y - house.y)
        if distance_x > radius or distance_y > radius:
            continue
        if distance_x != radius and distance_y != radius:
            continue
        is_door = (distance_x == radius and candidate.y == house.y) or (
            distance_y == radius and candidate.x == house.x
        )
        return candidate, TileType.DOOR if is_door else TileType.WALL
    return None
