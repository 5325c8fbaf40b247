"""Apply resolved actions and advance environment-wide rules."""

from __future__ import annotations

import random

from gridlife.sim.contracts import (
    DAY_MINUTES,
    ENEMY_IMPASSABLE_TILES,
    IMPASSABLE_TILES,
    Action,
    ActionKind,
    Agent,
    BuildingProject,
    Item,
    LifecycleState,
    Position,
    TileType,
    WorldState,
    is_night_time,
)
from gridlife.sim.world_gen import CARDINAL_STEPS, create_enemy, find_safe_position

BUILD_COST = 5
BRIDGE_COST = 3
CHOP_WOOD = 5
FOOD_VALUE = 40
ATTACK_DAMAGE = 20
ENEMY_DAMAGE = 15
SEED_GROWTH_TICKS = 100
PROJECT_STEP = 10
MOVE_SOCIAL_RADIUS = 5


def apply_action(
    world: WorldState, agent: Agent, action: Action, *, rng: random.Random
) -> None:
    """Fold one agent's action into the world, then regulate and clamp."""
    if action.kind == ActionKind.MOVE and action.move is not None:
        _apply_move(world, agent, action.move.dx, action.move.dy)
    elif action.kind == ActionKind.INTERACT and action.interact is not None:
        _apply_interact(world, agent, action.interact.position, rng)
    elif action.kind == ActionKind.USE and action.use is not None:
        _apply_use(world, agent, action.use.item, action.use.position)
    elif action.kind == ActionKind.SLEEP:
        _apply_sleep(agent)
    elif action.kind == ActionKind.TALK and action.talk is not None:
        _apply_talk(world, agent, action.talk.volume)
    elif action.kind == ActionKind.BUILD and action.build is not None:
        _apply_build(world, agent, action.build.structure, action.build.position)
    elif action.kind == ActionKind.ATTACK and action.attack is not None:
        _apply_attack(world, agent, action.attack.position)

    regulate_hp(agent)
    agent.clamp()


def can_enter(world: WorldState, agent: Agent, destination: Position) -> bool:
    if destination == agent.position:
        return False
    if not world.in_bounds(destination):
        return False
    if world.agent_at(destination, exclude_id=agent.id) is not None:
        return False
    return world.tile_at(destination) not in IMPASSABLE_TILES


def _apply_move(world: WorldState, agent: Agent, dx: int, dy: int) -> None:
    destination = agent.position.offset(dx, dy)
    stats = agent.stats
    if can_enter(world, agent, destination):
        agent.position = destination
        stats.fatigue += 1
        stats.hunger += stats.fatigue * 0.01
        world.seed_timers.pop(destination.key(), None)
    else:
        stats.fatigue -= 1

    stats.hunger += 0.1

    neighbours = [
        other
        for other in world.agents
        if other.id != agent.id
        and agent.position.chebyshev(other.position) <= MOVE_SOCIAL_RADIUS
    ]
    if neighbours:
        stats.social = min(stats.social + 5, 100)
        for other in neighbours:
            other.stats.social = min(other.stats.social + 5, 100)
    else:
        stats.social = max(stats.social - 1, 0)


def _apply_interact(
    world: WorldState, agent: Agent, position: Position, rng: random.Random
) -> None:
    stats = agent.stats
    inventory = agent.inventory
    if world.in_bounds(position):
        target = world.tile_at(position)
        if target == TileType.DOOR:
            world.set_tile(position, TileType.LOCKED_DOOR)
        elif target == TileType.LOCKED_DOOR:
            world.set_tile(position, TileType.DOOR)
        elif target == TileType.TREE:
            world.set_tile(position, TileType.GRASS)
            inventory.wood += CHOP_WOOD
            inventory.saplings += round(rng.random() * 3)
            inventory.food += round(rng.random())
            stats.fatigue += 5
            stats.hunger += stats.fatigue * 0.01
        elif target == TileType.WATER and inventory.wood >= BRIDGE_COST:
            world.set_tile(position, TileType.BRIDGE)
            inventory.wood -= BRIDGE_COST
            stats.fatigue += 3
            stats.hunger += stats.fatigue * 0.01

    stats.hunger += 0.1


def _apply_use(world: WorldState, agent: Agent, item: Item, position: Position) -> None:
    inventory = agent.inventory
    if item == Item.SAPLINGS:
        if world.in_bounds(position) and world.tile_at(position) == TileType.GRASS:
            inventory.saplings -= 1
            world.seed_timers[position.key()] = SEED_GROWTH_TICKS
    elif item == Item.FOOD:
        if position == agent.position:
            agent.stats.hunger -= FOOD_VALUE
        else:
            target = world.agent_at(position, exclude_id=agent.id)
            if target is not None:
                target.stats.hunger -= FOOD_VALUE
                agent.stats.social = 100
                target.stats.social = 100
        inventory.food -= 1

    agent.stats.hunger += 0.1


def _apply_sleep(agent: Agent) -> None:
    if agent.stats.fatigue > 0:
        agent.state = LifecycleState.SLEEPING
        agent.stats.fatigue -= 2
    else:
        agent.state = LifecycleState.AWAKE
    agent.stats.hunger += 0.1


def _apply_talk(world: WorldState, agent: Agent, volume: int) -> None:
    for other in world.agents:
        if other.id == agent.id or not other.is_awake:
            continue
        if agent.position.chebyshev(other.position) <= volume:
            other.stats.social = min(other.stats.social + 10, 100)

    agent.stats.social = min(agent.stats.social + 10, 100)
    agent.stats.fatigue += 1
    agent.stats.hunger += 0.5
    agent.last_talk_tick = world.tick


def _apply_build(
    world: WorldState, agent: Agent, structure: TileType, position: Position
) -> None:
    if agent.inventory.wood < BUILD_COST or not world.in_bounds(position):
        return
    agent.inventory.wood -= BUILD_COST
    world.building_projects.append(
        BuildingProject(structure=structure, progress=0, position=position)
    )


def _apply_attack(world: WorldState, agent: Agent, position: Position) -> None:
    if position == agent.position:
        agent.hp -= ATTACK_DAMAGE
    else:
        target = world.enemy_at(position) or world.agent_at(
            position, exclude_id=agent.id
        )
        if target is not None:
            target.hp -= ATTACK_DAMAGE
    agent.stats.fatigue += 10


def regulate_hp(agent: Agent) -> None:
    stats = agent.stats
    if stats.hunger >= 100:
        agent.hp -= 5
    elif stats.hunger < 20 and stats.social > 80 and stats.fatigue < 20:
        agent.hp = min(agent.hp + 5, 100)


def update_environment(world: WorldState, *, rng: random.Random) -> None:
    """Run the once-per-tick rules after every agent has acted."""
    _advance_projects(world)
    _advance_clock(world)
    _update_enemy_population(world, rng)
    world.enemies = [enemy for enemy in world.enemies if enemy.hp > 0]
    _move_enemies(world, rng)
    _grow_seeds(world)


def _advance_projects(world: WorldState) -> None:
    remaining: list[BuildingProject] = []
    for project in world.building_projects:
        project.progress += PROJECT_STEP
        if project.progress >= 100:
            world.set_tile(project.position, project.structure)
        else:
            remaining.append(project)
    world.building_projects = remaining


def _advance_clock(world: WorldState) -> None:
    world.time_of_day = (world.time_of_day + 1) % DAY_MINUTES
    world.is_night = is_night_time(world.time_of_day)


def _update_enemy_population(world: WorldState, rng: random.Random) -> None:
    if not world.is_night:
        world.enemies = []
        return
    if len(world.enemies) < 2 * len(world.agents) and world.time_of_day % 60 == 0:
        world.enemies.append(create_enemy(find_safe_position(world, rng)))


def _move_enemies(world: WorldState, rng: random.Random) -> None:
    for enemy in world.enemies:
        victim = next(
            (
                agent
                for agent in world.agents
                if agent.position.chebyshev(enemy.position) <= 1
            ),
            None,
        )
        if victim is not None:
            victim.hp -= ENEMY_DAMAGE
            continue
        dx, dy = rng.choice(CARDINAL_STEPS)
        destination = enemy.position.offset(dx, dy)
        if (
            world.in_bounds(destination)
            and world.tile_at(destination) not in ENEMY_IMPASSABLE_TILES
        ):
            enemy.position = destination


def _grow_seeds(world: WorldState) -> None:
    for key, remaining in list(world.seed_timers.items()):
        remaining -= 1
        if remaining <= 0:
            world.set_tile(Position.from_key(key), TileType.TREE)
            del world.seed_timers[key]
        else:
            world.seed_timers[key] = remaining


def clamp_agents(world: WorldState) -> None:
    for agent in world.agents:
        agent.clamp()


def remove_dead_agents(world: WorldState) -> list[Agent]:
    dead = [agent for agent in world.agents if agent.hp <= 0]
    if dead:
        world.agents = [agent for agent in world.agents if agent.hp > 0]
    return dead
