import random

from gridlife.sim.agent_policy import (
    NPC_MESSAGES,
    choose_action,
    choose_reflex_action,
    find_nearest_house,
    find_perimeter_spot,
    pending_messages,
)
from gridlife.sim.config import BehaviorConfig
from gridlife.sim.contracts import (
    Action,
    ActionKind,
    Agent,
    BuildingProject,
    DecisionMode,
    Enemy,
    Item,
    LifecycleState,
    Message,
    Position,
    TileType,
    WorldState,
    blank_grid,
)
from gridlife.sim.perception import perceive


def test_exhausted_or_sleeping_agents_sleep() -> None:
    world = _build_world()
    ada = _add_agent(world, "ada", 1, 1)
    ada.stats.fatigue = 100

    assert _choose(ada, world).kind == ActionKind.SLEEP

    ada.stats.fatigue = 5
    ada.state = LifecycleState.SLEEPING
    assert _choose(ada, world).kind == ActionKind.SLEEP


def test_hungry_agent_with_food_eats() -> None:
    world = _build_world()
    ada = _add_agent(world, "ada", 1, 1)
    ada.stats.hunger = 41
    ada.inventory.food = 1

    action = _choose(ada, world)

    assert action == Action.use_item(Item.FOOD, ada.position)


def test_visible_enemy_is_attacked() -> None:
    world = _build_world()
    ada = _add_agent(world, "ada", 1, 1)
    world.enemies.append(Enemy(id="e1", position=Position(x=4, y=1)))

    action = _choose(ada, world)

    assert action == Action.attack_at(Position(x=4, y=1))


def test_reflex_is_none_when_nothing_is_urgent() -> None:
    world = _build_world()
    ada = _add_agent(world, "ada", 1, 1)

    assert choose_reflex_action(ada, perceive(ada, world)) is None


def test_heuristic_agent_relays_overheard_messages() -> None:
    world = _build_world()
    ada = _add_agent(world, "ada", 1, 1)
    bo = _add_agent(world, "bo", 3, 1)
    _add_agent(world, "sage", 5, 1, mode=DecisionMode.ORACLE)
    message = _message_from(bo, tick=0)

    perception = perceive(ada, world, messages=lambda visible: [message])
    action = choose_action(
        ada, world, perception, rng=random.Random(0), behavior=_quiet_behavior()
    )

    assert pending_messages(ada, perception, world) == [message]
    assert action.kind == ActionKind.TALK
    assert action.talk is not None
    assert action.talk.volume == 100
    assert "Sage (5, 1)" in action.talk.message


def test_messages_older_than_own_talk_are_not_pending() -> None:
    world = _build_world()
    world.tick = 20
    ada = _add_agent(world, "ada", 1, 1)
    bo = _add_agent(world, "bo", 3, 1)
    ada.last_talk_tick = 8
    stale = _message_from(bo, tick=8)
    fresh = _message_from(bo, tick=19)

    perception = perceive(ada, world, messages=lambda visible: [stale, fresh])

    assert pending_messages(ada, perception, world) == [fresh]


def test_recent_speaker_waits_out_the_relay_cooldown() -> None:
    world = _build_world()
    world.tick = 5
    ada = _add_agent(world, "ada", 1, 1)
    bo = _add_agent(world, "bo", 3, 1)
    ada.last_talk_tick = 4
    reply = _message_from(bo, tick=5)

    perception = perceive(ada, world, messages=lambda visible: [reply])
    action = choose_action(
        ada, world, perception, rng=random.Random(0), behavior=_quiet_behavior()
    )

    assert pending_messages(ada, perception, world) == []
    assert action.kind == ActionKind.MOVE
    assert pending_messages(ada, perception, world, relay_cooldown=1) == [reply]


def test_social_step_toward_closest_agent() -> None:
    world = _build_world()
    ada = _add_agent(world, "ada", 1, 1)
    _add_agent(world, "bo", 5, 3)
    behavior = BehaviorConfig(social_chance=1.0)

    action = _choose(ada, world, behavior=behavior)

    assert action == Action.step(1, 1)


def test_social_chat_when_adjacent() -> None:
    world = _build_world()
    ada = _add_agent(world, "ada", 1, 1)
    _add_agent(world, "bo", 2, 2)
    behavior = BehaviorConfig(social_chance=1.0)

    action = _choose(ada, world, behavior=behavior)

    assert action.kind == ActionKind.TALK
    assert action.talk is not None
    assert action.talk.volume == 1
    assert action.talk.message in NPC_MESSAGES


def test_social_feeds_hungry_neighbour() -> None:
    world = _build_world()
    ada = _add_agent(world, "ada", 1, 1)
    bo = _add_agent(world, "bo", 2, 1)
    bo.stats.hunger = 60
    ada.inventory.food = 1
    behavior = BehaviorConfig(social_chance=1.0)

    action = _choose(ada, world, behavior=behavior)

    assert action == Action.use_item(Item.FOOD, bo.position)


def test_perimeter_build_places_door_on_the_axis() -> None:
    world = _build_world(12, 12)
    house = Position(x=5, y=5)
    world.set_tile(house, TileType.HOUSE)
    ada = _add_agent(world, "ada", 5, 8)

    assert find_perimeter_spot(ada, house, world) == (Position(x=5, y=9), TileType.DOOR)

    ada.position = Position(x=6, y=8)
    assert find_perimeter_spot(ada, house, world) == (Position(x=6, y=9), TileType.WALL)


def test_perimeter_build_skips_claimed_cells() -> None:
    world = _build_world(12, 12)
    house = Position(x=5, y=5)
    world.set_tile(house, TileType.HOUSE)
    ada = _add_agent(world, "ada", 5, 8)
    ada.inventory.wood = 5
    behavior = BehaviorConfig(social_chance=0.0, build_chance=1.0)

    action = _choose(ada, world, behavior=behavior)
    assert action == Action.build_at(TileType.DOOR, Position(x=5, y=9))

    world.building_projects.append(
        BuildingProject(structure=TileType.DOOR, position=Position(x=5, y=9))
    )
    assert find_perimeter_spot(ada, house, world) is None


def test_chores_prefer_bridges_then_trees() -> None:
    world = _build_world()
    world.set_tile(Position(x=0, y=1), TileType.TREE)
    world.set_tile(Position(x=2, y=1), TileType.WATER)
    ada = _add_agent(world, "ada", 1, 1)

    assert _choose(ada, world) == Action.interact_at(Position(x=0, y=1))

    ada.inventory.wood = 3
    assert _choose(ada, world) == Action.interact_at(Position(x=2, y=1))


def test_night_walk_heads_home() -> None:
    world = _build_world(12, 12)
    world.is_night = True
    world.time_of_day = 1300
    world.set_tile(Position(x=8, y=3), TileType.HOUSE)
    ada = _add_agent(world, "ada", 2, 6)

    assert find_nearest_house(ada, world) == Position(x=8, y=3)
    assert _choose(ada, world) == Action.step(1, -1)


def test_idle_agent_wanders_one_cardinal_step() -> None:
    world = _build_world()
    ada = _add_agent(world, "ada", 4, 4)

    action = _choose(ada, world)

    assert action.kind == ActionKind.MOVE
    assert action.move is not None
    assert abs(action.move.dx) + abs(action.move.dy) == 1


def _choose(
    agent: Agent, world: WorldState, *, behavior: BehaviorConfig | None = None
) -> Action:
    return choose_action(
        agent,
        world,
        perceive(agent, world),
        rng=random.Random(0),
        behavior=behavior or _quiet_behavior(),
    )


def _quiet_behavior() -> BehaviorConfig:
    return BehaviorConfig(
        social_chance=0.0, build_chance=0.0, plant_chance=0.0, door_toggle_chance=0.0
    )


def _build_world(width: int = 10, height: int = 10) -> WorldState:
    return WorldState(grid=blank_grid(width, height))


def _add_agent(
    world: WorldState,
    agent_id: str,
    x: int,
    y: int,
    *,
    mode: DecisionMode = DecisionMode.HEURISTIC,
) -> Agent:
    agent = Agent(
        id=agent_id,
        name=agent_id.title(),
        emoji="👤",
        position=Position(x=x, y=y),
        decision_mode=mode,
    )
    world.agents.append(agent)
    return agent


def _message_from(sender: Agent, *, tick: int) -> Message:
    return Message(
        sender_id=sender.id,
        sender_name=sender.name,
        content="Hi!",
        volume=1,
        position=sender.position,
        tick=tick,
    )
