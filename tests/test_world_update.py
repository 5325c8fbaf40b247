import random

import pytest

from gridlife.sim.contracts import (
    Action,
    Agent,
    BuildingProject,
    Enemy,
    Item,
    LifecycleState,
    Position,
    TileType,
    WorldState,
    blank_grid,
)
from gridlife.sim.world_update import (
    SEED_GROWTH_TICKS,
    apply_action,
    regulate_hp,
    remove_dead_agents,
    update_environment,
)


def test_move_into_free_cell_updates_position_and_stats() -> None:
    world = _build_world()
    ada = _add_agent(world, "ada", 1, 1)

    apply_action(world, ada, Action.step(1, 0), rng=random.Random(0))

    assert ada.position == Position(x=2, y=1)
    assert ada.stats.fatigue == 1
    assert ada.stats.hunger == pytest.approx(0.11)
    assert ada.stats.social == 99


def test_move_into_tree_is_rejected_and_rests() -> None:
    world = _build_world()
    world.set_tile(Position(x=2, y=1), TileType.TREE)
    ada = _add_agent(world, "ada", 1, 1)
    ada.stats.fatigue = 10

    apply_action(world, ada, Action.step(1, 0), rng=random.Random(0))

    assert ada.position == Position(x=1, y=1)
    assert ada.stats.fatigue == 9
    assert ada.stats.hunger == pytest.approx(0.1)


def test_move_out_of_bounds_is_rejected() -> None:
    world = _build_world()
    ada = _add_agent(world, "ada", 0, 0)

    apply_action(world, ada, Action.step(-1, 0), rng=random.Random(0))

    assert ada.position == Position(x=0, y=0)
    assert ada.stats.fatigue == 0


def test_standing_still_counts_as_a_rejected_move() -> None:
    world = _build_world()
    ada = _add_agent(world, "ada", 3, 3)
    ada.stats.fatigue = 5

    apply_action(world, ada, Action.idle(), rng=random.Random(0))

    assert ada.position == Position(x=3, y=3)
    assert ada.stats.fatigue == 4


def test_move_blocked_by_agent_still_socialises() -> None:
    world = _build_world()
    ada = _add_agent(world, "ada", 1, 1)
    bo = _add_agent(world, "bo", 2, 1)
    ada.stats.social = 50
    bo.stats.social = 50

    apply_action(world, ada, Action.step(1, 0), rng=random.Random(0))

    assert ada.position == Position(x=1, y=1)
    assert ada.stats.social == 55
    assert bo.stats.social == 55


def test_move_onto_seed_tramples_it() -> None:
    world = _build_world()
    world.seed_timers["2,1"] = 50
    ada = _add_agent(world, "ada", 1, 1)

    apply_action(world, ada, Action.step(1, 0), rng=random.Random(0))

    assert "2,1" not in world.seed_timers


def test_interact_with_tree_harvests_it() -> None:
    world = _build_world()
    world.set_tile(Position(x=2, y=1), TileType.TREE)
    ada = _add_agent(world, "ada", 1, 1)

    apply_action(world, ada, Action.interact_at(Position(x=2, y=1)), rng=random.Random(3))

    assert world.tile_at(Position(x=2, y=1)) == TileType.GRASS
    assert ada.inventory.wood == 5
    assert 0 <= ada.inventory.saplings <= 3
    assert ada.inventory.food in {0, 1}
    assert ada.stats.fatigue == 5
    assert ada.stats.hunger == pytest.approx(0.15)


def test_bridge_needs_three_wood() -> None:
    world = _build_world()
    water = Position(x=2, y=1)
    world.set_tile(water, TileType.WATER)
    ada = _add_agent(world, "ada", 1, 1)
    ada.inventory.wood = 2

    apply_action(world, ada, Action.interact_at(water), rng=random.Random(0))
    assert world.tile_at(water) == TileType.WATER
    assert ada.inventory.wood == 2

    ada.inventory.wood = 3
    apply_action(world, ada, Action.interact_at(water), rng=random.Random(0))
    assert world.tile_at(water) == TileType.BRIDGE
    assert ada.inventory.wood == 0
    assert ada.stats.fatigue == 3


def test_interact_toggles_door_lock() -> None:
    world = _build_world()
    door = Position(x=2, y=1)
    world.set_tile(door, TileType.DOOR)
    ada = _add_agent(world, "ada", 1, 1)

    apply_action(world, ada, Action.interact_at(door), rng=random.Random(0))
    assert world.tile_at(door) == TileType.LOCKED_DOOR

    apply_action(world, ada, Action.interact_at(door), rng=random.Random(0))
    assert world.tile_at(door) == TileType.DOOR


def test_eating_food_lowers_hunger() -> None:
    world = _build_world()
    ada = _add_agent(world, "ada", 5, 5)
    ada.stats.hunger = 50
    ada.inventory.food = 1

    apply_action(world, ada, Action.use_item(Item.FOOD, ada.position), rng=random.Random(0))

    assert ada.stats.hunger == pytest.approx(10.1)
    assert ada.inventory.food == 0


def test_feeding_a_neighbour_bonds_both() -> None:
    world = _build_world()
    ada = _add_agent(world, "ada", 5, 5)
    bo = _add_agent(world, "bo", 6, 5)
    ada.inventory.food = 2
    ada.stats.social = 10
    bo.stats.social = 10
    bo.stats.hunger = 60

    apply_action(world, ada, Action.use_item(Item.FOOD, bo.position), rng=random.Random(0))

    assert bo.stats.hunger == pytest.approx(20)
    assert ada.stats.social == 100
    assert bo.stats.social == 100
    assert ada.inventory.food == 1


def test_planting_a_sapling_starts_a_seed_timer() -> None:
    world = _build_world()
    ada = _add_agent(world, "ada", 1, 1)
    ada.inventory.saplings = 2

    apply_action(
        world, ada, Action.use_item(Item.SAPLINGS, Position(x=2, y=1)), rng=random.Random(0)
    )

    assert world.seed_timers["2,1"] == SEED_GROWTH_TICKS
    assert ada.inventory.saplings == 1


def test_planting_requires_grass() -> None:
    world = _build_world()
    world.set_tile(Position(x=2, y=1), TileType.WATER)
    ada = _add_agent(world, "ada", 1, 1)
    ada.inventory.saplings = 1

    apply_action(
        world, ada, Action.use_item(Item.SAPLINGS, Position(x=2, y=1)), rng=random.Random(0)
    )

    assert world.seed_timers == {}
    assert ada.inventory.saplings == 1


def test_use_with_empty_inventory_still_applies_then_clamps() -> None:
    world = _build_world()
    ada = _add_agent(world, "ada", 5, 5)
    ada.stats.hunger = 50

    apply_action(world, ada, Action.use_item(Item.FOOD, ada.position), rng=random.Random(0))

    assert ada.stats.hunger == pytest.approx(10.1)
    assert ada.inventory.food == 0

    apply_action(
        world, ada, Action.use_item(Item.SAPLINGS, Position(x=6, y=5)), rng=random.Random(0)
    )

    assert world.seed_timers == {"6,5": SEED_GROWTH_TICKS}
    assert ada.inventory.saplings == 0


def test_sleep_rests_until_fatigue_is_gone() -> None:
    world = _build_world()
    ada = _add_agent(world, "ada", 1, 1)
    ada.stats.fatigue = 10

    apply_action(world, ada, Action.sleep(), rng=random.Random(0))
    assert ada.state == LifecycleState.SLEEPING
    assert ada.stats.fatigue == 8

    ada.stats.fatigue = 0
    apply_action(world, ada, Action.sleep(), rng=random.Random(0))
    assert ada.state == LifecycleState.AWAKE


def test_talk_reaches_awake_agents_within_volume() -> None:
    world = _build_world()
    ada = _add_agent(world, "ada", 1, 1)
    near = _add_agent(world, "near", 3, 1)
    far = _add_agent(world, "far", 9, 9)
    dozing = _add_agent(world, "dozing", 2, 2)
    for agent in (near, far, dozing):
        agent.stats.social = 50
    dozing.state = LifecycleState.SLEEPING

    apply_action(world, ada, Action.say("Hello", volume=2), rng=random.Random(0))

    assert near.stats.social == 60
    assert far.stats.social == 50
    assert dozing.stats.social == 50
    assert ada.stats.fatigue == 1
    assert ada.stats.hunger == pytest.approx(0.5)
    assert ada.last_talk_tick == 0


def test_build_needs_five_wood() -> None:
    world = _build_world()
    ada = _add_agent(world, "ada", 1, 1)
    ada.inventory.wood = 4
    target = Position(x=2, y=1)

    apply_action(world, ada, Action.build_at(TileType.WALL, target), rng=random.Random(0))
    assert world.building_projects == []
    assert ada.inventory.wood == 4

    ada.inventory.wood = 5
    apply_action(world, ada, Action.build_at(TileType.WALL, target), rng=random.Random(0))
    assert len(world.building_projects) == 1
    assert world.building_projects[0].position == target
    assert ada.inventory.wood == 0


def test_attack_damages_target_and_tires_attacker() -> None:
    world = _build_world()
    ada = _add_agent(world, "ada", 1, 1)
    enemy = Enemy(id="e1", position=Position(x=2, y=1))
    world.enemies.append(enemy)

    apply_action(world, ada, Action.attack_at(enemy.position), rng=random.Random(0))

    assert enemy.hp == 80
    assert ada.stats.fatigue == 10


def test_starving_agent_loses_hp() -> None:
    world = _build_world()
    ada = _add_agent(world, "ada", 1, 1)
    ada.stats.hunger = 100

    apply_action(world, ada, Action.sleep(), rng=random.Random(0))

    assert ada.hp == 95
    assert ada.stats.hunger == 100


def test_rested_fed_social_agent_regenerates_hp() -> None:
    world = _build_world()
    ada = _add_agent(world, "ada", 1, 1)
    ada.stats.hunger = 10
    ada.stats.social = 90
    ada.stats.fatigue = 10
    ada.hp = 80

    apply_action(world, ada, Action.sleep(), rng=random.Random(0))

    assert ada.hp == 85

    ada.hp = 98
    regulate_hp(ada)
    assert ada.hp == 100

    ada.stats.social = 80
    regulate_hp(ada)
    assert ada.hp == 100
    ada.hp = 50
    regulate_hp(ada)
    assert ada.hp == 50


def test_stats_stay_clamped_after_actions() -> None:
    world = _build_world()
    ada = _add_agent(world, "ada", 1, 1)
    ada.stats.fatigue = 100
    ada.stats.hunger = 99.95
    ada.stats.social = 0

    for action in (
        Action.attack_at(ada.position),
        Action.say("Hi", volume=100),
        Action.step(0, 1),
        Action.use_item(Item.FOOD, ada.position),
    ):
        apply_action(world, ada, action, rng=random.Random(0))
        assert 0 <= ada.hp <= 100
        for value in (ada.stats.hunger, ada.stats.fatigue, ada.stats.social):
            assert 0 <= value <= 100
        assert ada.inventory.food >= 0


def test_building_project_completes_after_ten_ticks() -> None:
    world = _build_world()
    spot = Position(x=3, y=3)
    world.building_projects.append(
        BuildingProject(structure=TileType.WALL, position=spot)
    )
    rng = random.Random(0)

    for _ in range(9):
        update_environment(world, rng=rng)
    assert world.tile_at(spot) == TileType.GRASS
    assert world.building_projects[0].progress == 90

    update_environment(world, rng=rng)
    assert world.tile_at(spot) == TileType.WALL
    assert world.building_projects == []


def test_clock_wraps_at_midnight() -> None:
    world = _build_world(time_of_day=1439)

    update_environment(world, rng=random.Random(0))

    assert world.time_of_day == 0
    assert world.is_night


def test_night_starts_at_twenty_hundred() -> None:
    world = _build_world(time_of_day=1199)

    update_environment(world, rng=random.Random(0))

    assert world.time_of_day == 1200
    assert world.is_night


def test_no_enemies_during_the_day() -> None:
    world = _build_world(time_of_day=600)
    _add_agent(world, "ada", 1, 1)
    world.enemies.append(Enemy(id="stray", position=Position(x=8, y=8)))
    rng = random.Random(4)

    for _ in range(300):
        update_environment(world, rng=rng)
        assert world.enemies == []


def test_enemy_spawns_on_the_hour_at_night() -> None:
    world = _build_world(time_of_day=1259)
    world.is_night = True
    _add_agent(world, "ada", 1, 1)

    update_environment(world, rng=random.Random(2))

    assert world.time_of_day == 1260
    assert len(world.enemies) == 1


def test_enemy_population_is_capped_by_agents() -> None:
    world = _build_world(time_of_day=1259)
    world.is_night = True
    _add_agent(world, "ada", 0, 0)
    world.enemies = [
        Enemy(id="e1", position=Position(x=9, y=9)),
        Enemy(id="e2", position=Position(x=8, y=9)),
    ]

    update_environment(world, rng=random.Random(2))

    assert len(world.enemies) == 2


def test_enemies_vanish_at_dawn() -> None:
    world = _build_world(time_of_day=359)
    world.is_night = True
    world.enemies.append(Enemy(id="e1", position=Position(x=5, y=5)))

    update_environment(world, rng=random.Random(0))

    assert not world.is_night
    assert world.enemies == []


def test_enemy_attacks_adjacent_agent_instead_of_moving() -> None:
    world = _build_world(time_of_day=1300)
    world.is_night = True
    ada = _add_agent(world, "ada", 1, 1)
    enemy = Enemy(id="e1", position=Position(x=2, y=2))
    world.enemies.append(enemy)

    update_environment(world, rng=random.Random(0))

    assert ada.hp == 85
    assert enemy.position == Position(x=2, y=2)


def test_enemy_cannot_enter_water_or_trees() -> None:
    world = _build_world(time_of_day=1300)
    world.is_night = True
    world.set_tile(Position(x=4, y=5), TileType.WATER)
    world.set_tile(Position(x=6, y=5), TileType.WATER)
    world.set_tile(Position(x=5, y=4), TileType.TREE)
    world.set_tile(Position(x=5, y=6), TileType.TREE)
    enemy = Enemy(id="e1", position=Position(x=5, y=5))
    world.enemies.append(enemy)
    rng = random.Random(1)

    for _ in range(20):
        update_environment(world, rng=rng)

    assert enemy.position == Position(x=5, y=5)


def test_dead_enemies_are_removed() -> None:
    world = _build_world(time_of_day=1300)
    world.is_night = True
    world.enemies.append(Enemy(id="e1", position=Position(x=5, y=5), hp=0))

    update_environment(world, rng=random.Random(0))

    assert world.enemies == []


def test_seed_becomes_tree_on_the_hundredth_update() -> None:
    world = _build_world()
    world.seed_timers["4,4"] = SEED_GROWTH_TICKS
    rng = random.Random(0)

    for _ in range(SEED_GROWTH_TICKS - 1):
        update_environment(world, rng=rng)
    assert world.tile_at(Position(x=4, y=4)) == TileType.GRASS
    assert world.seed_timers["4,4"] == 1

    update_environment(world, rng=rng)
    assert world.tile_at(Position(x=4, y=4)) == TileType.TREE
    assert "4,4" not in world.seed_timers


def test_remove_dead_agents_returns_the_fallen() -> None:
    world = _build_world()
    ada = _add_agent(world, "ada", 1, 1)
    bo = _add_agent(world, "bo", 2, 2)
    bo.hp = 0

    dead = remove_dead_agents(world)

    assert [agent.id for agent in dead] == ["bo"]
    assert [agent.id for agent in world.agents] == [ada.id]


def _build_world(*, time_of_day: int = 720) -> WorldState:
    return WorldState(grid=blank_grid(10, 10), time_of_day=time_of_day)


def _add_agent(world: WorldState, agent_id: str, x: int, y: int) -> Agent:
    agent = Agent(
        id=agent_id,
        name=agent_id.title(),
        emoji="👤",
        position=Position(x=x, y=y),
    )
    world.agents.append(agent)
    return agent
