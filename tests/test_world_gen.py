import random

import pytest

from gridlife.sim.contracts import (
    Agent,
    DecisionMode,
    Position,
    TileType,
    WorldState,
    blank_grid,
)
from gridlife.sim.world_gen import (
    add_agent_to_world,
    create_agent,
    find_safe_position,
    generate_world,
)


def test_generate_world_has_requested_shape() -> None:
    world = generate_world(30, 20, random.Random(7))

    assert (world.width, world.height) == (30, 20)
    tiles = {tile for row in world.grid for tile in row}
    assert tiles <= {TileType.GRASS, TileType.TREE, TileType.WATER}
    assert TileType.GRASS in tiles


def test_generate_world_is_reproducible() -> None:
    first = generate_world(25, 25, random.Random(11))
    second = generate_world(25, 25, random.Random(11))

    assert first.grid == second.grid


def test_generate_world_rejects_empty_dimensions() -> None:
    with pytest.raises(ValueError):
        generate_world(0, 10, random.Random(0))


def test_safe_position_is_grass_with_grass_neighbour() -> None:
    world = WorldState(grid=blank_grid(5, 5, TileType.WATER))
    world.set_tile(Position(x=3, y=3), TileType.GRASS)
    world.set_tile(Position(x=3, y=4), TileType.GRASS)
    world.set_tile(Position(x=0, y=0), TileType.GRASS)

    for seed in range(10):
        position = find_safe_position(world, random.Random(seed))
        assert position in {Position(x=3, y=3), Position(x=3, y=4)}


def test_added_agent_gets_a_house_next_door() -> None:
    world = WorldState(grid=blank_grid(8, 8))
    rng = random.Random(3)

    agent = add_agent_to_world(world, create_agent(rng), rng)

    houses = [
        Position(x=x, y=y)
        for y, row in enumerate(world.grid)
        for x, tile in enumerate(row)
        if tile == TileType.HOUSE
    ]
    assert len(houses) == 1
    assert agent.position.manhattan(houses[0]) == 1
    assert world.tile_at(agent.position) == TileType.GRASS
    assert world.agents == [agent]


def test_newcomers_never_land_on_occupied_cells() -> None:
    for seed in range(10):
        world = WorldState(grid=blank_grid(5, 1))
        rng = random.Random(seed)
        residents = [
            _place(world, create_agent(rng), Position(x=x, y=0)) for x in (0, 2, 4)
        ]

        newcomer = add_agent_to_world(world, create_agent(rng), rng)

        free = {Position(x=1, y=0), Position(x=3, y=0)}
        house = next(
            Position(x=x, y=0)
            for x, tile in enumerate(world.grid[0])
            if tile == TileType.HOUSE
        )
        assert house in free
        assert newcomer.position == (free - {house}).pop()
        assert all(resident.position != newcomer.position for resident in residents)


def test_created_agents_start_fresh() -> None:
    agent = create_agent(random.Random(0), mode=DecisionMode.ORACLE)

    assert agent.hp == 100
    assert agent.stats.social == 100
    assert agent.stats.hunger == 0
    assert agent.context == []
    assert " " in agent.name
    assert create_agent(random.Random(0)).context is None


def _place(world: WorldState, agent: Agent, position: Position) -> Agent:
    agent.position = position
    world.agents.append(agent)
    return agent
