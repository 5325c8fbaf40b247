"""Simulation core and world model."""

from gridlife.sim.agent_policy import choose_action, choose_reflex_action
from gridlife.sim.config import BehaviorConfig, SimulationConfig, load_simulation_config
from gridlife.sim.contracts import (
    Action,
    ActionKind,
    Agent,
    BuildingProject,
    DecisionMode,
    Enemy,
    Inventory,
    Item,
    LifecycleState,
    Message,
    Perception,
    Position,
    Stats,
    TileType,
    WorldState,
    coerce_action,
    parse_action,
)
from gridlife.sim.perception import get_adjacent_actions, perceive, process_emotions
from gridlife.sim.world_gen import (
    add_agent_to_world,
    create_agent,
    find_safe_position,
    generate_world,
)
from gridlife.sim.world_update import apply_action, update_environment

__all__ = [
    "Action",
    "ActionKind",
    "Agent",
    "BehaviorConfig",
    "BuildingProject",
    "DecisionMode",
    "Enemy",
    "Inventory",
    "Item",
    "LifecycleState",
    "Message",
    "Perception",
    "Position",
    "SimulationConfig",
    "Stats",
    "TileType",
    "WorldState",
    "add_agent_to_world",
    "apply_action",
    "choose_action",
    "choose_reflex_action",
    "coerce_action",
    "create_agent",
    "find_safe_position",
    "generate_world",
    "get_adjacent_actions",
    "load_simulation_config",
    "parse_action",
    "perceive",
    "process_emotions",
    "update_environment",
]
