"""Simulation tuning knobs with environment overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from typing import Any, Mapping

ENV_PREFIX = "GRIDLIFE_"


@dataclass(frozen=True)
class BehaviorConfig:
    """Dice rolls and thresholds of the heuristic action ladder."""

    social_chance: float = 0.3
    build_chance: float = 0.3
    plant_chance: float = 0.1
    door_toggle_chance: float = 0.2
    social_radius: int = 10
    hungry_threshold: float = 40.0
    broadcast_volume: int = 100
    perimeter_radius: int = 4
    relay_cooldown: int = 10


@dataclass(frozen=True)
class SimulationConfig:
    width: int = 75
    height: int = 60
    initial_agents: int = 15
    oracle_agents: int = 2
    growth_interval: int = 100
    growth_chance: float = 0.2
    full_state_interval: int = 5
    message_limit: int = 25
    message_window: int = 1
    context_limit: int = 20
    oracle_timeout: float = 30.0
    oracle_cooldown: float = 5.0
    oracle_failure_cooldown: float = 15.0
    tick_delay: float = 0.0
    seed: int | None = None
    behavior: BehaviorConfig = field(default_factory=BehaviorConfig)


def load_simulation_config(
    env: Mapping[str, str] | None = None, **overrides: Any
) -> SimulationConfig:
    """Build a config from defaults, `GRIDLIFE_*` variables and overrides.

    Overrides whose value is None are ignored so argparse namespaces can be
    passed straight through.
    """
    env = os.environ if env is None else env
    values: dict[str, Any] = {}
    for config_field in fields(SimulationConfig):
        if config_field.name == "behavior":
            continue
        raw = env.get(ENV_PREFIX + config_field.name.upper())
        if raw is None:
            continue
        values[config_field.name] = _convert(config_field.name, raw)
    values.update({key: value for key, value in overrides.items() if value is not None})
    return replace(SimulationConfig(), **values)


def _convert(name: str, raw: str) -> Any:
    default = getattr(SimulationConfig(), name)
    if name == "seed":
        return int(raw)
    if isinstance(default, bool):
        return raw.lower() in {"1", "true", "yes"}
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float):
        return float(raw)
    return raw
