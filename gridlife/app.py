"""Application entry for running the simulation loop."""

from __future__ import annotations

import logging
import os
import random
from pathlib import Path

import uvicorn
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from gridlife.broadcast import BroadcastRegistry
from gridlife.db.run_store import RunStore
from gridlife.llm.base import DecisionOracle, OracleClient, OracleConfig
from gridlife.llm.fake_llm import FakeOracle
from gridlife.llm.mlx_llm import MlxOracle
from gridlife.render.viewer import render_world
from gridlife.server import create_app
from gridlife.sim.config import SimulationConfig
from gridlife.sim.tick_loop import SimulationLoop

DEFAULT_ORACLE = "fake"
DEFAULT_MODEL_ID = "mlx-community/Qwen3-3B-4bit"
DEFAULT_DATA_DIR = Path("data")
DEFAULT_LOG_LEVEL = "INFO"

logger = logging.getLogger(__name__)


def configure_logging(level: str | None = None) -> None:
    name = (level or os.getenv("GRIDLIFE_LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper()
    logging.basicConfig(
        level=name,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )


def run_simulation(
    data_dir: Path,
    *,
    ticks: int | None = 10,
    config: SimulationConfig | None = None,
    oracle_backend: str | None = None,
    model_id: str | None = None,
) -> str | None:
    config = config or SimulationConfig()
    store = RunStore(data_dir, full_state_interval=config.full_state_interval)
    client = _resolve_oracle(oracle_backend, model_id, config)
    loop = SimulationLoop(
        store,
        config=config,
        oracle=client,
        rng=random.Random(config.seed),
        live=False,
    )
    try:
        return loop.run(ticks)
    finally:
        client.close()


def serve(
    data_dir: Path,
    *,
    host: str = "127.0.0.1",
    port: int = 8000,
    config: SimulationConfig | None = None,
    oracle_backend: str | None = None,
    model_id: str | None = None,
) -> None:
    config = config or SimulationConfig()
    store = RunStore(data_dir, full_state_interval=config.full_state_interval)
    registry = BroadcastRegistry()
    loop = SimulationLoop(
        store,
        config=config,
        oracle=_resolve_oracle(oracle_backend, model_id, config),
        registry=registry,
        rng=random.Random(config.seed),
        live=True,
    )
    app = create_app(store, registry)
    loop.start()
    logger.info("Serving on http://%s:%d", host, port)
    try:
        uvicorn.run(app, host=host, port=port, log_config=None)
    finally:
        loop.stop()


def print_runs(data_dir: Path, console: Console | None = None) -> None:
    console = console or Console()
    runs = RunStore(data_dir).list_runs()
    if not runs:
        console.print("No runs found.")
        return
    table = Table(title="Runs", show_header=True, header_style="bold")
    table.add_column("Run")
    table.add_column("Created")
    table.add_column("Status")
    for run in runs:
        table.add_row(run.id, run.created_at, run.status.value)
    console.print(table)


def replay_run(data_dir: Path, run_id: str, console: Console | None = None) -> int:
    console = console or Console()
    states = RunStore(data_dir).get_world_states(run_id)
    for state in states:
        console.print(render_world(state, title=run_id))
    return len(states)


def _resolve_oracle(
    backend: str | None, model_id: str | None, config: SimulationConfig
) -> OracleClient:
    name = (backend or os.getenv("GRIDLIFE_ORACLE") or DEFAULT_ORACLE).lower()
    oracle: DecisionOracle
    if name == "mlx":
        model = model_id or os.getenv("GRIDLIFE_MODEL_ID") or DEFAULT_MODEL_ID
        oracle = MlxOracle(
            config=OracleConfig(model_id=model, stage_pause=config.oracle_cooldown)
        )
    elif name == "fake":
        oracle = FakeOracle()
    else:
        raise ValueError(f"Unknown oracle backend: {name}")
    cooling = name != "fake"
    return OracleClient(
        oracle,
        timeout=config.oracle_timeout,
        cooldown=config.oracle_cooldown if cooling else 0.0,
        failure_cooldown=config.oracle_failure_cooldown if cooling else 0.0,
    )
