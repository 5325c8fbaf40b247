"""Module entry point for `python -m gridlife`."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from rich.console import Console

from gridlife.app import (
    DEFAULT_DATA_DIR,
    configure_logging,
    print_runs,
    replay_run,
    run_simulation,
    serve,
)
from gridlife.db.run_store import RunNotFoundError
from gridlife.sim.config import load_simulation_config

logger = logging.getLogger("gridlife")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the gridlife simulation.")
    parser.add_argument(
        "--serve",
        action="store_true",
        help="Run the live service: simulation thread plus HTTP/WebSocket server.",
    )
    parser.add_argument("--host", default="127.0.0.1", help="Server host (--serve).")
    parser.add_argument("--port", type=int, default=8000, help="Server port (--serve).")
    parser.add_argument(
        "--runs", action="store_true", help="List stored runs and exit."
    )
    parser.add_argument(
        "--replay",
        default=None,
        metavar="RUN_ID",
        help="Print every reconstructed state of a stored run.",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=DEFAULT_DATA_DIR,
        help="Base directory for run folders.",
    )
    parser.add_argument(
        "--oracle",
        default=None,
        choices=["fake", "mlx"],
        help="Decision oracle backend for smart agents.",
    )
    parser.add_argument(
        "--model-id", default=None, help="Model ID for the mlx oracle."
    )
    parser.add_argument(
        "--ticks",
        type=int,
        default=None,
        help="Number of ticks to run. Omit for no limit.",
    )
    parser.add_argument("--seed", type=int, default=None, help="Random seed.")
    parser.add_argument("--width", type=int, default=None, help="Grid width.")
    parser.add_argument("--height", type=int, default=None, help="Grid height.")
    parser.add_argument(
        "--agents", type=int, default=None, help="Initial agent count."
    )
    parser.add_argument(
        "--oracle-agents",
        type=int,
        default=None,
        help="How many of the initial agents consult the oracle.",
    )
    parser.add_argument(
        "--tick-delay",
        type=float,
        default=None,
        help="Seconds to pause between ticks.",
    )
    parser.add_argument(
        "--log-level", default=None, help="Logging level (default INFO)."
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    if args.runs:
        print_runs(args.data_dir)
        return

    if args.replay is not None:
        try:
            count = replay_run(args.data_dir, args.replay, Console())
        except RunNotFoundError:
            raise SystemExit(f"No run named {args.replay} in {args.data_dir}.")
        if count == 0:
            raise SystemExit(f"Run {args.replay} has no saved states.")
        return

    try:
        config = load_simulation_config(
            width=args.width,
            height=args.height,
            initial_agents=args.agents,
            oracle_agents=args.oracle_agents,
            tick_delay=args.tick_delay,
            seed=args.seed,
        )
    except ValueError as exc:
        raise SystemExit(f"Invalid configuration: {exc}")

    if args.serve:
        serve(
            args.data_dir,
            host=args.host,
            port=args.port,
            config=config,
            oracle_backend=args.oracle,
            model_id=args.model_id,
        )
        return

    run_id = run_simulation(
        args.data_dir,
        ticks=args.ticks,
        config=config,
        oracle_backend=args.oracle,
        model_id=args.model_id,
    )
    logger.info("Run %s saved to %s", run_id, args.data_dir)
    print(f"Run saved to {args.data_dir / 'runs' / str(run_id)}")


if __name__ == "__main__":
    main()
