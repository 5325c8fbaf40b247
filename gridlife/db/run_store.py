"""File-backed run store: one JSONL folder per run.

Layout under `<data_dir>/runs/<run_id>/`:

- `run.jsonl`: header then status records.
- `snapshots.jsonl`: full or diff world snapshots (see `snapshot_codec`).
- `agent_details.jsonl`: per-agent audit records keyed by snapshot id.
- `messages.jsonl`: talk messages (see `message_log`).
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Iterator
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from gridlife.db.message_log import (
    MESSAGES_LOG_NAME,
    append_message,
    read_messages,
    recent_messages,
)
from gridlife.db.snapshot_codec import (
    SnapshotIntegrityError,
    SnapshotKind,
    SnapshotRecord,
    apply_diff,
    reconstruct_grids,
    restore_world,
)
from gridlife.sim.contracts import (
    Action,
    Agent,
    EmotionalOutput,
    Grid,
    Inventory,
    LifecycleState,
    Message,
    Position,
    Stats,
    WorldState,
)

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
RUN_LOG_NAME = "run.jsonl"
SNAPSHOT_LOG_NAME = "snapshots.jsonl"
AGENT_LOG_NAME = "agent_details.jsonl"
RUNS_DIR_NAME = "runs"


class RunNotFoundError(LookupError):
    pass


class RunStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"


class RunInfo(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    created_at: str
    status: RunStatus = RunStatus.IN_PROGRESS
    finished_at: str | None = None


class AgentDetailRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    snapshot_id: int
    tick: int
    agent_id: str
    name: str
    position: Position
    stats: Stats
    hp: float
    inventory: Inventory
    state: LifecycleState
    narrative: str = ""
    emotions: list[EmotionalOutput] = Field(default_factory=list)
    action: Action | None = None
    created_at: str | None = None


@dataclass
class _RunCache:
    next_snapshot_id: int = 0
    last_full_id: int | None = None
    last_full_grid: Grid | None = None
    messages: list[Message] = field(default_factory=list)


class RunStore:
    """Persistence provider for runs, snapshots, agent audits and messages.

    Every Nth snapshot of a run (`full_state_interval`) is stored in full; the
    rest store a diff against the most recent full snapshot. Messages older
    than `message_horizon` ticks behind the newest one stay on disk only. All
    access goes through one lock so the HTTP server can read while the loop
    writes.
    """

    def __init__(
        self,
        data_dir: Path,
        *,
        full_state_interval: int = 5,
        message_horizon: int = 10,
    ) -> None:
        if full_state_interval < 1:
            raise ValueError("full_state_interval must be at least 1")
        self.data_dir = Path(data_dir)
        self.runs_dir = self.data_dir / RUNS_DIR_NAME
        self.full_state_interval = full_state_interval
        self.message_horizon = message_horizon
        self._lock = threading.RLock()
        self._caches: dict[str, _RunCache] = {}

    # Runs

    def create_run(self) -> str:
        now = datetime.now(timezone.utc)
        run_id = f"{_format_timestamp(now)}-{uuid4().hex[:6]}"
        with self._lock:
            run_dir = self.runs_dir / run_id
            run_dir.mkdir(parents=True, exist_ok=False)
            _append_record(
                run_dir / RUN_LOG_NAME,
                {
                    "type": "header",
                    "schema_version": SCHEMA_VERSION,
                    "metadata": {"run_id": run_id, "created_at": now.isoformat()},
                },
            )
            self._caches[run_id] = _RunCache()
        logger.info("Created run %s", run_id)
        return run_id

    def finish_run(self, run_id: str) -> None:
        with self._lock:
            run_dir = self._run_dir(run_id)
            _append_record(
                run_dir / RUN_LOG_NAME,
                {
                    "type": "status",
                    "schema_version": SCHEMA_VERSION,
                    "status": RunStatus.FINISHED.value,
                    "at": datetime.now(timezone.utc).isoformat(),
                },
            )
            self._caches.pop(run_id, None)
        logger.info("Finished run %s", run_id)

    def list_runs(self) -> list[RunInfo]:
        """All runs, oldest first."""
        with self._lock:
            if not self.runs_dir.exists():
                return []
            runs = []
            for run_dir in sorted(self.runs_dir.iterdir()):
                log_path = run_dir / RUN_LOG_NAME
                if run_dir.is_dir() and log_path.exists():
                    runs.append(_read_run_info(log_path))
            runs.sort(key=lambda run: (run.created_at, run.id))
            return runs

    def get_run(self, run_id: str) -> RunInfo:
        with self._lock:
            return _read_run_info(self._run_dir(run_id) / RUN_LOG_NAME)

    def get_current_run(self) -> RunInfo | None:
        for run in reversed(self.list_runs()):
            if run.status == RunStatus.IN_PROGRESS:
                return run
        return None

    # Snapshots

    def save_world_state(self, world: WorldState, run_id: str) -> int:
        with self._lock:
            run_dir = self._run_dir(run_id)
            cache = self._cache(run_id)
            snapshot_id = cache.next_snapshot_id
            created_at = datetime.now(timezone.utc).isoformat()
            if (
                snapshot_id % self.full_state_interval == 0
                or cache.last_full_id is None
                or cache.last_full_grid is None
            ):
                record = SnapshotRecord.full(snapshot_id, world, created_at=created_at)
                cache.last_full_id = snapshot_id
                cache.last_full_grid = world.grid
            else:
                record = SnapshotRecord.delta(
                    snapshot_id,
                    world,
                    base_grid=cache.last_full_grid,
                    previous_full_id=cache.last_full_id,
                    created_at=created_at,
                )
            _append_record(
                run_dir / SNAPSHOT_LOG_NAME,
                {
                    "schema_version": SCHEMA_VERSION,
                    "snapshot": record.model_dump(mode="json"),
                },
            )
            cache.next_snapshot_id = snapshot_id + 1
            return snapshot_id

    def get_snapshot_records(self, run_id: str) -> list[SnapshotRecord]:
        with self._lock:
            return list(_read_snapshots(self._run_dir(run_id) / SNAPSHOT_LOG_NAME))

    def get_world_states(self, run_id: str) -> list[WorldState]:
        """Every snapshot of a run, reconstructed, oldest first."""
        records = self.get_snapshot_records(run_id)
        grids = reconstruct_grids(records)
        return [restore_world(record, grid) for record, grid in zip(records, grids)]

    def get_current_world_state_for_run(self, run_id: str) -> WorldState | None:
        records = self.get_snapshot_records(run_id)
        if not records:
            return None
        latest = records[-1]
        if latest.kind == SnapshotKind.FULL:
            return restore_world(latest, latest.decoded_grid())
        base = next(
            (
                record
                for record in reversed(records)
                if record.id == latest.previous_full_id
                and record.kind == SnapshotKind.FULL
            ),
            None,
        )
        if base is None:
            raise SnapshotIntegrityError(
                f"snapshot {latest.id} references missing full snapshot "
                f"{latest.previous_full_id}"
            )
        return restore_world(latest, apply_diff(base.decoded_grid(), latest.diff or {}))

    # Agent details

    def save_agent_details(
        self,
        run_id: str,
        snapshot_id: int,
        *,
        agent: Agent,
        tick: int,
        narrative: str = "",
        emotions: list[EmotionalOutput] | None = None,
        action: Action | None = None,
    ) -> None:
        record = AgentDetailRecord(
            snapshot_id=snapshot_id,
            tick=tick,
            agent_id=agent.id,
            name=agent.name,
            position=agent.position,
            stats=agent.stats.model_copy(),
            hp=agent.hp,
            inventory=agent.inventory.model_copy(),
            state=agent.state,
            narrative=narrative,
            emotions=list(emotions or []),
            action=action,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        with self._lock:
            _append_record(
                self._run_dir(run_id) / AGENT_LOG_NAME,
                {
                    "schema_version": SCHEMA_VERSION,
                    "detail": record.model_dump(mode="json"),
                },
            )

    def get_agent_history(self, run_id: str, agent_id: str) -> list[AgentDetailRecord]:
        with self._lock:
            path = self._run_dir(run_id) / AGENT_LOG_NAME
            return [
                detail
                for detail in (
                    AgentDetailRecord.model_validate(record["detail"])
                    for record in _read_records(path)
                )
                if detail.agent_id == agent_id
            ]

    # Messages

    def create_message(self, run_id: str, message: Message) -> None:
        if message.created_at is None:
            message = message.model_copy(
                update={"created_at": datetime.now(timezone.utc).isoformat()}
            )
        with self._lock:
            append_message(self._run_dir(run_id) / MESSAGES_LOG_NAME, message)
            cache = self._cache(run_id)
            cache.messages.append(message)
            cache.messages = self._trim_messages(cache.messages)

    def get_recent_messages(
        self,
        run_id: str,
        agents: Iterable[Agent],
        *,
        since_tick: int | None = None,
        limit: int = 25,
    ) -> list[Message]:
        with self._lock:
            self._run_dir(run_id)
            return recent_messages(
                self._cache(run_id).messages,
                agents,
                since_tick=since_tick,
                limit=limit,
            )

    # Internals

    def _run_dir(self, run_id: str) -> Path:
        run_dir = self.runs_dir / run_id
        if "/" in run_id or run_id in {"", ".", ".."} or not run_dir.is_dir():
            raise RunNotFoundError(run_id)
        return run_dir

    def _cache(self, run_id: str) -> _RunCache:
        cache = self._caches.get(run_id)
        if cache is None:
            cache = self._load_cache(run_id)
            self._caches[run_id] = cache
        return cache

    def _load_cache(self, run_id: str) -> _RunCache:
        run_dir = self._run_dir(run_id)
        cache = _RunCache()
        last_full: SnapshotRecord | None = None
        for record in _read_snapshots(run_dir / SNAPSHOT_LOG_NAME):
            cache.next_snapshot_id = record.id + 1
            if record.kind == SnapshotKind.FULL:
                last_full = record
        if last_full is not None:
            cache.last_full_id = last_full.id
            cache.last_full_grid = last_full.decoded_grid()
        cache.messages = self._trim_messages(
            list(read_messages(run_dir / MESSAGES_LOG_NAME))
        )
        return cache

    def _trim_messages(self, messages: list[Message]) -> list[Message]:
        if not messages:
            return messages
        floor = messages[-1].tick - self.message_horizon
        if messages[0].tick >= floor:
            return messages
        return [message for message in messages if message.tick >= floor]


def _read_run_info(path: Path) -> RunInfo:
    info: RunInfo | None = None
    for record in _read_records(path):
        if record.get("type") == "header":
            metadata = record["metadata"]
            info = RunInfo(id=metadata["run_id"], created_at=metadata["created_at"])
        elif record.get("type") == "status" and info is not None:
            info.status = RunStatus(record["status"])
            if info.status == RunStatus.FINISHED:
                info.finished_at = record.get("at")
    if info is None:
        raise RunNotFoundError(path.parent.name)
    return info


def _read_snapshots(path: Path) -> Iterator[SnapshotRecord]:
    for record in _read_records(path):
        yield SnapshotRecord.model_validate(record["snapshot"])


def _read_records(path: Path) -> Iterator[dict[str, Any]]:
    if not path.exists():
        return
    with path.open("r", encoding="utf-8") as handle:
        for line in handle:
            line = line.strip()
            if line:
                yield json.loads(line)


def _append_record(path: Path, record: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as handle:
        handle.write(json.dumps(record))
        handle.write("\n")


def _format_timestamp(value: datetime) -> str:
    return value.strftime("%Y-%m-%dT%H-%M-%SZ")
