"""Grid compression, diffing, chain reconstruction and wire framing."""

from __future__ import annotations

import base64
import json
import zlib
from enum import Enum
from typing import Any, Iterable, Iterator

from pydantic import BaseModel, ConfigDict, Field, model_validator

from gridlife.sim.contracts import Grid, Position, TileType, WorldState

FRAME_SENTINEL = b"\xff\xfe\xff\xfe"

GridDiff = dict[str, TileType]


class SnapshotIntegrityError(RuntimeError):
    """A diff snapshot cannot be resolved against a full snapshot."""


def compress_grid(grid: Grid) -> bytes:
    rows = [[int(tile) for tile in row] for row in grid]
    return zlib.compress(json.dumps(rows, separators=(",", ":")).encode("ascii"))


def decompress_grid(data: bytes) -> Grid:
    rows = json.loads(zlib.decompress(data).decode("ascii"))
    return tuple(tuple(TileType(value) for value in row) for row in rows)


def diff_grids(old: Grid, new: Grid) -> GridDiff:
    """Cells of `new` that differ from `old`, keyed `"x,y"`."""
    if len(old) != len(new) or any(len(a) != len(b) for a, b in zip(old, new)):
        raise ValueError("grids must share the same shape")
    changes: GridDiff = {}
    for y, (old_row, new_row) in enumerate(zip(old, new)):
        if old_row is new_row or old_row == new_row:
            continue
        for x, (before, after) in enumerate(zip(old_row, new_row)):
            if before != after:
                changes[f"{x},{y}"] = TileType(after)
    return changes


def apply_diff(base: Grid, diff: dict[str, Any]) -> Grid:
    """Return a new grid with the diff applied; `base` is left untouched."""
    if not diff:
        return base
    by_row: dict[int, dict[int, TileType]] = {}
    for key, tile in diff.items():
        position = Position.from_key(key)
        by_row.setdefault(position.y, {})[position.x] = TileType(tile)
    rows = list(base)
    for y, cells in by_row.items():
        row = list(rows[y])
        for x, tile in cells.items():
            row[x] = tile
        rows[y] = tuple(row)
    return tuple(rows)


class SnapshotKind(str, Enum):
    FULL = "full"
    DIFF = "diff"


class SnapshotRecord(BaseModel):
    """One persisted snapshot: a compressed full grid or a sparse diff."""

    model_config = ConfigDict(extra="forbid")

    id: int = Field(ge=0)
    kind: SnapshotKind
    tick: int
    grid: str | None = None
    diff: dict[str, int] | None = None
    previous_full_id: int | None = None
    state: dict[str, Any] = Field(default_factory=dict)
    created_at: str | None = None

    @model_validator(mode="after")
    def validate_payload(self) -> "SnapshotRecord":
        if self.kind == SnapshotKind.FULL and self.grid is None:
            raise ValueError("full snapshot requires a grid")
        if self.kind == SnapshotKind.DIFF and (
            self.diff is None or self.previous_full_id is None
        ):
            raise ValueError("diff snapshot requires diff and previous_full_id")
        return self

    @classmethod
    def full(cls, snapshot_id: int, world: WorldState, **extra: Any) -> "SnapshotRecord":
        return cls(
            id=snapshot_id,
            kind=SnapshotKind.FULL,
            tick=world.tick,
            grid=base64.b64encode(compress_grid(world.grid)).decode("ascii"),
            state=world_state_fields(world),
            **extra,
        )

    @classmethod
    def delta(
        cls,
        snapshot_id: int,
        world: WorldState,
        *,
        base_grid: Grid,
        previous_full_id: int,
        **extra: Any,
    ) -> "SnapshotRecord":
        changes = diff_grids(base_grid, world.grid)
        return cls(
            id=snapshot_id,
            kind=SnapshotKind.DIFF,
            tick=world.tick,
            diff={key: int(tile) for key, tile in changes.items()},
            previous_full_id=previous_full_id,
            state=world_state_fields(world),
            **extra,
        )

    def decoded_grid(self) -> Grid:
        if self.grid is None:
            raise SnapshotIntegrityError(f"snapshot {self.id} carries no full grid")
        return decompress_grid(base64.b64decode(self.grid))


def world_state_fields(world: WorldState) -> dict[str, Any]:
    return world.model_dump(mode="json", exclude={"grid"})


def reconstruct_grids(records: Iterable[SnapshotRecord]) -> list[Grid]:
    """Rebuild the grid of every record, in order.

    Each diff is applied to the full snapshot it references, which must appear
    earlier in `records`.
    """
    fulls: dict[int, Grid] = {}
    grids: list[Grid] = []
    for record in records:
        if record.kind == SnapshotKind.FULL:
            grid = record.decoded_grid()
            fulls[record.id] = grid
        else:
            base = (
                fulls.get(record.previous_full_id)
                if record.previous_full_id is not None
                else None
            )
            if base is None:
                raise SnapshotIntegrityError(
                    f"snapshot {record.id} references missing full snapshot "
                    f"{record.previous_full_id}"
                )
            grid = apply_diff(base, record.diff or {})
        grids.append(grid)
    return grids


def restore_world(record: SnapshotRecord, grid: Grid) -> WorldState:
    return WorldState.model_validate({**record.state, "grid": grid})


def encode_world(world: WorldState) -> bytes:
    return zlib.compress(world.model_dump_json().encode("utf-8"))


def decode_world(data: bytes) -> WorldState:
    return WorldState.model_validate_json(zlib.decompress(data))


def iter_frames(payloads: Iterable[bytes]) -> Iterator[bytes]:
    for payload in payloads:
        yield payload + FRAME_SENTINEL


def frame_history(payloads: Iterable[bytes]) -> bytes:
    return b"".join(iter_frames(payloads))


def split_frames(data: bytes) -> list[bytes]:
    frames = data.split(FRAME_SENTINEL)
    if frames and frames[-1] == b"":
        frames.pop()
    return frames
