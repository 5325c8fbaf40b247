"""Rich rendering of a world state."""

from __future__ import annotations

from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from gridlife.sim.contracts import TileType, WorldState

TILE_GLYPHS: dict[TileType, tuple[str, str]] = {
    TileType.GRASS: (".", "green3"),
    TileType.TREE: ("T", "dark_green"),
    TileType.WATER: ("~", "blue"),
    TileType.HOUSE: ("H", "bright_magenta"),
    TileType.WALL: ("#", "grey70"),
    TileType.DOOR: ("+", "yellow"),
    TileType.LOCKED_DOOR: ("=", "yellow3"),
    TileType.BRIDGE: ("-", "orange3"),
}

AGENT_GLYPH = ("@", "bold bright_cyan")
SLEEPING_GLYPH = ("z", "cyan")
ENEMY_GLYPH = ("E", "bold red")
SEED_GLYPH = (",", "bright_green")


def format_time(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def render_world(
    world: WorldState, *, title: str | None = None, show_map: bool = True
) -> RenderableType:
    phase = "night" if world.is_night else "day"
    header = Text(
        f"Tick {world.tick}  {format_time(world.time_of_day)} ({phase})  "
        f"Agents: {len(world.agents)}  Enemies: {len(world.enemies)}",
        style="bold",
    )
    parts: list[RenderableType] = [header]
    if show_map:
        parts.append(render_map(world))
    parts.append(_render_agents(world))
    return Panel(Group(*parts), title=title or "World")


def render_map(world: WorldState) -> Text:
    overlay: dict[tuple[int, int], tuple[str, str]] = {}
    for key in world.seed_timers:
        x, y = key.split(",")
        overlay[(int(x), int(y))] = SEED_GLYPH
    for enemy in world.enemies:
        overlay[(enemy.position.x, enemy.position.y)] = ENEMY_GLYPH
    for agent in world.agents:
        glyph = AGENT_GLYPH if agent.is_awake else SLEEPING_GLYPH
        overlay[(agent.position.x, agent.position.y)] = glyph

    text = Text()
    for y, row in enumerate(world.grid):
        for x, tile in enumerate(row):
            char, style = overlay.get((x, y)) or TILE_GLYPHS[tile]
            text.append(char, style=style)
        if y < world.height - 1:
            text.append("\n")
    return text


def _render_agents(world: WorldState) -> RenderableType:
    table = Table(title="Agents", show_header=True, header_style="bold")
    table.add_column("Agent")
    table.add_column("Pos")
    table.add_column("HP", justify="right")
    table.add_column("Hunger", justify="right")
    table.add_column("Fatigue", justify="right")
    table.add_column("Social", justify="right")
    table.add_column("Wood", justify="right")
    table.add_column("Saplings", justify="right")
    table.add_column("Food", justify="right")

    for agent in world.agents:
        name = f"{agent.emoji} {agent.name}"
        if not agent.is_awake:
            name += " (asleep)"
        if agent.uses_oracle:
            name += " *"
        table.add_row(
            name,
            f"{agent.position.x},{agent.position.y}",
            f"{agent.hp:.0f}",
            f"{agent.stats.hunger:.0f}",
            f"{agent.stats.fatigue:.0f}",
            f"{agent.stats.social:.0f}",
            str(agent.inventory.wood),
            str(agent.inventory.saplings),
            str(agent.inventory.food),
        )
    if not world.agents:
        table.add_row("None", "-", "-", "-", "-", "-", "-", "-", "-")
    return table
