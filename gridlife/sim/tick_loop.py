"""Tick loop orchestration: per-agent decisions, persistence and broadcast."""

from __future__ import annotations

import logging
import random
import threading
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, Iterator, Protocol

from gridlife.db.snapshot_codec import encode_world
from gridlife.llm.base import OracleClient, OracleRequest
from gridlife.sim.agent_policy import choose_action, choose_reflex_action
from gridlife.sim.config import SimulationConfig
from gridlife.sim.contracts import (
    Action,
    ActionKind,
    Agent,
    DecisionMode,
    EmotionalOutput,
    Message,
    Perception,
    WorldState,
)
from gridlife.sim.perception import (
    MessageSource,
    get_adjacent_actions,
    perceive,
    process_emotions,
)
from gridlife.sim.world_gen import add_agent_to_world, create_agent, generate_world
from gridlife.sim.world_update import (
    apply_action,
    clamp_agents,
    remove_dead_agents,
    update_environment,
)

if TYPE_CHECKING:
    from gridlife.broadcast import BroadcastRegistry
    from gridlife.db.run_store import RunInfo

logger = logging.getLogger(__name__)


class WorldStore(Protocol):
    def create_run(self) -> str: ...

    def finish_run(self, run_id: str) -> None: ...

    def get_current_run(self) -> "RunInfo | None": ...

    def save_world_state(self, world: WorldState, run_id: str) -> int: ...

    def get_current_world_state_for_run(self, run_id: str) -> WorldState | None: ...

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
    ) -> None: ...

    def create_message(self, run_id: str, message: Message) -> None: ...

    def get_recent_messages(
        self,
        run_id: str,
        agents: Iterable[Agent],
        *,
        since_tick: int | None = None,
        limit: int = 25,
    ) -> list[Message]: ...


def decide(
    agent: Agent,
    world: WorldState,
    perception: Perception,
    emotions: list[EmotionalOutput],
    *,
    rng: random.Random,
    config: SimulationConfig,
    oracle: OracleClient | None = None,
) -> tuple[Action, str]:
    """Return the agent's action and narrative for this tick."""
    if not agent.uses_oracle or oracle is None:
        action = choose_action(
            agent, world, perception, rng=rng, behavior=config.behavior
        )
        return action, ""

    reflex = choose_reflex_action(
        agent, perception, hungry_threshold=config.behavior.hungry_threshold
    )
    if reflex is not None:
        return reflex, ""

    request = OracleRequest(
        agent=agent.model_copy(deep=True),
        perception=perception.model_copy(deep=True),
        emotions=emotions,
        allowed=get_adjacent_actions(agent, world),
        context=list(agent.context or []),
        companions=[
            other.name
            for other in world.agents
            if other.uses_oracle and other.id != agent.id
        ],
    )
    decision = oracle.decide(request)
    return decision.action, decision.narrative


def update_context(
    agent: Agent,
    perception: Perception,
    action: Action,
    narrative: str,
    *,
    tick: int,
    limit: int,
) -> None:
    """Append one narrative entry for an oracle agent; sleeping clears it."""
    if agent.context is None:
        return
    if not agent.is_awake:
        agent.context = []
        return
    stats = agent.stats
    parts = [
        f"Tick {tick}: hp {agent.hp:.0f}, hunger {stats.hunger:.0f}, "
        f"fatigue {stats.fatigue:.0f}, social {stats.social:.0f}",
        f"saw {len(perception.nearby_agents)} agents and "
        f"{len(perception.nearby_enemies)} enemies",
    ]
    if narrative:
        parts.append(f"thought: {narrative}")
    parts.append(f"did: {action.describe()}")
    agent.context.append("; ".join(parts))
    if len(agent.context) > limit:
        del agent.context[: len(agent.context) - limit]


@dataclass
class AgentTurn:
    """What one agent did during a tick, captured right after it acted."""

    agent: Agent
    tick: int
    action: Action
    narrative: str = ""
    emotions: list[EmotionalOutput] = field(default_factory=list)


@dataclass
class StepResult:
    turns: list[AgentTurn] = field(default_factory=list)
    dead: list[Agent] = field(default_factory=list)


def simulation_step(
    world: WorldState,
    *,
    rng: random.Random,
    config: SimulationConfig | None = None,
    oracle: OracleClient | None = None,
    store: WorldStore | None = None,
    run_id: str | None = None,
) -> StepResult:
    """Advance the world by one tick in place.

    Agents act strictly in list order, so each one perceives the effects of
    those before it. Talk messages are written to the store immediately so
    later agents in the same tick can hear them.
    """
    config = config or SimulationConfig()
    recording = store is not None and run_id is not None
    result = StepResult()

    for agent in list(world.agents):
        messages: MessageSource | None = None
        if recording:
            messages = _message_source(store, run_id, world, config)
        perception = perceive(agent, world, messages=messages)
        emotions = process_emotions(perception, agent.stats, rng=rng)
        action, narrative = decide(
            agent,
            world,
            perception,
            emotions,
            rng=rng,
            config=config,
            oracle=oracle,
        )
        apply_action(world, agent, action, rng=rng)
        update_context(
            agent,
            perception,
            action,
            narrative,
            tick=world.tick,
            limit=config.context_limit,
        )

        if recording and action.kind == ActionKind.TALK and action.talk is not None:
            store.create_message(
                run_id,
                Message(
                    sender_id=agent.id,
                    sender_name=agent.name,
                    content=action.talk.message,
                    volume=action.talk.volume,
                    position=agent.position,
                    tick=world.tick,
                ),
            )
        result.turns.append(
            AgentTurn(
                agent=agent.model_copy(deep=True),
                tick=world.tick,
                action=action,
                narrative=narrative,
                emotions=emotions,
            )
        )

    update_environment(world, rng=rng)
    clamp_agents(world)
    result.dead = remove_dead_agents(world)
    for agent in result.dead:
        logger.info("%s died at tick %d", agent.name, world.tick)
    world.tick += 1
    return result


def _message_source(
    store: WorldStore, run_id: str, world: WorldState, config: SimulationConfig
) -> MessageSource:
    def fetch(visible: list[Agent]) -> list[Message]:
        return store.get_recent_messages(
            run_id,
            visible,
            since_tick=world.tick - config.message_window,
            limit=config.message_limit,
        )

    return fetch


def record_step(
    store: WorldStore, run_id: str, world: WorldState, result: StepResult
) -> int:
    """Persist the post-tick world and the turns that produced it."""
    snapshot_id = store.save_world_state(world, run_id)
    for turn in result.turns:
        store.save_agent_details(
            run_id,
            snapshot_id,
            agent=turn.agent,
            tick=turn.tick,
            narrative=turn.narrative,
            emotions=turn.emotions,
            action=turn.action,
        )
    return snapshot_id


def run_ticks(
    world: WorldState,
    ticks: int | None,
    *,
    rng: random.Random,
    config: SimulationConfig | None = None,
    oracle: OracleClient | None = None,
    store: WorldStore | None = None,
    run_id: str | None = None,
) -> Iterator[WorldState]:
    """Yield a post-tick snapshot after every tick until `ticks` or extinction.

    With a store, each post-tick state is persisted along with the agent
    turns that led to it. The starting state is the caller's to persist.
    """
    config = config or SimulationConfig()
    step_count = 0
    while (ticks is None or step_count < ticks) and world.agents:
        result = simulation_step(
            world,
            rng=rng,
            config=config,
            oracle=oracle,
            store=store,
            run_id=run_id,
        )
        if store is not None and run_id is not None:
            record_step(store, run_id, world, result)
        step_count += 1
        yield world.snapshot()


def populate_world(
    config: SimulationConfig, rng: random.Random
) -> WorldState:
    world = generate_world(config.width, config.height, rng)
    for index in range(config.initial_agents):
        mode = (
            DecisionMode.ORACLE
            if index < config.oracle_agents
            else DecisionMode.HEURISTIC
        )
        add_agent_to_world(world, create_agent(rng, mode=mode), rng)
    return world


def maybe_grow_population(
    world: WorldState, config: SimulationConfig, rng: random.Random
) -> Agent | None:
    if config.growth_interval <= 0 or world.tick % config.growth_interval != 0:
        return None
    if rng.random() >= config.growth_chance:
        return None
    return add_agent_to_world(world, create_agent(rng), rng)


class SimulationLoop:
    """Drives runs: resolve or create, tick, persist, broadcast, restart.

    In live mode a failed or extinct run is finished and a fresh one starts.
    In batch mode the loop stops at extinction and re-raises tick failures
    once the run is marked finished.
    """

    def __init__(
        self,
        store: WorldStore,
        *,
        config: SimulationConfig | None = None,
        oracle: OracleClient | None = None,
        registry: "BroadcastRegistry | None" = None,
        rng: random.Random | None = None,
        live: bool = False,
    ) -> None:
        self.store = store
        self.config = config or SimulationConfig()
        self.oracle = oracle
        self.registry = registry
        self.rng = rng or random.Random(self.config.seed)
        self.live = live
        self.run_id: str | None = None
        self.world: WorldState | None = None
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def resolve_run(self) -> tuple[str, WorldState]:
        current = self.store.get_current_run()
        if current is not None:
            world = self.store.get_current_world_state_for_run(current.id)
            if world is not None and world.agents:
                logger.info("Resuming run %s at tick %d", current.id, world.tick)
                return current.id, world
            self.store.finish_run(current.id)

        run_id = self.store.create_run()
        world = populate_world(self.config, self.rng)
        self.store.save_world_state(world, run_id)
        logger.info(
            "Started run %s with %d agents on a %dx%d grid",
            run_id,
            len(world.agents),
            world.width,
            world.height,
        )
        return run_id, world

    def run(self, ticks: int | None = None) -> str | None:
        """Tick until `ticks` have run in total, or forever when None."""
        remaining = ticks
        while not self._stop.is_set():
            run_id, world = self.resolve_run()
            self.run_id, self.world = run_id, world
            try:
                for snapshot in run_ticks(
                    world,
                    None,
                    rng=self.rng,
                    config=self.config,
                    oracle=self.oracle,
                    store=self.store,
                    run_id=run_id,
                ):
                    if self.registry is not None:
                        self.registry.broadcast(encode_world(snapshot))
                    newcomer = maybe_grow_population(world, self.config, self.rng)
                    if newcomer is not None:
                        logger.info("%s joined at tick %d", newcomer.name, world.tick)
                    if remaining is not None:
                        remaining -= 1
                        if remaining <= 0:
                            return run_id
                    if self._stop.is_set():
                        return run_id
                    if self.config.tick_delay > 0:
                        time.sleep(self.config.tick_delay)
            except Exception:
                logger.exception("Tick failed, finishing run %s", run_id)
                self.store.finish_run(run_id)
                if not self.live:
                    raise
                continue

            logger.info("Population extinct at tick %d in run %s", world.tick, run_id)
            self.store.finish_run(run_id)
            if not self.live:
                return run_id
        return self.run_id

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self.run, name="gridlife-loop", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        if self.oracle is not None:
            self.oracle.close()
