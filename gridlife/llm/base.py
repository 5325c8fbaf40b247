"""Decision oracle interface and the guarded client the tick loop calls."""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import Callable, Protocol

from pydantic import BaseModel, ConfigDict, Field

from gridlife.sim.contracts import (
    Action,
    AdjacentTile,
    Agent,
    EmotionalOutput,
    Perception,
)

logger = logging.getLogger(__name__)

FALLBACK_NARRATIVE = "..."


class OracleError(RuntimeError):
    """The oracle returned output that cannot be turned into an action."""


class OracleRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    agent: Agent
    perception: Perception
    emotions: list[EmotionalOutput] = Field(default_factory=list)
    allowed: list[AdjacentTile] = Field(default_factory=list)
    context: list[str] = Field(default_factory=list)
    companions: list[str] = Field(default_factory=list)


class OracleDecision(BaseModel):
    model_config = ConfigDict(extra="forbid")

    action: Action
    narrative: str


def fallback_decision() -> OracleDecision:
    return OracleDecision(action=Action.idle(), narrative=FALLBACK_NARRATIVE)


class DecisionOracle(Protocol):
    def decide(self, *, request: OracleRequest) -> OracleDecision:
        """Return one validated action and a short narrative."""

    def complete_prompt(self, *, prompt_id: str, prompt: str) -> str:
        """Return raw prompt completion text."""


@dataclass(frozen=True)
class OracleConfig:
    model_id: str
    max_tokens: int = 256
    stage_pause: float = 5.0


class OracleClient:
    """Bounded, rate-limited access to a decision oracle.

    Every call runs on a single worker thread and is waited on for at most
    `timeout` seconds. Any failure becomes `fallback_decision()`, as does a
    call made while a timed-out one still holds the worker. A cooldown
    follows every call, and a longer one follows a failure.
    """

    def __init__(
        self,
        oracle: DecisionOracle,
        *,
        timeout: float = 30.0,
        cooldown: float = 5.0,
        failure_cooldown: float = 15.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.oracle = oracle
        self.timeout = timeout
        self.cooldown = cooldown
        self.failure_cooldown = failure_cooldown
        self._sleep = sleep
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="gridlife-oracle"
        )
        self._in_flight: Future[OracleDecision] | None = None

    def decide(self, request: OracleRequest) -> OracleDecision:
        if self._in_flight is not None and not self._in_flight.done():
            logger.warning(
                "Oracle still busy with an earlier call, using fallback for %s",
                request.agent.name,
            )
            return self._fail()
        future = self._executor.submit(self.oracle.decide, request=request)
        self._in_flight = future
        try:
            decision = future.result(timeout=self.timeout)
        except FutureTimeout:
            future.cancel()
            logger.warning(
                "Oracle timed out after %.1fs for %s", self.timeout, request.agent.name
            )
            return self._fail()
        except Exception:
            logger.warning(
                "Oracle failed for %s, using fallback", request.agent.name, exc_info=True
            )
            return self._fail()

        self._pause(self.cooldown)
        return decision

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    def _fail(self) -> OracleDecision:
        self._pause(self.failure_cooldown)
        return fallback_decision()

    def _pause(self, seconds: float) -> None:
        if seconds > 0:
            self._sleep(seconds)
