"""Prompt-driven oracle: think first, then pick an action."""

from __future__ import annotations

import time

from gridlife.llm.base import OracleDecision, OracleError, OracleRequest
from gridlife.llm.prompts import (
    ActInput,
    MonologueOutput,
    PromptId,
    parse_prompt_output,
    render_prompt,
    situation_from_request,
)
from gridlife.sim.contracts import Action, ActionKind, Item, parse_action


class PromptOracle:
    """Runs the monologue and act prompts through `complete_prompt`.

    Subclasses supply the completion backend. Output that does not parse or
    names a target outside the request's allowed interactions raises
    `OracleError`. `stage_pause` seconds pass between the two prompts.
    """

    stage_pause: float = 0.0

    def decide(self, *, request: OracleRequest) -> OracleDecision:
        situation = situation_from_request(request)
        response = self.complete_prompt(
            prompt_id=PromptId.MONOLOGUE.value,
            prompt=render_prompt(PromptId.MONOLOGUE, situation),
        )
        monologue = parse_prompt_output(PromptId.MONOLOGUE, response)
        if not isinstance(monologue, MonologueOutput):
            raise OracleError(f"unusable monologue output: {response[:120]!r}")
        self.pause_between_stages()

        act_input = ActInput(**situation.model_dump(), thoughts=monologue.thoughts)
        response = self.complete_prompt(
            prompt_id=PromptId.ACT.value,
            prompt=render_prompt(PromptId.ACT, act_input),
        )
        parsed = parse_prompt_output(PromptId.ACT, response)
        action = parse_action(parsed) if parsed is not None else None
        if action is None:
            raise OracleError(f"unusable action output: {response[:120]!r}")
        _check_targets(action, request)
        return OracleDecision(action=action, narrative=monologue.thoughts)

    def pause_between_stages(self) -> None:
        if self.stage_pause > 0:
            time.sleep(self.stage_pause)

    def complete_prompt(self, *, prompt_id: str, prompt: str) -> str:
        raise NotImplementedError


def _check_targets(action: Action, request: OracleRequest) -> None:
    allowed = {cell.position for cell in request.allowed}
    if action.kind == ActionKind.INTERACT and action.interact is not None:
        if action.interact.position not in allowed:
            raise OracleError(f"interact target not allowed: {action.describe()}")
    if action.kind == ActionKind.USE and action.use is not None:
        if action.use.item == Item.SAPLINGS and action.use.position not in allowed:
            raise OracleError(f"planting target not allowed: {action.describe()}")


__all__ = ["PromptOracle"]
