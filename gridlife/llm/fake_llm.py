"""Deterministic FakeOracle for tests and demos."""

from __future__ import annotations

import logging

from gridlife.llm.prompt_fixtures import fixture_for
from gridlife.llm.prompt_llm import PromptOracle
from gridlife.llm.prompts import PromptId, extract_json

logger = logging.getLogger(__name__)


class FakeOracle(PromptOracle):
    """Answers every prompt from the fixture table, no model required."""

    def complete_prompt(self, *, prompt_id: str, prompt: str) -> str:
        try:
            known = PromptId(prompt_id)
        except ValueError:
            logger.debug("No fixture for prompt %r", prompt_id)
            return "{}"
        return fixture_for(known, extract_json(prompt) or {})
