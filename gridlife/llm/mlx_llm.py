"""mlx-lm adapter for real local runs."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from gridlife.llm.base import OracleConfig
from gridlife.llm.prompt_llm import PromptOracle

logger = logging.getLogger(__name__)


@dataclass
class MlxOracle(PromptOracle):
    config: OracleConfig

    def __post_init__(self) -> None:
        from mlx_lm import load

        self.stage_pause = self.config.stage_pause
        logger.info("Loading mlx model %s", self.config.model_id)
        self._model, self._tokenizer = load(self.config.model_id)

    def complete_prompt(self, *, prompt_id: str, prompt: str) -> str:
        logger.debug("Completing %s prompt (%d chars)", prompt_id, len(prompt))
        return _generate(
            self._model, self._tokenizer, prompt, max_tokens=self.config.max_tokens
        )


def _generate(model, tokenizer, prompt: str, *, max_tokens: int) -> str:
    from mlx_lm import generate

    return generate(model, tokenizer, prompt=prompt, max_tokens=max_tokens)
