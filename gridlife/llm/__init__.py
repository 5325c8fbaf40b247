"""Decision oracle adapters and interfaces."""

from gridlife.llm.base import (
    DecisionOracle,
    OracleClient,
    OracleConfig,
    OracleDecision,
    OracleError,
    OracleRequest,
    fallback_decision,
)
from gridlife.llm.fake_llm import FakeOracle
from gridlife.llm.mlx_llm import MlxOracle
from gridlife.llm.prompt_fixtures import fixture_for
from gridlife.llm.prompt_llm import PromptOracle
from gridlife.llm.prompts import PromptId, parse_prompt_output, render_prompt

__all__ = [
    "DecisionOracle",
    "OracleClient",
    "OracleConfig",
    "OracleDecision",
    "OracleError",
    "OracleRequest",
    "FakeOracle",
    "MlxOracle",
    "PromptOracle",
    "PromptId",
    "fallback_decision",
    "fixture_for",
    "parse_prompt_output",
    "render_prompt",
]
