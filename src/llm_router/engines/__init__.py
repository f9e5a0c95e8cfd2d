"""Pluggable decision engines and their registry."""

from llm_router.engines.base import (
    DecisionEngine,
    RoutingContext,
    RoutingDecision,
    UserPreferences,
    estimate_cost,
)
from llm_router.engines.heuristic import HeuristicEngine, calculate_complexity
from llm_router.engines.llm_classifier import (
    ClassificationResult,
    LLMClassifierEngine,
    LLMClassifierOptions,
    Tier,
)
from llm_router.engines.registry import EngineRegistration, EngineRegistry

__all__ = [
    "DecisionEngine",
    "RoutingContext",
    "RoutingDecision",
    "UserPreferences",
    "estimate_cost",
    "HeuristicEngine",
    "calculate_complexity",
    "ClassificationResult",
    "LLMClassifierEngine",
    "LLMClassifierOptions",
    "Tier",
    "EngineRegistration",
    "EngineRegistry",
]
