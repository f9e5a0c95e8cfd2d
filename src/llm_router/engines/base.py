"""Routing value types and the decision engine interface."""

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from llm_router.catalog import ModelDescriptor, Provider

ESTIMATED_TOKENS_THOUSANDS = 2
"""Fixed token budget (in thousands) behind every cost estimate.

Estimates never look at the real prompt or completion size.
"""

MAX_FALLBACK_CHAIN = 3


def estimate_cost(model: ModelDescriptor) -> float:
    """Estimated cost of one request under the fixed 2000-token budget."""
    return model.cost_per_1k_tokens * ESTIMATED_TOKENS_THOUSANDS


@dataclass(frozen=True)
class UserPreferences:
    """Per-user routing preferences."""

    preferred_provider: Provider | None = None
    max_cost: float | None = None
    min_quality: str | None = None  # "low", "medium" or "high"
    allow_fallback: bool = True


@dataclass(frozen=True)
class RoutingContext:
    """Everything an engine may look at to route one request."""

    prompt: str
    requested_model: str | None = None
    conversation_history: tuple[str, ...] = ()
    preferences: UserPreferences | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def allows_fallback(self) -> bool:
        return self.preferences is None or self.preferences.allow_fallback


@dataclass(frozen=True)
class RoutingDecision:
    """
    Output of a decision engine.

    The fallback chain is normalized on construction: duplicates and the
    chosen model are dropped and the chain is capped at three entries.
    """

    model: ModelDescriptor
    confidence: float
    rationale: str
    estimated_cost: float
    fallback_chain: tuple[ModelDescriptor, ...] = ()

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Confidence out of range: {self.confidence}")

        chain: list[ModelDescriptor] = []
        for candidate in self.fallback_chain:
            if candidate == self.model or candidate in chain:
                continue
            chain.append(candidate)
        object.__setattr__(self, "fallback_chain", tuple(chain[:MAX_FALLBACK_CHAIN]))

    @property
    def provider(self) -> Provider:
        return self.model.provider

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.model.provider.value,
            "model": self.model.model,
            "confidence": self.confidence,
            "rationale": self.rationale,
            "estimated_cost": self.estimated_cost,
            "fallback_chain": [m.model for m in self.fallback_chain],
        }


@runtime_checkable
class DecisionEngine(Protocol):
    """
    Pluggable routing strategy.

    Engines may additionally expose ``get_confidence(context) -> float``,
    a cheap synchronous hint the registry uses to skip ``decide``.
    """

    name: str
    version: str

    async def decide(self, context: RoutingContext) -> RoutingDecision | None:
        """Return a decision, or None if this engine cannot handle the request."""
        ...
