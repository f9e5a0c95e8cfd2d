"""
Static model catalog.

Maps short aliases (``"claude-haiku"``) to model descriptors carrying
provider, wire name, pricing, limits and capability tags. The catalog is
read-only at runtime; build a new :class:`ModelCatalog` to extend it.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType


class Provider(str, Enum):
    """Upstream model providers."""

    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    OLLAMA = "ollama"  # Local, free
    GOOGLE = "google"
    LOCAL = "local"


@dataclass(frozen=True)
class ModelDescriptor:
    """
    Immutable description of one upstream model.

    Two descriptors are equal when their wire model names are equal.
    """

    provider: Provider = field(compare=False)
    model: str
    """Wire model name sent to the provider."""

    cost_per_1k_tokens: float = field(default=0.0, compare=False)
    max_tokens: int = field(default=4096, compare=False)
    context_window: int = field(default=4096, compare=False)
    capabilities: frozenset[str] = field(default_factory=frozenset, compare=False)

    def __post_init__(self) -> None:
        if self.cost_per_1k_tokens < 0:
            raise ValueError(f"Negative cost for model {self.model}")
        if not isinstance(self.capabilities, frozenset):
            object.__setattr__(self, "capabilities", frozenset(self.capabilities))

    @property
    def is_free(self) -> bool:
        return self.cost_per_1k_tokens == 0

    def has_capability(self, tag: str) -> bool:
        return tag in self.capabilities


def _model(
    provider: Provider,
    model: str,
    cost: float,
    max_tokens: int,
    context_window: int,
    capabilities: Iterable[str],
) -> ModelDescriptor:
    return ModelDescriptor(
        provider=provider,
        model=model,
        cost_per_1k_tokens=cost,
        max_tokens=max_tokens,
        context_window=context_window,
        capabilities=frozenset(capabilities),
    )


DEFAULT_MODELS: dict[str, ModelDescriptor] = {
    # Ollama - local models (free)
    "gemma-2b": _model(
        Provider.OLLAMA, "gemma:2b", 0, 4096, 4096,
        ["simple", "fast", "free", "heartbeat", "classify"],
    ),
    "llama3-8b": _model(
        Provider.OLLAMA, "llama3:8b", 0, 8192, 8192,
        ["coding", "reasoning", "local"],
    ),
    "kimi": _model(
        Provider.OLLAMA, "kimi-k2.5", 0, 32768, 128000,
        ["long-context", "code", "local"],
    ),
    "llama3.2-1b": _model(
        Provider.OLLAMA, "llama3.2:1b", 0, 4096, 128000,
        ["simple", "fast", "local"],
    ),
    "llama3.2-3b": _model(
        Provider.OLLAMA, "llama3.2:3b", 0, 4096, 128000,
        ["fast", "local"],
    ),
    # Anthropic
    "claude-haiku": _model(
        Provider.ANTHROPIC, "claude-3-haiku-20240307", 0.25, 4096, 200000,
        ["fast", "cheap", "simple", "classification"],
    ),
    "claude-sonnet": _model(
        Provider.ANTHROPIC, "claude-3-5-sonnet-20241022", 3, 8192, 200000,
        ["coding", "reasoning", "balanced"],
    ),
    "claude-opus": _model(
        Provider.ANTHROPIC, "claude-3-opus-20240229", 15, 4096, 200000,
        ["reasoning", "complex", "agentic"],
    ),
    # OpenAI
    "gpt-4o-mini": _model(
        Provider.OPENAI, "gpt-4o-mini", 0.15, 16384, 128000,
        ["fast", "cheap", "simple"],
    ),
    "gpt-4o": _model(
        Provider.OPENAI, "gpt-4o", 2.5, 16384, 128000,
        ["balanced", "coding", "vision"],
    ),
    "gpt-4-turbo": _model(
        Provider.OPENAI, "gpt-4-turbo-preview", 10, 4096, 128000,
        ["reasoning", "complex", "coding"],
    ),
    "codex": _model(
        Provider.OPENAI, "gpt-4o-codex", 3, 8192, 128000,
        ["coding", "diff", "agentic"],
    ),
    # Google
    "gemini-flash": _model(
        Provider.GOOGLE, "gemini-2.0-flash-exp", 0.075, 8192, 1000000,
        ["fast", "cheap", "long-context"],
    ),
    "gemini-pro": _model(
        Provider.GOOGLE, "gemini-1.5-pro-latest", 3.5, 8192, 2000000,
        ["reasoning", "long-context", "complex"],
    ),
}


class ModelCatalog:
    """Read-only lookup over a set of aliased model descriptors."""

    def __init__(self, models: Mapping[str, ModelDescriptor] | None = None) -> None:
        self._models = MappingProxyType(dict(DEFAULT_MODELS if models is None else models))

    def __contains__(self, alias: str) -> bool:
        return alias in self._models

    def __len__(self) -> int:
        return len(self._models)

    def get(self, alias: str) -> ModelDescriptor | None:
        """Get a descriptor by alias only."""
        return self._models.get(alias)

    def lookup(self, alias_or_name: str) -> ModelDescriptor | None:
        """
        Get a descriptor by alias or wire model name.

        Returns:
            Matching descriptor, or None when unknown
        """
        if alias_or_name in self._models:
            return self._models[alias_or_name]
        for descriptor in self._models.values():
            if descriptor.model == alias_or_name:
                return descriptor
        return None

    def aliases(self) -> list[str]:
        return list(self._models.keys())

    def all(self) -> list[ModelDescriptor]:
        return list(self._models.values())

    def by_provider(self, provider: Provider | str) -> list[ModelDescriptor]:
        """Get all models served by a provider, in catalog order."""
        provider = Provider(provider)
        return [m for m in self._models.values() if m.provider == provider]

    def by_capability(self, tag: str) -> list[ModelDescriptor]:
        """Get all models carrying a capability tag, in catalog order."""
        return [m for m in self._models.values() if m.has_capability(tag)]

    def cheapest(self, tag: str, prefer_free: bool = True) -> ModelDescriptor | None:
        """
        Get the cheapest model for a capability.

        Args:
            tag: Capability tag to filter on
            prefer_free: Return the first free model when one exists

        Returns:
            Cheapest matching model, or None if no model has the tag
        """
        models = self.by_capability(tag)
        if prefer_free:
            free = [m for m in models if m.is_free]
            if free:
                return free[0]
        if not models:
            return None
        return min(models, key=lambda m: m.cost_per_1k_tokens)

    def cheapest_for_provider(self, provider: Provider | str) -> ModelDescriptor | None:
        models = self.by_provider(provider)
        if not models:
            return None
        return min(models, key=lambda m: m.cost_per_1k_tokens)

    def model_for_tier(self, tier: str) -> ModelDescriptor | None:
        """Pick a model for a complexity tier by capability alone."""
        tier_capabilities = {
            "simple": ("simple", "gemma-2b"),
            "medium": ("balanced", "claude-sonnet"),
            "complex": ("coding", "gpt-4o"),
            "reasoning": ("reasoning", "claude-opus"),
        }
        if tier not in tier_capabilities:
            raise ValueError(f"Unknown tier: {tier}")
        tag, default_alias = tier_capabilities[tier]
        return self.cheapest(tag, prefer_free=tier == "simple") or self.get(default_alias)


default_catalog = ModelCatalog()
