"""Rule-based decision engine using keyword patterns and complexity scoring."""

import logging
import re

from llm_router.catalog import ModelCatalog, ModelDescriptor, Provider, default_catalog
from llm_router.engines.base import RoutingContext, RoutingDecision, estimate_cost

logger = logging.getLogger(__name__)

# Heartbeat - minimal, status-only
HEARTBEAT_PATTERN = re.compile(r"\bHEARTBEAT_OK\b|\bHEARTBEAT\b", re.IGNORECASE)

# Greetings and acknowledgments
SIMPLE_PATTERN = re.compile(r"\b(hello|hi|hey|thanks|ok|yes|no)\b", re.IGNORECASE)
SIMPLE_MAX_LENGTH = 100

# Coding indicators
CODE_KEYWORD_PATTERN = re.compile(
    r"\b(import|export|const|let|var|function|class|async|await|=>)\b"
)
CODE_BLOCK_PATTERN = re.compile(r"```[\s\S]*?```")
TOOL_PATTERN = re.compile(r"\b(git|npm|yarn|bun|pnpm|docker|dockerfile)\b")
FILE_PATH_PATTERN = re.compile(r"/\w+\.\w+")

BUSINESS_PATTERN = re.compile(
    r"\b(price|cost|revenue|profit|margin|seo|marketing|funnel)\b", re.IGNORECASE
)
REASONING_PATTERN = re.compile(
    r"\b(explain|why|how|compare|analyze|architecture|design)\b", re.IGNORECASE
)
COMPOUND_QUESTION_PATTERN = re.compile(
    r"\?{2,}|\b(what if|consider|imagine|scenario)\b", re.IGNORECASE
)


def calculate_complexity(prompt: str) -> float:
    """Score prompt complexity on a 0-100 scale."""
    score = 0.0
    length = len(prompt)

    # Length factor (longer = more complex)
    if length > 200:
        score += min(15.0, (length - 100) / 50)

    score += len(CODE_BLOCK_PATTERN.findall(prompt)) * 20
    score += prompt.count("?") * 3

    if REASONING_PATTERN.search(prompt):
        score += 10
    if COMPOUND_QUESTION_PATTERN.search(prompt):
        score += 15
    if BUSINESS_PATTERN.search(prompt):
        score += 8
    if FILE_PATH_PATTERN.search(prompt):
        score += 12

    return max(0.0, min(100.0, score))


def is_code_query(prompt: str) -> bool:
    return bool(
        CODE_KEYWORD_PATTERN.search(prompt)
        or TOOL_PATTERN.search(prompt)
        or CODE_BLOCK_PATTERN.search(prompt)
        or FILE_PATH_PATTERN.search(prompt)
    )


def is_heartbeat(prompt: str) -> bool:
    return bool(HEARTBEAT_PATTERN.search(prompt))


def is_simple_query(prompt: str) -> bool:
    return bool(SIMPLE_PATTERN.search(prompt)) and len(prompt) < SIMPLE_MAX_LENGTH


class HeuristicEngine:
    """
    Default decision engine.

    Routes on keyword analysis and a complexity score without any network
    calls. Always returns a decision, which makes it the registry's last
    resort.
    """

    name = "default"
    version = "1.0.0"

    FREE_MODEL = "gemma-2b"
    CHEAP_CLOUD_MODEL = "claude-haiku"

    # (alias, secondary alias) per selection branch
    CODING_SPECIALIST = ("codex", "claude-sonnet")
    BALANCED_CODING = ("claude-sonnet", "gpt-4o")
    TOP_TIER = ("claude-opus", "gpt-4-turbo")
    BALANCED = ("claude-sonnet", "gpt-4o")
    FAST_CHEAP = ("claude-haiku", "gemini-flash")
    CHEAPEST = ("kimi", "gemma-2b")

    def __init__(self, catalog: ModelCatalog | None = None) -> None:
        self._catalog = catalog or default_catalog

    @property
    def catalog(self) -> ModelCatalog:
        return self._catalog

    def _resolve(self, aliases: tuple[str, ...], capability: str) -> ModelDescriptor:
        """
        Resolve a selection branch against the catalog.

        Tries the branch aliases in order, then the cheapest model carrying
        the branch capability, then the cheapest model in the catalog.
        """
        for alias in aliases:
            model = self._catalog.get(alias)
            if model is not None:
                return model
        model = self._catalog.cheapest(capability, prefer_free=False)
        if model is not None:
            logger.debug(f"No alias of {aliases} in catalog, using cheapest {capability} model")
            return model
        return self._cheapest_any()

    def _cheapest_any(self) -> ModelDescriptor:
        # An empty catalog is replaced by the default one, so this never sees []
        return min(self._catalog.all(), key=lambda m: m.cost_per_1k_tokens)

    def _free_model(self) -> ModelDescriptor:
        return (
            self._catalog.get(self.FREE_MODEL)
            or self._catalog.cheapest("simple", prefer_free=True)
            or self._cheapest_any()
        )

    def _select(self, prompt: str, score: float) -> tuple[ModelDescriptor, str]:
        """Apply the selection table; first matching row wins."""
        if is_code_query(prompt):
            if score > 50:
                return (
                    self._resolve(self.CODING_SPECIALIST, "coding"),
                    f"Code query with complexity {score:.0f} - using specialized coding model",
                )
            return (
                self._resolve(self.BALANCED_CODING, "coding"),
                f"Code query with complexity {score:.0f} - using balanced coding model",
            )
        if score > 70:
            return (
                self._resolve(self.TOP_TIER, "reasoning"),
                f"High complexity ({score:.0f}) - using reasoning model",
            )
        if score > 40:
            return (
                self._resolve(self.BALANCED, "balanced"),
                f"Medium complexity ({score:.0f}) - using balanced model",
            )
        if score > 20:
            return (
                self._resolve(self.FAST_CHEAP, "fast"),
                f"Low complexity ({score:.0f}) - using fast cheap model",
            )
        return (
            self._resolve(self.CHEAPEST, "simple"),
            f"Very low complexity ({score:.0f}) - using local model",
        )

    def build_fallback_chain(self, primary: ModelDescriptor) -> list[ModelDescriptor]:
        """Cheaper same-provider models first, then free local models."""
        same_provider = sorted(
            (
                m for m in self._catalog.by_provider(primary.provider)
                if m != primary and m.cost_per_1k_tokens < primary.cost_per_1k_tokens
            ),
            key=lambda m: m.cost_per_1k_tokens,
        )
        fallbacks = same_provider[:2]

        local = [
            m for m in self._catalog.by_provider(Provider.OLLAMA)
            if m.is_free and m != primary and m not in fallbacks
        ]
        fallbacks.extend(local[:2])
        return fallbacks

    def evaluate(self, context: RoutingContext) -> RoutingDecision:
        """Synchronous core of :meth:`decide`."""
        prompt = context.prompt

        if is_heartbeat(prompt):
            model = self._free_model()
            return RoutingDecision(
                model=model,
                confidence=0.99,
                rationale="Heartbeat pattern detected - using cheapest local model",
                estimated_cost=estimate_cost(model),
            )

        if is_simple_query(prompt):
            model = self._free_model()
            cloud = self._catalog.get(self.CHEAP_CLOUD_MODEL)
            return RoutingDecision(
                model=model,
                confidence=0.90,
                rationale="Simple greeting/command - using local fast model",
                estimated_cost=estimate_cost(model),
                fallback_chain=(cloud,) if cloud and context.allows_fallback else (),
            )

        score = calculate_complexity(prompt)
        model, rationale = self._select(prompt, score)
        confidence = max(0.5, 1 - score / 200)

        preferences = context.preferences
        if (
            preferences is not None
            and preferences.preferred_provider is not None
            and model.provider != preferences.preferred_provider
        ):
            preferred = self._catalog.cheapest_for_provider(preferences.preferred_provider)
            if preferred is not None:
                model = preferred
                rationale += f" (user preferred {preferences.preferred_provider.value})"

        if context.requested_model:
            explicit = self._catalog.lookup(context.requested_model)
            if explicit is not None:
                model = explicit
                confidence = 1.0
                rationale = f"Explicit model request: {context.requested_model}"

        logger.debug(f"Heuristic routed to {model.model} (score={score:.1f})")

        return RoutingDecision(
            model=model,
            confidence=confidence,
            rationale=rationale,
            estimated_cost=estimate_cost(model),
            fallback_chain=(
                tuple(self.build_fallback_chain(model)) if context.allows_fallback else ()
            ),
        )

    async def decide(self, context: RoutingContext) -> RoutingDecision:
        return self.evaluate(context)

    def get_confidence(self, context: RoutingContext) -> float:
        prompt = context.prompt
        if is_heartbeat(prompt):
            return 0.99
        if is_simple_query(prompt):
            return 0.9
        return max(0.5, 1 - calculate_complexity(prompt) / 200)
