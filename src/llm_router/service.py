"""Process-wide routing handle tying catalog, engines and logger together."""

import logging
import time

from llm_router.analytics import RoutingLogger
from llm_router.catalog import ModelCatalog, default_catalog
from llm_router.clients.ollama import GenerationBackend
from llm_router.config import Settings, get_settings
from llm_router.engines.base import RoutingContext, RoutingDecision
from llm_router.engines.heuristic import HeuristicEngine
from llm_router.engines.llm_classifier import LLMClassifierEngine, LLMClassifierOptions
from llm_router.engines.registry import EngineRegistry

logger = logging.getLogger(__name__)


def build_registry(
    settings: Settings,
    catalog: ModelCatalog,
    backend: GenerationBackend | None = None,
) -> EngineRegistry:
    """
    Build the standard registry.

    The heuristic engine is registered eagerly; the LLM classifier is
    registered as a factory so its HTTP client is only created when used.
    """
    heuristic = HeuristicEngine(catalog)
    registry = EngineRegistry(fallback_engine=heuristic, default_engine=settings.default_engine)
    registry.register(heuristic.name, heuristic, priority=settings.heuristic_priority)

    if settings.llm_classifier_enabled:
        options = LLMClassifierOptions.from_settings(settings)
        registry.register_factory(
            LLMClassifierEngine.name,
            lambda: LLMClassifierEngine(options=options, catalog=catalog, backend=backend),
            priority=settings.llm_classifier_priority,
        )
    return registry


class RouterService:
    """
    Single routing handle for the process.

    Built once at startup and passed to whatever needs to route; there are
    no module-level registries or loggers.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        catalog: ModelCatalog | None = None,
        registry: EngineRegistry | None = None,
        routing_logger: RoutingLogger | None = None,
        backend: GenerationBackend | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.catalog = catalog or default_catalog
        self.registry = registry or build_registry(self.settings, self.catalog, backend)
        self.routing_logger = routing_logger or RoutingLogger(
            catalog=self.catalog,
            baseline_model=self.settings.baseline_model,
            max_entries=self.settings.routing_log_max_entries,
        )

    async def route(
        self,
        context: RoutingContext,
        engine: str | None = None,
    ) -> RoutingDecision:
        """
        Produce a decision and record it.

        Args:
            context: Routing context for the request
            engine: Engine name to use exclusively; auto-route when omitted

        Raises:
            RoutingError: If a named engine is unknown or yields nothing
        """
        start_time = time.perf_counter()
        if engine is None:
            decision = await self.registry.auto_route(context)
        else:
            decision = await self.registry.route(context, engine)
        latency_ms = (time.perf_counter() - start_time) * 1000

        self.routing_logger.log(context, decision, latency_ms)
        return decision

    async def close(self) -> None:
        """Release engine resources such as HTTP clients."""
        for engine in self.registry.instances():
            close = getattr(engine, "close", None)
            if callable(close):
                await close()
