"""Decision engine registry with priority-ordered arbitration."""

import inspect
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from llm_router.engines.base import DecisionEngine, RoutingContext, RoutingDecision
from llm_router.engines.heuristic import HeuristicEngine
from llm_router.exceptions import EngineNotFoundError, NoDecisionError

logger = logging.getLogger(__name__)

EngineFactory = Callable[[], DecisionEngine]

MIN_ENGINE_CONFIDENCE = 0.3


@dataclass
class EngineRegistration:
    """A named engine, or the factory that will build it on first use."""

    name: str
    priority: int = 0
    enabled: bool = True
    engine: DecisionEngine | None = None
    factory: EngineFactory | None = None

    @property
    def is_instantiated(self) -> bool:
        return self.engine is not None


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class EngineRegistry:
    """
    Registry of decision engines.

    Engines are tried in descending priority order by :meth:`auto_route`;
    the first one to return a decision wins. The heuristic engine is the
    unconditional last resort.
    """

    def __init__(
        self,
        fallback_engine: HeuristicEngine | None = None,
        default_engine: str = "default",
    ) -> None:
        """
        Initialize an empty registry.

        Args:
            fallback_engine: Engine used when no registered engine decides
            default_engine: Engine name used by route() when none is given
        """
        self._registrations: dict[str, EngineRegistration] = {}
        self._lock = threading.RLock()
        self._fallback = fallback_engine or HeuristicEngine()
        self.default_engine = default_engine

    @property
    def fallback_engine(self) -> HeuristicEngine:
        return self._fallback

    def register(
        self,
        name: str,
        engine: DecisionEngine,
        priority: int = 0,
        enabled: bool = True,
    ) -> None:
        """Register an engine instance, replacing any previous entry."""
        with self._lock:
            self._registrations[name] = EngineRegistration(
                name=name, priority=priority, enabled=enabled, engine=engine
            )
        logger.debug(f"Registered engine {name} (priority={priority})")

    def register_factory(
        self,
        name: str,
        factory: EngineFactory,
        priority: int = 0,
        enabled: bool = True,
    ) -> None:
        """Register a factory; it runs at most once, on first lookup."""
        with self._lock:
            self._registrations[name] = EngineRegistration(
                name=name, priority=priority, enabled=enabled, factory=factory
            )
        logger.debug(f"Registered engine factory {name} (priority={priority})")

    def unregister(self, name: str) -> bool:
        """
        Remove an engine and its factory.

        Returns:
            True if something was registered under the name
        """
        with self._lock:
            return self._registrations.pop(name, None) is not None

    def get(self, name: str) -> DecisionEngine | None:
        """Get an engine by name, building it from its factory if needed."""
        with self._lock:
            registration = self._registrations.get(name)
            if registration is None:
                return None
            if registration.engine is None and registration.factory is not None:
                registration.engine = registration.factory()
                logger.info(f"Instantiated engine {name} from factory")
            return registration.engine

    def set_enabled(self, name: str, enabled: bool) -> None:
        """Enable or disable an engine for auto-routing."""
        with self._lock:
            registration = self._registrations.get(name)
            if registration is None:
                raise EngineNotFoundError(name)
            registration.enabled = enabled

    def __contains__(self, name: str) -> bool:
        return name in self._registrations

    def __len__(self) -> int:
        return len(self._registrations)

    def names(self) -> list[str]:
        """Registered names in descending priority order."""
        return [r.name for r in self._snapshot()]

    def instances(self) -> list[DecisionEngine]:
        """Engines built so far; pending factories are not invoked."""
        return [r.engine for r in self._snapshot() if r.engine is not None]

    def list_engines(self) -> list[dict[str, Any]]:
        """Describe every registration, highest priority first."""
        return [
            {
                "name": r.name,
                "version": getattr(r.engine, "version", None),
                "priority": r.priority,
                "enabled": r.enabled,
                "instantiated": r.is_instantiated,
            }
            for r in self._snapshot()
        ]

    def _snapshot(self) -> list[EngineRegistration]:
        with self._lock:
            registrations = list(self._registrations.values())
        # sorted() is stable, so equal priorities keep registration order
        return sorted(registrations, key=lambda r: r.priority, reverse=True)

    async def route(
        self,
        context: RoutingContext,
        name: str | None = None,
    ) -> RoutingDecision:
        """
        Route with exactly one named engine.

        Raises:
            EngineNotFoundError: If the name is not registered
            NoDecisionError: If the engine returned no decision
        """
        name = name or self.default_engine
        engine = self.get(name)
        if engine is None:
            raise EngineNotFoundError(name)

        decision = await _resolve(engine.decide(context))
        if decision is None:
            raise NoDecisionError(f"Engine {name} returned no decision")
        return decision

    async def auto_route(self, context: RoutingContext) -> RoutingDecision:
        """
        Route using the best available engine.

        Tries enabled engines by priority until one returns a decision.
        Engines whose confidence hint is below 0.3 are skipped without
        calling ``decide``.

        Raises:
            NoDecisionError: If even the heuristic fallback returns nothing
        """
        for registration in self._snapshot():
            if not registration.enabled:
                continue

            engine = self.get(registration.name)
            if engine is None:
                # Unregistered since the snapshot was taken
                continue

            get_confidence = getattr(engine, "get_confidence", None)
            if callable(get_confidence):
                confidence = await _resolve(get_confidence(context))
                if confidence < MIN_ENGINE_CONFIDENCE:
                    logger.debug(
                        f"Skipping engine {registration.name} (confidence={confidence:.2f})"
                    )
                    continue

            decision = await _resolve(engine.decide(context))
            if decision is not None:
                logger.debug(f"Engine {registration.name} routed to {decision.model.model}")
                return decision

        logger.debug("No registered engine decided, using heuristic fallback")
        decision = await self._fallback.decide(context)
        if decision is None:
            raise NoDecisionError("No engine could handle the request")
        return decision
