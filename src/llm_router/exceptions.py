"""Exception hierarchy for the routing core."""


class RouterError(Exception):
    """Base class for all router errors."""


class RoutingError(RouterError):
    """Raised when a routing request cannot be satisfied."""


class EngineNotFoundError(RoutingError):
    """Raised when an explicitly named engine is not registered."""

    def __init__(self, engine_name: str) -> None:
        self.engine_name = engine_name
        super().__init__(f"Engine not found: {engine_name}")


class NoDecisionError(RoutingError):
    """Raised when no engine produced a routing decision."""


class ClassificationError(RouterError):
    """
    Raised when the fast classification model fails or returns garbage.

    Never escapes the two-stage classifier, which degrades to a
    default tier instead.
    """
