"""Routing analytics: decision log and cost savings."""

from llm_router.analytics.collector import CostStats, RoutingLogEntry, RoutingLogger

__all__ = [
    "CostStats",
    "RoutingLogEntry",
    "RoutingLogger",
]
