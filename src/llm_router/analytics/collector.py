"""
Routing decision collector.

Records routing decisions with their estimated cost and the savings
against a baseline model (what the caller would have paid without
routing).
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from llm_router.catalog import ModelCatalog, ModelDescriptor, default_catalog
from llm_router.engines.base import ESTIMATED_TOKENS_THOUSANDS, RoutingContext, RoutingDecision

logger = logging.getLogger(__name__)

UNKNOWN_BASELINE_COST_PER_1K = 5.0
PROMPT_PREVIEW_LENGTH = 200


@dataclass
class RoutingLogEntry:
    """A single routing decision event."""

    timestamp: datetime
    request_id: str
    prompt: str
    prompt_length: int
    selected: ModelDescriptor
    confidence: float
    rationale: str
    estimated_cost: float
    baseline_cost: float
    estimated_savings: float
    savings_percent: float
    latency_ms: float
    was_fallback: bool = False

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "request_id": self.request_id,
            "prompt": self.prompt,
            "prompt_length": self.prompt_length,
            "provider": self.selected.provider.value,
            "model": self.selected.model,
            "confidence": self.confidence,
            "rationale": self.rationale,
            "estimated_cost": self.estimated_cost,
            "baseline_cost": self.baseline_cost,
            "estimated_savings": self.estimated_savings,
            "savings_percent": self.savings_percent,
            "latency_ms": self.latency_ms,
            "was_fallback": self.was_fallback,
        }


@dataclass
class CostStats:
    """Aggregated cost statistics."""

    total_requests: int = 0
    total_estimated_cost: float = 0.0
    total_baseline_cost: float = 0.0
    total_savings: float = 0.0
    average_savings_percent: float = 0.0
    by_provider: dict[str, int] = field(default_factory=dict)
    by_model: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "total_estimated_cost": self.total_estimated_cost,
            "total_baseline_cost": self.total_baseline_cost,
            "total_savings": self.total_savings,
            "average_savings_percent": self.average_savings_percent,
            "by_provider": dict(self.by_provider),
            "by_model": dict(self.by_model),
        }


class RoutingLogger:
    """
    Collects routing decisions and cost savings in memory.

    Each decision is also written as one INFO log line.
    """

    def __init__(
        self,
        catalog: ModelCatalog | None = None,
        baseline_model: str = "claude-opus",
        max_entries: int = 10000,
    ) -> None:
        self._catalog = catalog or default_catalog
        self.baseline_model = baseline_model
        self.max_entries = max_entries
        self._logs: list[RoutingLogEntry] = []
        self._stats = CostStats()

    def baseline_cost(self, model_name: str) -> float:
        """Cost of a request had it gone to ``model_name``."""
        model = self._catalog.lookup(model_name)
        cost_per_1k = model.cost_per_1k_tokens if model else UNKNOWN_BASELINE_COST_PER_1K
        return cost_per_1k * ESTIMATED_TOKENS_THOUSANDS

    def log_decision(
        self,
        decision: RoutingDecision,
        baseline_model: str,
        latency_ms: float,
        request_id: str | None = None,
        was_fallback: bool = False,
        prompt: str = "",
    ) -> RoutingLogEntry:
        """
        Record a routing decision.

        Args:
            decision: The routing decision
            baseline_model: Model that would have been used without routing
            latency_ms: Time spent deciding
            request_id: Unique request identifier (generated if omitted)
            was_fallback: Whether the primary model had already failed
            prompt: Prompt text; only a truncated preview is stored

        Returns:
            The stored log entry
        """
        baseline_cost = self.baseline_cost(baseline_model)
        savings = baseline_cost - decision.estimated_cost
        savings_percent = (savings / baseline_cost) * 100 if baseline_cost > 0 else 0.0

        preview = prompt[:PROMPT_PREVIEW_LENGTH]
        if len(prompt) > PROMPT_PREVIEW_LENGTH:
            preview += "..."

        entry = RoutingLogEntry(
            timestamp=datetime.now(timezone.utc),
            request_id=request_id or str(uuid.uuid4()),
            prompt=preview,
            prompt_length=len(prompt),
            selected=decision.model,
            confidence=decision.confidence,
            rationale=decision.rationale,
            estimated_cost=decision.estimated_cost,
            baseline_cost=baseline_cost,
            estimated_savings=savings,
            savings_percent=savings_percent,
            latency_ms=latency_ms,
            was_fallback=was_fallback,
        )

        self._emit(entry)
        self._logs.append(entry)
        self._trim_logs()
        self._update_stats(entry)
        return entry

    def log(
        self,
        context: RoutingContext,
        decision: RoutingDecision,
        latency_ms: float,
    ) -> RoutingLogEntry:
        """Record a decision, using the requested model as baseline when present."""
        return self.log_decision(
            decision,
            baseline_model=context.requested_model or self.baseline_model,
            latency_ms=latency_ms,
            prompt=context.prompt,
        )

    def _emit(self, entry: RoutingLogEntry) -> None:
        if entry.estimated_savings > 0:
            savings = f"saved ${entry.estimated_savings:.4f} ({entry.savings_percent:.1f}%)"
        elif entry.estimated_savings < 0:
            savings = f"extra ${abs(entry.estimated_savings):.4f}"
        else:
            savings = "free"

        rationale = entry.rationale[:60] + ("..." if len(entry.rationale) > 60 else "")
        logger.info(
            f"{entry.selected.provider.value}/{entry.selected.model} "
            f"(${entry.estimated_cost:.4f}) {savings} "
            f"| {entry.latency_ms:.1f}ms | {rationale}"
        )

    def _trim_logs(self) -> None:
        if len(self._logs) > self.max_entries:
            del self._logs[: len(self._logs) - self.max_entries]

    def _update_stats(self, entry: RoutingLogEntry) -> None:
        stats = self._stats
        stats.total_requests += 1
        stats.total_estimated_cost += entry.estimated_cost
        stats.total_baseline_cost += entry.baseline_cost
        stats.total_savings += entry.estimated_savings
        if stats.total_baseline_cost > 0:
            stats.average_savings_percent = (
                stats.total_savings / stats.total_baseline_cost
            ) * 100

        provider = entry.selected.provider.value
        stats.by_provider[provider] = stats.by_provider.get(provider, 0) + 1
        model = entry.selected.model
        stats.by_model[model] = stats.by_model.get(model, 0) + 1

    def get_stats(self) -> CostStats:
        """Get a copy of the current stats."""
        s = self._stats
        return CostStats(
            total_requests=s.total_requests,
            total_estimated_cost=s.total_estimated_cost,
            total_baseline_cost=s.total_baseline_cost,
            total_savings=s.total_savings,
            average_savings_percent=s.average_savings_percent,
            by_provider=dict(s.by_provider),
            by_model=dict(s.by_model),
        )

    def get_logs(self, limit: int = 100) -> list[RoutingLogEntry]:
        """Get the most recent entries, newest first."""
        if limit <= 0:
            return []
        return list(reversed(self._logs[-limit:]))

    def get_summary(self) -> str:
        """Get formatted summary for display."""
        s = self._stats
        top_models = sorted(s.by_model.items(), key=lambda item: item[1], reverse=True)[:5]
        lines = [
            "Routing Stats:",
            f"  Requests: {s.total_requests:,}",
            f"  Total Cost: ${s.total_estimated_cost:.4f}",
            f"  Without Router: ${s.total_baseline_cost:.4f}",
            f"  SAVED: ${s.total_savings:.4f} ({s.average_savings_percent:.1f}%)",
            "",
            "By Provider:",
            *(f"  {provider}: {count}" for provider, count in s.by_provider.items()),
            "",
            "Top Models:",
            *(f"  {model}: {count}" for model, count in top_models),
        ]
        return "\n".join(lines)

    def reset(self) -> None:
        """Reset logs and stats."""
        self._logs = []
        self._stats = CostStats()
