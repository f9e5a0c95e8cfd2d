"""API routes for routing previews and stats."""

import logging
from typing import Any, Literal

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from llm_router.api.context import build_context
from llm_router.catalog import Provider
from llm_router.engines.base import UserPreferences
from llm_router.exceptions import EngineNotFoundError, RoutingError
from llm_router.service import RouterService

logger = logging.getLogger(__name__)
router = APIRouter()

PROMPT_PREVIEW_LENGTH = 100


def get_service(request: Request) -> RouterService:
    return request.app.state.service


# --- Request/Response Models ---

class PreferencesModel(BaseModel):
    """User routing preferences."""

    preferred_provider: Provider | None = None
    max_cost: float | None = Field(default=None, ge=0)
    min_quality: Literal["low", "medium", "high"] | None = None
    allow_fallback: bool = True

    def to_preferences(self) -> UserPreferences:
        return UserPreferences(
            preferred_provider=self.preferred_provider,
            max_cost=self.max_cost,
            min_quality=self.min_quality,
            allow_fallback=self.allow_fallback,
        )


class PreviewRequest(BaseModel):
    """Chat-completion-shaped request to route without forwarding."""

    model_config = ConfigDict(extra="allow")

    model: str | None = Field(default=None, description="Explicit model, or 'auto'")
    prompt: str | None = None
    messages: list[dict[str, Any]] = Field(default_factory=list)
    engine: str | None = Field(default=None, description="Use only this engine")
    preferences: PreferencesModel | None = None


class DecisionModel(BaseModel):
    """Routing decision summary."""

    provider: str
    model: str
    confidence: float
    rationale: str
    estimated_cost: float
    fallback_chain: list[str]


class PreviewResponse(BaseModel):
    """Routing preview response."""

    decision: DecisionModel
    prompt: str


# --- Endpoints ---

@router.get("/engines")
async def list_engines(request: Request) -> dict[str, Any]:
    """List registered decision engines."""
    return {"engines": get_service(request).registry.list_engines()}


@router.post("/preview", response_model=PreviewResponse)
async def preview(body: PreviewRequest, request: Request) -> PreviewResponse:
    """Route a request and return the decision without calling any provider."""
    service = get_service(request)
    preferences = body.preferences.to_preferences() if body.preferences else None
    context = build_context(
        body.model_dump(exclude={"preferences", "engine"}),
        request.headers,
        preferences,
    )

    if not context.prompt:
        raise HTTPException(status_code=400, detail="Could not extract prompt from request")

    try:
        decision = await service.route(context, engine=body.engine)
    except EngineNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except RoutingError as e:
        logger.error(f"Routing failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    prompt = context.prompt[:PROMPT_PREVIEW_LENGTH]
    if len(context.prompt) > PROMPT_PREVIEW_LENGTH:
        prompt += "..."

    return PreviewResponse(decision=DecisionModel(**decision.to_dict()), prompt=prompt)


@router.get("/stats")
async def get_stats(request: Request) -> dict[str, Any]:
    """Get cost statistics for routed requests."""
    routing_logger = get_service(request).routing_logger
    return {
        "stats": routing_logger.get_stats().to_dict(),
        "summary": routing_logger.get_summary(),
    }


@router.get("/logs")
async def get_logs(request: Request, limit: int = 100) -> dict[str, Any]:
    """Get recent routing decisions, newest first."""
    entries = get_service(request).routing_logger.get_logs(limit)
    return {"logs": [entry.to_dict() for entry in entries]}


@router.delete("/stats")
async def reset_stats(request: Request) -> dict[str, str]:
    """Reset routing stats and logs."""
    get_service(request).routing_logger.reset()
    return {"status": "reset"}
