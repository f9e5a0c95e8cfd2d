"""API package for the router."""

from llm_router.api.app import app, create_app
from llm_router.api.routes import router

__all__ = ["app", "create_app", "router"]
