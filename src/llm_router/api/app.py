"""FastAPI application for the router."""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from llm_router import __version__
from llm_router.api.routes import router as api_router
from llm_router.service import RouterService

logger = logging.getLogger(__name__)


def create_app(service: RouterService | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        service: Routing handle to serve; built from settings if omitted
    """
    service = service or RouterService()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Starting LLM Router API...")
        yield
        logger.info("Shutting down LLM Router API...")
        await service.close()

    app = FastAPI(
        title="LLM Router",
        description="Cost-aware model selection for LLM requests",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request timing middleware
    @app.middleware("http")
    async def add_timing_header(request: Request, call_next):
        start_time = time.perf_counter()
        response = await call_next(request)
        process_time = (time.perf_counter() - start_time) * 1000
        response.headers["X-Process-Time-Ms"] = f"{process_time:.2f}"
        return response

    app.include_router(api_router, prefix="/v1")

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "version": __version__,
            "engine": service.registry.default_engine,
        }

    @app.get("/")
    async def root():
        return {
            "name": "LLM Router",
            "version": __version__,
            "docs": "/docs",
            "openapi": "/openapi.json",
        }

    return app


# Create app instance
app = create_app()
