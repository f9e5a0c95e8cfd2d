"""Main entry point for the router application."""

import logging

import uvicorn

from llm_router.config import get_settings


def main() -> None:
    """Configure logging and serve the API."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger = logging.getLogger(__name__)
    logger.info(f"Starting LLM Router on {settings.api_host}:{settings.api_port}")

    from llm_router.api.app import app

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
