"""Pytest configuration and fixtures."""

import pytest

from llm_router.catalog import ModelCatalog
from llm_router.config import Settings
from llm_router.engines.heuristic import HeuristicEngine
from stubs import FakeClock, StubBackend, classification_json


@pytest.fixture
def catalog() -> ModelCatalog:
    """Default model catalog."""
    return ModelCatalog()


@pytest.fixture
def heuristic(catalog: ModelCatalog) -> HeuristicEngine:
    """Heuristic engine over the default catalog."""
    return HeuristicEngine(catalog)


@pytest.fixture
def clock() -> FakeClock:
    """Manually advanced clock starting at t=1000."""
    return FakeClock()


@pytest.fixture
def stub_backend() -> StubBackend:
    """Fast model stub answering with a 'simple' classification."""
    return StubBackend(
        response="Sure! " + classification_json("simple", 0.9, "greeting", ["hello"]) + " done"
    )


@pytest.fixture
def failing_backend() -> StubBackend:
    """Fast model stub that always errors."""
    return StubBackend(error=ConnectionError("Connection refused"))


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from .env files."""
    return Settings(_env_file=None)
