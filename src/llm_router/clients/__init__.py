"""Clients for models consulted while routing."""

from llm_router.clients.ollama import GenerationBackend, OllamaClient

__all__ = [
    "GenerationBackend",
    "OllamaClient",
]
