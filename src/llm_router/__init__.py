"""Cost-aware routing of LLM requests to downstream models."""

__version__ = "0.1.0"
