"""
Classification cache.

Bounded, time-expiring store mapping prompt fingerprints to previously
computed classifications.
"""

from llm_router.cache.base import CacheEntry
from llm_router.cache.memory import ClassificationCache

__all__ = [
    "CacheEntry",
    "ClassificationCache",
]
