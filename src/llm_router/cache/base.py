"""Cache entry type."""

from dataclasses import dataclass
from typing import Any


@dataclass
class CacheEntry:
    """
    A cached value with its insertion time.

    Attributes:
        key: Cache key (prompt fingerprint)
        value: Cached data
        inserted_at: Clock reading when the entry was written
        ttl_seconds: Time-to-live in seconds
    """

    key: str
    value: Any
    inserted_at: float
    ttl_seconds: float

    def age_seconds(self, now: float) -> float:
        """Get age of entry in seconds."""
        return now - self.inserted_at

    def is_expired(self, now: float) -> bool:
        """An entry is valid only while its age is below the TTL."""
        return self.age_seconds(now) >= self.ttl_seconds

    def ttl_remaining(self, now: float) -> float:
        """Get remaining TTL in seconds (never negative)."""
        return max(0.0, self.ttl_seconds - self.age_seconds(now))
