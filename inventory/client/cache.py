import fnmatch
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from inventory.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """A cached payload and the moment it was stored."""
    payload: Any
    timestamp: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.timestamp > self.ttl


class ResponseCache:
    """
    In-memory cache of API payloads for the client data layer.

    Keys are built from the endpoint and its query string. Expired entries
    are not swept; ``get`` drops them when it finds them.

    Args:
        ttl: Default lifetime of an entry in seconds
        clock: Time source, monotonic by default
    """

    def __init__(self, ttl: float = None, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl or settings.CLIENT_CACHE_TTL
        self.clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> Optional[Any]:
        """Return the payload under key, or None if absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self.clock()):
            del self._entries[key]
            return None
        return entry.payload

    def set(self, key: str, payload: Any, ttl: float = None) -> None:
        self._entries[key] = CacheEntry(payload, self.clock(), ttl or self.ttl)

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def delete_pattern(self, pattern: str) -> int:
        """
        Drop every key matching a glob pattern (e.g. 'products_*').

        Returns:
            Number of entries removed
        """
        keys = [key for key in self._entries if fnmatch.fnmatchcase(key, pattern)]
        for key in keys:
            del self._entries[key]
        if keys:
            logger.debug(f"Dropped {len(keys)} cached responses matching {pattern}")
        return len(keys)

    def clear(self) -> None:
        self._entries.clear()
