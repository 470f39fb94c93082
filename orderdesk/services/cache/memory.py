"""
In-process view cache with per-entry expiry.
"""

import copy
import time
from typing import Any, Optional

from orderdesk.services.cache.base import BaseViewCache


class InMemoryViewCache(BaseViewCache):
    """Dictionary-backed cache for development and tests."""

    def __init__(self, default_ttl: int = 30):
        super().__init__(default_ttl)
        self._entries: dict[str, tuple[float, Any]] = {}

    @property
    def provider_name(self) -> str:
        return "memory"

    async def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None

        expires_at, value = entry
        if expires_at <= time.monotonic():
            self._entries.pop(key, None)
            return None
        return copy.deepcopy(value)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        now = time.monotonic()
        # Expired keys go on every write, not only when read
        for stale in [k for k, (expires_at, _) in self._entries.items() if expires_at <= now]:
            del self._entries[stale]
        self._entries[key] = (now + ttl, copy.deepcopy(value))

    async def delete(self, *keys: str) -> int:
        return sum(1 for key in keys if self._entries.pop(key, None) is not None)

    def __contains__(self, key: str) -> bool:
        return key in self._entries
