"""
Cache port used by application services.

Infrastructure's RedisClient satisfies this protocol; tests use an in-memory fake.
"""
from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable


@runtime_checkable
class CachePort(Protocol):
    async def get(self, key: str, default: Any = None) -> Any: ...

    async def set(self, key: str, value: Any, ttl: Optional[int] = None, nx: bool = False) -> bool: ...
