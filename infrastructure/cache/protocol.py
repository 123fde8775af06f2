"""TTL cache contract shared by the memory and Redis backends.

Values must be JSON-serialisable so both backends return identical results
for the same key.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol


class TTLCache(Protocol):
    async def has(self, key: str) -> bool: ...

    async def get(self, key: str) -> Optional[Any]: ...

    async def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None: ...

    async def delete(self, key: str) -> None: ...
