"""Protocol interfaces for cache tiers.

A cache tier is a key-value store with TTLs and prefix invalidation.
The resolution engine only talks to the tiered cache, which composes a
local tier and an optional shared tier through this contract.
"""

from abc import abstractmethod
from typing import Any, Optional, Protocol, Tuple, runtime_checkable


@runtime_checkable
class CacheTier(Protocol):
    """One level of the permission cache."""

    name: str

    @abstractmethod
    async def connect(self) -> None:
        """Prepare the tier for use."""
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        """Release tier resources."""
        ...

    @abstractmethod
    async def get(self, key: str) -> Tuple[Any, bool]:
        """Return ``(value, found)``; expired entries are not found."""
        ...

    @abstractmethod
    async def get_with_ttl(self, key: str) -> Tuple[Any, bool, Optional[float]]:
        """Return ``(value, found, seconds_left)``; ``seconds_left`` is None without expiry."""
        ...

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store a value with an optional TTL in seconds (fractions allowed)."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a key and return whether it existed."""
        ...

    @abstractmethod
    async def invalidate_prefix(self, prefix: str) -> int:
        """Delete every key starting with ``prefix``; return the count."""
        ...

    @abstractmethod
    async def clear(self) -> None:
        """Remove every entry owned by this tier."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Check whether the tier can serve requests."""
        ...


@runtime_checkable
class CacheSerializer(Protocol):
    """Converts cache values to and from bytes for remote tiers."""

    def encode(self, value: Any) -> bytes:
        ...

    def decode(self, payload: bytes) -> Any:
        ...


@runtime_checkable
class InvalidationBroadcaster(Protocol):
    """Fans local invalidations out to peer instances."""

    node_id: str

    @abstractmethod
    async def publish_prefix(self, prefix: str) -> None:
        ...

    @abstractmethod
    async def publish_key(self, key: str) -> None:
        ...

    @abstractmethod
    async def publish_flush(self) -> None:
        ...

    @abstractmethod
    async def start(self, handler, on_resync=None) -> None:
        """Begin delivering peer messages to ``handler``.

        ``on_resync`` is awaited whenever messages may have been missed.
        """
        ...

    @abstractmethod
    async def stop(self) -> None:
        ...
