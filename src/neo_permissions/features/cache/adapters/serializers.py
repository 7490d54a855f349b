"""Value serializers for remote cache tiers."""

import json
from typing import Any

from ....core.exceptions.infrastructure import CacheSerializationError


class JsonSerializer:
    """UTF-8 JSON serializer for plain values (bools, strings, lists, dicts)."""

    def encode(self, value: Any) -> bytes:
        try:
            return json.dumps(value, separators=(",", ":"), sort_keys=True).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise CacheSerializationError(f"Cannot encode cache value: {e}")

    def decode(self, payload: bytes) -> Any:
        try:
            if isinstance(payload, bytes):
                payload = payload.decode("utf-8")
            return json.loads(payload)
        except ValueError as e:
            raise CacheSerializationError(f"Cannot decode cache value: {e}")
