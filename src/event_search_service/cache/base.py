"""Cache service contract and key generation."""

import hashlib
import json
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class CacheService(Protocol):
    """Generic async key/value cache with per-entry TTL.

    Implementations must never raise from ``get``/``set``: a failed read is a
    miss and a failed write is reported as ``False``.
    """

    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> bool: ...

    async def delete(self, key: str) -> bool: ...

    async def invalidate_pattern(self, pattern: str) -> int: ...


def generate_cache_key(operation: str, params: dict[str, Any]) -> str:
    """
    Generate a consistent, fixed-length cache key from operation and parameters.

    Args:
        operation: The operation type (e.g., 'search', 'embedding')
        params: Dictionary of parameters identifying the entry

    Returns:
        Cache key string in format: operation:<sha256 prefix>
    """
    # Sorted keys so parameter order never changes the key
    key_base = json.dumps(params, sort_keys=True, separators=(",", ":"), default=str)
    key_hash = hashlib.sha256(key_base.encode("utf-8")).hexdigest()[:32]
    return f"{operation}:{key_hash}"
