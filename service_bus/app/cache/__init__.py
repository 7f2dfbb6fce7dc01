"""
Cache package for the Bus Routes service.

Provides a Redis-backed cache that stores bus-route records under
deterministic selector keys, with TTL expiry and engine-side LRU eviction.
"""

from .keys import build_key, selector_key
from .redis_cache import CacheResult, RedisCache

__all__ = ["build_key", "selector_key", "CacheResult", "RedisCache"]
