"""
Redis-backed cache for the product listing.

The cache is a recomputable projection of the store: every failure is
reported as CacheUnavailable so callers can fall back or carry on.
"""

import logging
import os
from typing import Optional

import redis
from fastapi import Request

from .errors import CacheUnavailable

logger = logging.getLogger(__name__)

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
CACHE_TIMEOUT = float(os.getenv("CACHE_TIMEOUT", "1.0"))
PRODUCTS_CACHE_KEY = os.getenv("PRODUCTS_CACHE_KEY", "products")
PRODUCTS_CACHE_TTL = int(os.getenv("PRODUCTS_CACHE_TTL", "300"))


def make_redis(url: str = REDIS_URL) -> redis.Redis:
    return redis.Redis.from_url(
        url,
        socket_timeout=CACHE_TIMEOUT,
        socket_connect_timeout=CACHE_TIMEOUT,
    )


class ProductCache:
    def __init__(self, client: redis.Redis, key: str = PRODUCTS_CACHE_KEY, ttl: int = PRODUCTS_CACHE_TTL):
        self.client = client
        self.key = key
        self.ttl = ttl

    def get_listing(self) -> Optional[bytes]:
        try:
            return self.client.get(self.key)
        except redis.RedisError as e:
            raise CacheUnavailable(f"get {self.key}: {e}") from e

    def store_listing(self, payload: bytes) -> None:
        try:
            self.client.setex(self.key, self.ttl, payload)
        except redis.RedisError as e:
            raise CacheUnavailable(f"setex {self.key}: {e}") from e

    def invalidate_listing(self) -> None:
        try:
            self.client.delete(self.key)
        except redis.RedisError as e:
            raise CacheUnavailable(f"delete {self.key}: {e}") from e

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except redis.RedisError as e:
            raise CacheUnavailable(f"ping: {e}") from e

    def close(self) -> None:
        self.client.close()


def get_cache(request: Request) -> ProductCache:
    """FastAPI dependency: the process-wide cache handle built at startup."""
    return request.app.state.cache
