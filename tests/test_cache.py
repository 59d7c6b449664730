from unittest.mock import MagicMock

import pytest
import redis

from storefront.cache import ProductCache
from storefront.errors import CacheUnavailable


@pytest.fixture
def client_mock():
    return MagicMock()


def test_store_listing_uses_ttl(client_mock):
    ProductCache(client_mock).store_listing(b"[]")
    client_mock.setex.assert_called_once_with("products", 300, b"[]")


def test_custom_key_and_ttl(client_mock):
    cache = ProductCache(client_mock, key="catalog:listing", ttl=60)
    cache.store_listing(b"[]")
    cache.invalidate_listing()
    client_mock.setex.assert_called_once_with("catalog:listing", 60, b"[]")
    client_mock.delete.assert_called_once_with("catalog:listing")


def test_get_listing_miss(client_mock):
    client_mock.get.return_value = None
    assert ProductCache(client_mock).get_listing() is None


@pytest.mark.parametrize("method, args", [
    ("get_listing", ()),
    ("store_listing", (b"[]",)),
    ("invalidate_listing", ()),
    ("ping", ()),
])
def test_redis_errors_become_cache_unavailable(client_mock, method, args):
    for name in ("get", "setex", "delete", "ping"):
        getattr(client_mock, name).side_effect = redis.ConnectionError("refused")

    with pytest.raises(CacheUnavailable):
        getattr(ProductCache(client_mock), method)(*args)
