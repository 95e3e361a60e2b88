"""Tests for the Redis cache service."""
import json
from unittest.mock import MagicMock

import redis

from warehouse.utils.cache import CacheService


def _service():
    return CacheService(MagicMock(), ttl=120)


def test_get_hit_decodes_json():
    cache = _service()
    cache.client.get.return_value = json.dumps({"total": 3})

    assert cache.get("report", "dashboard:10") == {"total": 3}
    cache.client.get.assert_called_once_with("report:dashboard:10")


def test_get_miss_returns_none():
    cache = _service()
    cache.client.get.return_value = None

    assert cache.get("report", "missing") is None


def test_get_redis_error_is_a_miss():
    """Test Redis outages never fail the caller."""
    cache = _service()
    cache.client.get.side_effect = redis.ConnectionError("down")

    assert cache.get("report", "dashboard:10") is None


def test_set_uses_default_ttl():
    cache = _service()

    assert cache.set("report", "low_stock:5", [{"id": 1}]) is True
    cache.client.setex.assert_called_once_with("report:low_stock:5", 120, json.dumps([{"id": 1}]))


def test_set_redis_error_returns_false():
    cache = _service()
    cache.client.setex.side_effect = redis.TimeoutError("slow")

    assert cache.set("report", "key", {"a": 1}, ttl=5) is False


def test_invalidate_reports_deletes_matching_keys():
    cache = _service()
    cache.client.scan_iter.return_value = iter(["report:stock_by_category", "report:dashboard:10"])
    cache.client.delete.return_value = 2

    assert cache.invalidate_reports() == 2
    cache.client.scan_iter.assert_called_once_with(match="report:*")
    cache.client.delete.assert_called_once_with("report:stock_by_category", "report:dashboard:10")


def test_invalidate_reports_with_nothing_cached():
    cache = _service()
    cache.client.scan_iter.return_value = iter([])

    assert cache.invalidate_reports() == 0
    cache.client.delete.assert_not_called()


def test_invalidate_reports_redis_error():
    cache = _service()
    cache.client.scan_iter.side_effect = redis.ConnectionError("down")

    assert cache.invalidate_reports() == 0
