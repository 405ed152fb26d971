# tests/test_health.py
"""
Health Checker Tests - Database and Cache Probes

Files that USE this module:
- pytest (test runner executes these tests)

Files that this module USES:
- cantorx.application.health (HealthChecker under test)
- unittest.mock (Mock/AsyncMock for failing dependencies)
"""
import time

import pytest

from unittest.mock import AsyncMock, Mock

from cantorx.application.health import HealthChecker
from cantorx.domain.errors import CacheError, StoreError


class TestHealthChecker:
    @pytest.mark.asyncio
    async def test_healthy(self, db, cache):
        status = await HealthChecker(db, cache).check()

        assert status.is_healthy
        assert status.failing is None
        assert status.message == "ok"

    @pytest.mark.asyncio
    async def test_database_error(self, cache):
        db = Mock()
        db.ping.side_effect = StoreError("database unavailable")

        status = await HealthChecker(db, cache).check()

        assert not status.is_healthy
        assert status.failing == "database"
        assert status.message == "database unavailable"

    @pytest.mark.asyncio
    async def test_database_timeout(self, cache):
        db = Mock()
        db.ping.side_effect = lambda: time.sleep(0.3)

        status = await HealthChecker(db, cache, timeout=0.05).check()

        assert status.failing == "database"
        assert status.message == "timeout"

    @pytest.mark.asyncio
    async def test_cache_error_checked_after_database(self, db):
        cache = Mock()
        cache.ping = AsyncMock(side_effect=CacheError("cache unavailable"))

        status = await HealthChecker(db, cache).check()

        assert status.failing == "cache"
        cache.ping.assert_awaited_once()
