# src/cantorx/application/health.py
"""
Health Checker - Dependency Probes

Checks the subsystems the read path depends on: the database (sources and
history) and the hot cache. Used by the ``/healthz`` endpoint.

Files that USE this module:
- cantorx.adapters.web.api (/healthz)

Files that this module USES:
- cantorx.adapters.persistence.database (ping)
- cantorx.adapters.cache (ping)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from cantorx.adapters.cache import HotCache
from cantorx.adapters.persistence import Database
from cantorx.domain.errors import CantorXError

logger = logging.getLogger(__name__)

PROBE_TIMEOUT_SECONDS = 2.0


@dataclass
class HealthStatus:
    """Represents the health status of the service."""
    is_healthy: bool
    last_check: datetime
    failing: Optional[str] = None  # "database" or "cache"
    message: str = "ok"


class HealthChecker:
    """Probes the database, then the cache; reports the first failure."""

    def __init__(self, db: Database, cache: HotCache, timeout: float = PROBE_TIMEOUT_SECONDS):
        self.db = db
        self.cache = cache
        self.timeout = timeout

    async def check(self) -> HealthStatus:
        now = datetime.now(timezone.utc)
        try:
            await asyncio.wait_for(asyncio.to_thread(self.db.ping), timeout=self.timeout)
        except (asyncio.TimeoutError, CantorXError) as e:
            logger.warning("Health check: database unavailable: %r", e)
            return HealthStatus(is_healthy=False, last_check=now, failing="database", message=str(e) or "timeout")

        try:
            await asyncio.wait_for(self.cache.ping(), timeout=self.timeout)
        except (asyncio.TimeoutError, CantorXError) as e:
            logger.warning("Health check: cache unavailable: %r", e)
            return HealthStatus(is_healthy=False, last_check=now, failing="cache", message=str(e) or "timeout")

        return HealthStatus(is_healthy=True, last_check=now)
