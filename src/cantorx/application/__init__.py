# src/cantorx/application/__init__.py
"""
Application Layer - Use Cases and Services

This package contains application services that orchestrate domain logic:
harvesting, the on-demand read path, live streaming and health probes.
"""

from cantorx.application.harvester import Harvester
from cantorx.application.health import HealthChecker, HealthStatus
from cantorx.application.rates_service import RatesService
from cantorx.application.stats import HarvestStats, stats_tracker
from cantorx.application.stream_service import StreamService

__all__ = [
    "Harvester",
    "HealthChecker",
    "HealthStatus",
    "RatesService",
    "HarvestStats",
    "stats_tracker",
    "StreamService",
]
