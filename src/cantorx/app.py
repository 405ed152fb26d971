# src/cantorx/app.py
"""
Application Entry Point - Service Initialization and Startup

This module serves as the composition root for the cantorx service.
It wires all dependencies and runs, in one asyncio loop:
- the harvester (one cycle at startup, then periodic)
- the REST API on REST_PORT
- the RPC surface on RPC_PORT

Files that USE this module:
- python -m cantorx (module entry point)
- the ``cantorx`` console script

Files that this module USES:
- cantorx.shared.logging_conf (setup_logging for logging configuration)
- cantorx.config (settings for configuration management)
- cantorx.adapters.* (database, crawlers, cache, stream log, web apps)
- cantorx.application.* (harvester, read path, stream, health, stats)
"""

from __future__ import annotations  # Enable postponed evaluation of annotations for forward references

import asyncio  # Event loop running harvester and both servers
import logging  # Standard library for logging messages and errors
from dataclasses import dataclass  # Container for wired components
from typing import TYPE_CHECKING, Optional  # Type hints for optional values

import uvicorn  # ASGI server for the REST and RPC apps

from cantorx.shared.logging_conf import setup_logging  # Configure logging with file rotation
from cantorx.adapters.cache import HotCache  # TTL cache + update bus
from cantorx.adapters.crawlers import ScraperRegistry, default_registry  # Strategy tag -> parser
from cantorx.adapters.persistence import (
    Database,  # SQLAlchemy engine + schema
    HistoryStore,  # Time-series of harvested rates
    SourceDirectory,  # Known cantors
    StreamLog,  # Optional replayable per-currency stream
    load_sources_file,  # JSON seed file reader
)
from cantorx.adapters.web import ApiServices, create_app, create_rpc_app  # FastAPI apps
from cantorx.application import (
    Harvester,
    HarvestStats,
    HealthChecker,
    RatesService,
    StreamService,
)

if TYPE_CHECKING:
    from cantorx.config.settings import Settings  # Pydantic settings model

log = logging.getLogger(__name__)


@dataclass
class Components:
    """Everything main() starts, wired from one Settings instance."""
    db: Database
    registry: ScraperRegistry
    directory: SourceDirectory
    history: HistoryStore
    cache: HotCache
    stream_log: Optional[StreamLog]
    stats: HarvestStats
    rates: RatesService
    stream: StreamService
    health: HealthChecker
    harvester: Harvester


def build_components(settings: Settings) -> Components:
    """
    Create the store, cache, registry and services.

    Initializes the schema and seeds sources from SOURCES_FILE when set.
    """
    db = Database(settings.database_url)
    db.init_schema()

    directory = SourceDirectory(db)
    if settings.sources_file:
        seeded = directory.seed(load_sources_file(settings.sources_file))
        log.info("Seeded %d sources from %s", seeded, settings.sources_file)
    else:
        directory.refresh()

    registry = default_registry(timeout=settings.scrape_timeout_seconds, user_agent=settings.user_agent)
    for source in directory.list():
        if source.strategy not in registry:
            log.warning("Source %s (id=%d) uses unregistered strategy %s", source.name, source.id, source.strategy)

    history = HistoryStore(db)
    cache = HotCache(ttl_seconds=settings.cache_ttl_seconds, queue_size=settings.subscriber_queue_size)
    stream_log = None
    if settings.stream_dir:
        stream_log = StreamLog(settings.stream_dir, retention_seconds=settings.stream_retention_hours * 3600)
        log.info("Persistent stream enabled in %s", settings.stream_dir)

    stats = HarvestStats(threshold_seconds=settings.expensive_task_seconds, window=settings.expensive_task_window)
    rates = RatesService(
        directory,
        registry,
        history,
        cache,
        scrape_timeout=settings.scrape_timeout_seconds,
        lookup_timeout=settings.lookup_timeout_seconds,
        archive_timeout=settings.archive_timeout_seconds,
    )
    harvester = Harvester(
        registry,
        directory,
        history,
        cache,
        stream_log,
        stats,
        currencies=settings.currencies,
        interval_seconds=settings.harvest_interval_seconds,
        politeness_delay=settings.politeness_delay_seconds,
        max_parallel_sources=settings.max_parallel_sources,
        scrape_timeout=settings.scrape_timeout_seconds,
        lookup_timeout=settings.lookup_timeout_seconds,
        archive_timeout=settings.archive_timeout_seconds,
        history_retention_days=settings.history_retention_days,
    )
    return Components(
        db=db,
        registry=registry,
        directory=directory,
        history=history,
        cache=cache,
        stream_log=stream_log,
        stats=stats,
        rates=rates,
        stream=StreamService(cache, stream_log),
        health=HealthChecker(db, cache),
        harvester=harvester,
    )


async def serve(settings: Settings, components: Components) -> None:
    """Run the harvester and both listeners until cancelled."""
    api = create_app(
        ApiServices(
            rates=components.rates,
            directory=components.directory,
            history=components.history,
            health=components.health,
            stats=components.stats,
        )
    )
    rpc = create_rpc_app(components.stream)

    servers = [
        uvicorn.Server(uvicorn.Config(api, host=settings.rest_host, port=settings.rest_port, log_config=None)),
        uvicorn.Server(uvicorn.Config(rpc, host=settings.rpc_host, port=settings.rpc_port, log_config=None)),
    ]
    tasks = [asyncio.create_task(server.serve()) for server in servers]
    if settings.harvester_enabled:
        tasks.append(asyncio.create_task(components.harvester.run_forever(), name="harvester"))
    else:
        log.info("Harvester disabled; serving reads only")

    log.info(
        "Serving REST on %s:%d and RPC on %s:%d",
        settings.rest_host, settings.rest_port, settings.rpc_host, settings.rpc_port,
    )
    try:
        # first server to stop (signal or bind failure) ends the process
        await asyncio.wait(tasks[:2], return_when=asyncio.FIRST_COMPLETED)
    finally:
        for server in servers:
            server.should_exit = True
        for task in tasks[2:]:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await components.rates.drain()


def main() -> None:
    """
    Initialize and start the service.

    This function:
    1. Sets up logging from settings
    2. Initializes the schema and seeds sources
    3. Wires cache, stores, registry and services
    4. Runs the harvester and both servers until interrupted
    """
    # Import settings here so importing this module does not read the environment
    from cantorx.config import settings

    setup_logging(
        level=settings.log_level,
        log_file=settings.log_file,
        log_dir=settings.log_dir,
        max_bytes=settings.log_max_bytes,
        backup_count=settings.log_backup_count,
        log_stdout=settings.log_stdout,
    )

    components = build_components(settings)
    log.info(
        "cantorx starting: %d sources, %d currencies, strategies=%s",
        len(components.directory.list()),
        len(settings.currencies),
        ",".join(components.registry.names()),
    )
    try:
        asyncio.run(serve(settings, components))
    except KeyboardInterrupt:
        log.info("Interrupted, shutting down")
    finally:
        components.db.dispose()


if __name__ == "__main__":
    main()
