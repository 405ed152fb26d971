# src/cantorx/adapters/persistence/database.py
"""
Database - Engine and Schema for the Durable Store

Holds the SQLAlchemy engine shared by the time-series store and the source
directory, and the logical schema both rely on:

    sources(id, name unique, display_name, base_url, strategy, units, latitude, longitude)
    rates(time, source_id -> sources.id, currency, buy_rate, sell_rate,
          unique(time, source_id, currency))

``rates.time`` is wall-clock seconds since epoch. On PostgreSQL with the
TimescaleDB extension the table becomes a hypertable on ``time``.

Files that USE this module:
- cantorx.adapters.persistence.history_store (rates table)
- cantorx.adapters.persistence.source_directory (sources table)
- cantorx.application.health (ping)
- cantorx.app (engine creation and schema init)

Files that this module USES:
- cantorx.domain.errors (StoreError)
"""
from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy import (
    BigInteger,
    Column,
    Float,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    text,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from cantorx.domain.errors import StoreError

log = logging.getLogger(__name__)

HYPERTABLE_CHUNK_SECONDS = 86400

metadata = MetaData()

sources_table = Table(
    "sources",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(64), nullable=False, unique=True),
    Column("display_name", String(255), nullable=False),
    Column("base_url", Text, nullable=False),
    Column("strategy", String(16), nullable=False),
    Column("units", Integer, nullable=False, default=1, server_default=text("1")),
    Column("latitude", Float, nullable=True),
    Column("longitude", Float, nullable=True),
)

rates_table = Table(
    "rates",
    metadata,
    Column("time", BigInteger, nullable=False),
    Column("source_id", Integer, ForeignKey("sources.id"), nullable=False),
    Column("currency", String(3), nullable=False),
    Column("buy_rate", Numeric(18, 6, asdecimal=False), nullable=False),
    Column("sell_rate", Numeric(18, 6, asdecimal=False), nullable=False),
    UniqueConstraint("time", "source_id", "currency", name="uq_rates_time_source_currency"),
    Index("ix_rates_currency_source_time", "currency", "source_id", "time"),
)


class Database:
    """Owns the engine for one database URL."""

    def __init__(self, url: str):
        self.url = url
        self.engine: Engine = create_engine(url, **self._engine_options(url))

    @staticmethod
    def _engine_options(url: str) -> dict:
        parsed = make_url(url)
        if parsed.get_backend_name() != "sqlite":
            return {"pool_pre_ping": True}

        options: dict = {"connect_args": {"check_same_thread": False}}
        if parsed.database in (None, "", ":memory:"):
            # One shared connection, or every thread would see its own empty database
            options["poolclass"] = StaticPool
        else:
            Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)
        return options

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    def init_schema(self) -> None:
        """
        Create tables if missing; turn ``rates`` into a hypertable when possible.

        Raises:
            StoreError: If the tables cannot be created
        """
        try:
            metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            log.error("Schema initialization failed: %s", e)
            raise StoreError("schema initialization failed") from e

        if self.dialect == "postgresql":
            self._create_hypertable()
        log.info("Schema ready (%s)", self.dialect)

    def _create_hypertable(self) -> None:
        try:
            with self.engine.begin() as conn:
                conn.execute(text("CREATE EXTENSION IF NOT EXISTS timescaledb"))
                conn.execute(
                    text(
                        "SELECT create_hypertable('rates', 'time', "
                        "chunk_time_interval => :chunk, if_not_exists => TRUE, migrate_data => TRUE)"
                    ),
                    {"chunk": HYPERTABLE_CHUNK_SECONDS},
                )
            log.info("rates is a TimescaleDB hypertable")
        except SQLAlchemyError as e:
            log.info("TimescaleDB not available, rates stays a plain table: %s", e)

    def ping(self) -> None:
        """
        Run a trivial query.

        Raises:
            StoreError: If the database does not answer
        """
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            raise StoreError("database unavailable") from e

    def dispose(self) -> None:
        self.engine.dispose()
