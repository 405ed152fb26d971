# src/cantorx/adapters/persistence/history_store.py
"""
History Store - Append-only Time-Series of Quotes

Every harvested or scraped quote is appended here. Rows are unique on
(time, source_id, currency); appending the same row again is a no-op.
Reads aggregate rows into one-hour buckets.

All methods are blocking; async callers run them in a worker thread.

Files that USE this module:
- cantorx.application.harvester (append, latest_before, prune)
- cantorx.application.rates_service (append, latest_before)
- cantorx.adapters.web.api (range for /history)

Files that this module USES:
- cantorx.adapters.persistence.database (engine, rates table)
- cantorx.domain.models (HistoryPoint)
- cantorx.domain.errors (StoreError)
"""
from __future__ import annotations

import logging
import time as _time
from typing import Optional

from sqlalchemy import delete, func, insert, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from cantorx.adapters.persistence.database import Database, rates_table
from cantorx.domain.errors import StoreError
from cantorx.domain.models import HistoryPoint

log = logging.getLogger(__name__)

BUCKET_SECONDS = 3600
NATURAL_KEY = ("time", "source_id", "currency")


class HistoryStore:
    """Time-series of (time, source, currency, buy, sell) rows."""

    def __init__(self, db: Database):
        self.db = db

    def _insert_ignoring_duplicates(self):
        """INSERT .. ON CONFLICT DO NOTHING where the dialect supports it, else None."""
        dialect = self.db.dialect
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert as dialect_insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert as dialect_insert
        else:
            return None
        return dialect_insert(rates_table).on_conflict_do_nothing(index_elements=list(NATURAL_KEY))

    def append(
        self,
        source_id: int,
        currency: str,
        buy: float,
        sell: float,
        time: Optional[int] = None,
    ) -> bool:
        """
        Append one row.

        Args:
            source_id: Source the quote came from
            currency: Uppercase currency code
            buy: Per-unit buy rate
            sell: Per-unit sell rate
            time: Seconds since epoch; defaults to now

        Returns:
            True if a row was written, False if it already existed

        Raises:
            StoreError: On any database failure other than a duplicate
        """
        row = {
            "time": int(_time.time()) if time is None else int(time),
            "source_id": source_id,
            "currency": currency.upper(),
            "buy_rate": buy,
            "sell_rate": sell,
        }
        stmt = self._insert_ignoring_duplicates()
        try:
            with self.db.engine.begin() as conn:
                if stmt is not None:
                    return conn.execute(stmt, row).rowcount > 0
                conn.execute(insert(rates_table), row)
                return True
        except IntegrityError:
            log.debug("Duplicate history row skipped: %s", row)
            return False
        except SQLAlchemyError as e:
            log.error("Couldn't save rates into archive: %s", e)
            raise StoreError("history append failed") from e

    def latest_before(self, source_id: int, currency: str, cutoff: int) -> Optional[float]:
        """
        Most recent buy rate at or before ``cutoff``.

        Returns:
            Buy rate, or None if no row is old enough
        """
        stmt = (
            select(rates_table.c.buy_rate)
            .where(
                rates_table.c.source_id == source_id,
                rates_table.c.currency == currency.upper(),
                rates_table.c.time <= int(cutoff),
            )
            .order_by(rates_table.c.time.desc())
            .limit(1)
        )
        try:
            with self.db.engine.connect() as conn:
                value = conn.execute(stmt).scalar_one_or_none()
        except SQLAlchemyError as e:
            log.error("History lookup failed: %s", e)
            raise StoreError("history lookup failed") from e
        return None if value is None else float(value)

    def range(self, currency: str, since: int, source_id: Optional[int] = None) -> list[HistoryPoint]:
        """
        Hourly averages for ``currency`` since ``since``, oldest bucket first.

        Args:
            currency: Uppercase currency code
            since: Seconds since epoch; older rows are ignored
            source_id: Restrict to one source, otherwise aggregate across all sources

        Returns:
            One HistoryPoint per non-empty bucket
        """
        bucket = ((rates_table.c.time // BUCKET_SECONDS) * BUCKET_SECONDS).label("bucket")
        stmt = select(
            bucket,
            func.avg(rates_table.c.buy_rate).label("avg_buy"),
            func.avg(rates_table.c.sell_rate).label("avg_sell"),
        ).where(
            rates_table.c.currency == currency.upper(),
            rates_table.c.time >= int(since),
        )
        if source_id is not None:
            stmt = stmt.where(rates_table.c.source_id == source_id)
        stmt = stmt.group_by(bucket).order_by(bucket)

        try:
            with self.db.engine.connect() as conn:
                rows = conn.execute(stmt).all()
        except SQLAlchemyError as e:
            log.error("History range query failed: %s", e)
            raise StoreError("history query failed") from e

        return [
            HistoryPoint(time=int(r.bucket), buy_rate=float(r.avg_buy), sell_rate=float(r.avg_sell))
            for r in rows
        ]

    def prune(self, older_than: int) -> int:
        """Delete rows older than ``older_than``; returns how many were removed."""
        try:
            with self.db.engine.begin() as conn:
                result = conn.execute(delete(rates_table).where(rates_table.c.time < int(older_than)))
        except SQLAlchemyError as e:
            log.error("History prune failed: %s", e)
            raise StoreError("history prune failed") from e
        if result.rowcount:
            log.info("Pruned %d history rows older than %d", result.rowcount, older_than)
        return result.rowcount or 0
