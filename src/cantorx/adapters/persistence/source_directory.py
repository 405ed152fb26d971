# src/cantorx/adapters/persistence/source_directory.py
"""
Source Directory - Persistent List of Cantors

Sources are created out-of-band (seeded from a JSON file at startup) and are
read-mostly afterwards, so the directory keeps an in-memory copy and reloads
it only after a seed or when asked for an id it has not seen.

Files that USE this module:
- cantorx.application.harvester (list of sources to harvest)
- cantorx.application.rates_service (source lookup on cache miss)
- cantorx.adapters.web.api (/cantors)
- cantorx.app (seeding from SOURCES_FILE)

Files that this module USES:
- cantorx.adapters.persistence.database (engine, sources table)
- cantorx.domain.models (Source)
- cantorx.domain.errors (SourceNotFoundError, StoreError, BadRequestError)
"""
from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

from sqlalchemy import insert, select, update
from sqlalchemy.exc import SQLAlchemyError

from cantorx.adapters.persistence.database import Database, sources_table
from cantorx.domain.errors import BadRequestError, SourceNotFoundError, StoreError
from cantorx.domain.models import Source

log = logging.getLogger(__name__)

REQUIRED_FIELDS = ("name", "display_name", "base_url", "strategy")


def _row_to_source(row) -> Source:
    return Source(
        id=row.id,
        name=row.name,
        display_name=row.display_name,
        base_url=row.base_url,
        strategy=row.strategy,
        units=row.units or 1,
        latitude=row.latitude,
        longitude=row.longitude,
    )


def _validate_record(record: Mapping[str, Any]) -> dict:
    """Check one seed record and return the column values to store."""
    for field in REQUIRED_FIELDS:
        value = record.get(field)
        if not isinstance(value, str) or not value.strip():
            raise BadRequestError(f"source record missing field: {field}")
    units = record.get("units", 1)
    if not isinstance(units, int) or isinstance(units, bool) or units < 1:
        raise BadRequestError(f"source {record['name']}: units must be a positive integer")
    values = {
        "name": record["name"].strip(),
        "display_name": record["display_name"].strip(),
        "base_url": record["base_url"].strip(),
        "strategy": record["strategy"].strip().upper(),
        "units": units,
    }
    for coord in ("latitude", "longitude"):
        value = record.get(coord)
        if value is not None and not isinstance(value, (int, float)):
            raise BadRequestError(f"source {record['name']}: {coord} must be a number")
        values[coord] = None if value is None else float(value)
    return values


def load_sources_file(path: Path) -> list[dict]:
    """
    Read source records from a JSON file holding a list of objects.

    Raises:
        BadRequestError: If the file is not a JSON list of objects
    """
    with Path(path).open("r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise BadRequestError(f"sources file is not valid JSON: {e.msg}") from e
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise BadRequestError("sources file must contain a JSON list of objects")
    return data


class SourceDirectory:
    """Read-mostly directory of sources backed by the ``sources`` table."""

    def __init__(self, db: Database):
        self.db = db
        self._lock = threading.Lock()
        self._by_id: Optional[dict[int, Source]] = None

    def _load(self) -> dict[int, Source]:
        try:
            with self.db.engine.connect() as conn:
                rows = conn.execute(select(sources_table).order_by(sources_table.c.id)).all()
        except SQLAlchemyError as e:
            log.error("Loading sources failed: %s", e)
            raise StoreError("source directory unavailable") from e
        return {row.id: _row_to_source(row) for row in rows}

    def refresh(self) -> None:
        """Reload the in-memory copy from the database."""
        loaded = self._load()
        with self._lock:
            self._by_id = loaded
        log.debug("Source directory loaded: %d sources", len(loaded))

    def list(self) -> list[Source]:
        """All sources, ordered by id."""
        if self._by_id is None:
            self.refresh()
        with self._lock:
            return list(self._by_id.values())

    def get(self, source_id: int) -> Source:
        """
        Source by id.

        Raises:
            SourceNotFoundError: If no source has this id
        """
        if self._by_id is None or source_id not in self._by_id:
            self.refresh()
        with self._lock:
            source = self._by_id.get(source_id)
        if source is None:
            raise SourceNotFoundError(f"no cantor with id {source_id}")
        return source

    def seed(self, records: Iterable[Mapping[str, Any]]) -> int:
        """
        Insert or update sources keyed by their unique machine name.

        Args:
            records: Mappings with name, display_name, base_url, strategy,
                     and optional units, latitude, longitude

        Returns:
            Number of records written
        """
        rows = [_validate_record(r) for r in records]
        try:
            with self.db.engine.begin() as conn:
                for values in rows:
                    existing = conn.execute(
                        select(sources_table.c.id).where(sources_table.c.name == values["name"])
                    ).scalar_one_or_none()
                    if existing is None:
                        conn.execute(insert(sources_table).values(**values))
                    else:
                        conn.execute(
                            update(sources_table).where(sources_table.c.id == existing).values(**values)
                        )
        except SQLAlchemyError as e:
            log.error("Seeding sources failed: %s", e)
            raise StoreError("seeding sources failed") from e

        self.refresh()
        log.info("Seeded %d sources", len(rows))
        return len(rows)
