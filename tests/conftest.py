# tests/conftest.py
"""
Shared fixtures: a temporary SQLite store seeded with three cantors.
"""
import pytest

from cantorx.adapters.cache import HotCache
from cantorx.adapters.persistence import Database, HistoryStore, SourceDirectory

SOURCE_RECORDS = [
    {
        "name": "kantor_centrum",
        "display_name": "Kantor Centrum",
        "base_url": "https://centrum.example/kursy",
        "strategy": "C1",
        "latitude": 52.2297,
        "longitude": 21.0122,
    },
    {
        "name": "kantor_dworzec",
        "display_name": "Kantor Dworzec",
        "base_url": "https://dworzec.example/",
        "strategy": "C5",
        "units": 100,
    },
    {
        "name": "kantor_rynek",
        "display_name": "Kantor Rynek",
        "base_url": "https://rynek.example/",
        "strategy": "c7",
    },
]


@pytest.fixture
def db(tmp_path):
    database = Database(f"sqlite:///{tmp_path / 'cantorx.db'}")
    database.init_schema()
    yield database
    database.dispose()


@pytest.fixture
def directory(db):
    source_directory = SourceDirectory(db)
    source_directory.seed(SOURCE_RECORDS)
    return source_directory


@pytest.fixture
def history(db):
    return HistoryStore(db)


@pytest.fixture
def cache():
    return HotCache(ttl_seconds=60, queue_size=16)
