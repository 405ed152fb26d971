"""
Persistence Adapters

Durable storage: the SQL database holding sources and rate history, and the
optional file-backed stream log used for replay.
"""

from cantorx.adapters.persistence.database import Database
from cantorx.adapters.persistence.history_store import HistoryStore
from cantorx.adapters.persistence.source_directory import SourceDirectory, load_sources_file
from cantorx.adapters.persistence.stream_log import StreamLog

__all__ = ["Database", "HistoryStore", "SourceDirectory", "StreamLog", "load_sources_file"]
