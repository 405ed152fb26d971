# src/cantorx/adapters/persistence/stream_log.py
"""
Stream Log - File-backed Persistent Stream of Quotes

Optional replay channel next to the live bus. Each subject (``rates.<CCY>``)
is an append-only JSON-lines file; every line holds the write time and the
base64 serialized quote. Entries older than the retention window are pruned
with an atomic rewrite (temp file + rename).

Files that USE this module:
- cantorx.application.harvester (publishes every harvested quote)
- cantorx.application.stream_service (replay for offline consumers)
- cantorx.app (created when STREAM_DIR is set)

Files that this module USES:
- None (filesystem only)
"""
from __future__ import annotations

import base64
import json
import logging
import os
import re
import tempfile
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

log = logging.getLogger(__name__)

DEFAULT_RETENTION_SECONDS = 24 * 3600
PRUNE_EVERY_SECONDS = 600

_SUBJECT_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


@dataclass(frozen=True)
class StreamEntry:
    subject: str
    ts: float
    payload: bytes

    def to_json(self) -> dict:
        return {"ts": self.ts, "payload": base64.b64encode(self.payload).decode("ascii")}

    @staticmethod
    def from_json(subject: str, data: dict) -> "StreamEntry":
        return StreamEntry(
            subject=subject,
            ts=float(data["ts"]),
            payload=base64.b64decode(data["payload"]),
        )


class StreamLog:
    """Per-subject append-only files under one directory."""

    def __init__(self, directory: Path, retention_seconds: int = DEFAULT_RETENTION_SECONDS):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self.retention_seconds = retention_seconds
        self._lock = threading.Lock()
        self._last_prune: dict[str, float] = {}

    def _path(self, subject: str) -> Path:
        if not _SUBJECT_RE.match(subject):
            raise ValueError(f"invalid stream subject: {subject!r}")
        return self.directory / f"{subject}.jsonl"

    def publish(self, subject: str, payload: bytes, now: Optional[float] = None) -> None:
        """
        Append one message to ``subject``.

        Pruning of expired entries piggybacks on publish, at most every
        ten minutes per subject.
        """
        ts = time.time() if now is None else now
        line = json.dumps(StreamEntry(subject, ts, payload).to_json())
        path = self._path(subject)
        with self._lock:
            with path.open("a", encoding="utf-8") as f:
                f.write(line + "\n")
            if ts - self._last_prune.get(subject, 0.0) >= PRUNE_EVERY_SECONDS:
                self._prune_locked(subject, ts)

    def _read_locked(self, subject: str) -> list[StreamEntry]:
        path = self._path(subject)
        if not path.exists():
            return []
        entries = []
        with path.open("r", encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    entries.append(StreamEntry.from_json(subject, json.loads(line)))
                except (ValueError, KeyError, TypeError) as e:
                    log.warning("Skipping corrupt stream entry %s:%d: %s", path.name, lineno, e)
        return entries

    def replay(self, subject: str, since: float = 0.0, now: Optional[float] = None) -> list[bytes]:
        """Payloads of ``subject`` written after ``since`` and still within retention."""
        current = time.time() if now is None else now
        floor = max(since, current - self.retention_seconds)
        with self._lock:
            entries = self._read_locked(subject)
        return [e.payload for e in entries if e.ts > floor]

    def prune(self, subject: str, now: Optional[float] = None) -> int:
        """Drop entries of ``subject`` older than the retention window."""
        current = time.time() if now is None else now
        with self._lock:
            return self._prune_locked(subject, current)

    def _prune_locked(self, subject: str, now: float) -> int:
        self._last_prune[subject] = now
        path = self._path(subject)
        entries = self._read_locked(subject)
        cutoff = now - self.retention_seconds
        kept = [e for e in entries if e.ts > cutoff]
        removed = len(entries) - len(kept)
        if not removed:
            return 0

        # Atomic write: write to temp file first, then rename atomically
        temp_fd, temp_path = tempfile.mkstemp(suffix=".jsonl.tmp", dir=str(self.directory), text=True)
        try:
            with os.fdopen(temp_fd, "w", encoding="utf-8") as f:
                for entry in kept:
                    f.write(json.dumps(entry.to_json()) + "\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, str(path))
        except OSError:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise
        log.debug("Pruned %d entries from %s", removed, subject)
        return removed
