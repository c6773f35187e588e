"""Audit storage backends.

Append-only sinks for decision records.
"""

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Protocol

from pbac.audit.models import DecisionRecord

logger = logging.getLogger(__name__)


class AuditSink(Protocol):
    def append(self, record: DecisionRecord) -> None: ...


class InMemoryAuditStorage:
    """Keeps records in a list. For tests and development."""

    def __init__(self, max_records: int = 10000):
        self.max_records = max_records
        self._records: list[DecisionRecord] = []
        self._lock = threading.Lock()

    def append(self, record: DecisionRecord) -> None:
        with self._lock:
            self._records.append(record)
            if len(self._records) > self.max_records:
                del self._records[0]

    def all(self) -> list[DecisionRecord]:
        with self._lock:
            return list(self._records)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()


class FileAuditStorage:
    """File-based audit storage.

    Stores records in JSONL (JSON Lines) format, one record per line and
    one file per UTC day.
    """

    def __init__(self, storage_path: str | Path):
        self.storage_path = Path(storage_path)
        self.storage_path.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        logger.info("FileAuditStorage initialized at %s", self.storage_path)

    def _day_file(self, day: datetime) -> Path:
        return self.storage_path / f"decisions_{day:%Y%m%d}.jsonl"

    def append(self, record: DecisionRecord) -> None:
        file_path = self._day_file(record.timestamp)
        with self._lock, open(file_path, "a", encoding="utf-8") as f:
            f.write(record.model_dump_json() + "\n")

    def all(self) -> list[DecisionRecord]:
        records = []
        for file_path in sorted(self.storage_path.glob("decisions_*.jsonl")):
            with open(file_path, "r", encoding="utf-8") as f:
                for line in f:
                    if line.strip():
                        records.append(DecisionRecord.model_validate_json(line))
        return sorted(records, key=lambda r: r.timestamp)
