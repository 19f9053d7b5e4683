"""
Record Export - dataset sink and key-value store for a scraping run.

- ``push()`` appends one page batch to ``records.jsonl`` (admission order)
- ``set_value()`` stores JSON documents such as diagnostic snapshots and run
  statistics under ``<key>.json``
- ``to_csv()`` / ``to_json()`` write flat end-of-run exports of every pushed
  record, lists joined with ``"; "`` in CSV cells
"""

import csv
import json
import re
import threading
from datetime import datetime as dt
from pathlib import Path
from typing import Any, Iterable, List, Optional, Protocol, Union

from pydantic import BaseModel

from ..schemas import LawyerRecord


DATASET_FILENAME = "records.jsonl"

CSV_FIELDS = [
    "name", "firmName", "location", "address", "phone", "email", "profileURL",
    "practiceAreas", "description", "yearsLicensed", "biography", "education",
    "barAdmissions", "languages", "scrapedAt",
]


class RecordSink(Protocol):
    def push(self, records: List[LawyerRecord]) -> None: ...

    def set_value(self, key: str, value: Union[BaseModel, dict]) -> Any: ...


def _safe_key(key: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]", "_", key) or "value"


def _csv_cell(value: Any) -> Any:
    if isinstance(value, list):
        return "; ".join(str(v) for v in value)
    return "" if value is None else value


class RecordExporter:
    """
    File-backed record sink.

    Keeps the pushed rows in memory as well, so end-of-run exports do not
    re-read the dataset file.
    """

    def __init__(self, output_dir: Union[str, Path] = "output"):
        """
        Initialize Record Exporter.

        Args:
            output_dir: Directory for output files (created if doesn't exist)
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.dataset_path = self.output_dir / DATASET_FILENAME
        self.rows: List[dict] = []
        self._lock = threading.Lock()

    def push(self, records: List[LawyerRecord]) -> None:
        """Append one batch to the dataset, preserving the given order."""
        if not records:
            return
        rows = [r.to_output() for r in records]
        with self._lock:
            with self.dataset_path.open("a", encoding="utf-8") as f:
                for row in rows:
                    f.write(json.dumps(row, ensure_ascii=False))
                    f.write("\n")
            self.rows.extend(rows)

    def set_value(self, key: str, value: Union[BaseModel, dict]) -> Path:
        """Store a JSON document under ``<output_dir>/<key>.json``."""
        payload = value.model_dump(mode="json") if isinstance(value, BaseModel) else value
        path = self.output_dir / f"{_safe_key(key)}.json"
        with path.open("w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
        return path

    def get_value(self, key: str) -> Optional[Any]:
        path = self.output_dir / f"{_safe_key(key)}.json"
        if not path.exists():
            return None
        return json.loads(path.read_text(encoding="utf-8"))

    def to_csv(self, filename: Optional[str] = None) -> Path:
        """
        Export every pushed record to a flat CSV file.

        Raises:
            ValueError: when nothing has been pushed yet
        """
        if not self.rows:
            raise ValueError("No records to export")
        if filename is None:
            timestamp = dt.now().strftime("%Y%m%d_%H%M%S")
            filename = f"lawyers_{timestamp}.csv"
        csv_path = self.output_dir / filename
        with open(csv_path, 'w', newline='', encoding='utf-8') as csvfile:
            writer = csv.DictWriter(csvfile, fieldnames=CSV_FIELDS)
            writer.writeheader()
            for row in self.rows:
                writer.writerow({k: _csv_cell(row.get(k)) for k in CSV_FIELDS})
        print(f"💾 CSV exported: {csv_path} ({len(self.rows)} records)")
        return csv_path

    def to_json(self, filename: Optional[str] = None, pretty: bool = True) -> Path:
        if not self.rows:
            raise ValueError("No records to export")
        if filename is None:
            timestamp = dt.now().strftime("%Y%m%d_%H%M%S")
            filename = f"lawyers_{timestamp}.json"
        json_path = self.output_dir / filename
        with open(json_path, 'w', encoding='utf-8') as jsonfile:
            json.dump(self.rows, jsonfile, indent=2 if pretty else None, ensure_ascii=False)
        print(f"💾 JSON exported: {json_path} ({len(self.rows)} records)")
        return json_path


class MemorySink:
    """In-process sink; keeps each pushed batch separately."""

    def __init__(self) -> None:
        self.batches: List[List[LawyerRecord]] = []
        self.values: dict = {}

    def push(self, records: List[LawyerRecord]) -> None:
        self.batches.append(list(records))

    def set_value(self, key: str, value: Union[BaseModel, dict]) -> None:
        self.values[key] = value.model_dump(mode="json") if isinstance(value, BaseModel) else value

    @property
    def records(self) -> List[LawyerRecord]:
        return [r for batch in self.batches for r in batch]


def read_dataset(path: Union[str, Path]) -> Iterable[dict]:
    with Path(path).open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line:
                yield json.loads(line)
