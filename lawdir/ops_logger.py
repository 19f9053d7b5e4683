from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional
import threading


OPS_ENV_FLAG = "LDS_OPS_JSON"


def ops_enabled_by_env() -> bool:
    return os.environ.get(OPS_ENV_FLAG, "0") == "1"


class OpsLogger:
    """Append-only JSONL logger for operational events.

    - Writes one JSON object per line to a file (UTF-8, newline-delimited)
    - Every record is tagged ``"lds_ops": 1``
    - Thread-safe (coarse lock)
    - Best-effort: never raises to caller
    """

    def __init__(self, file_path: Optional[Path] = None, also_stdout: bool = False) -> None:
        self.file_path = Path(file_path) if file_path else None
        self.also_stdout = bool(also_stdout)
        self._lock = threading.Lock()
        if self.file_path is not None:
            try:
                self.file_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError:
                pass

    def emit(self, record: Dict[str, Any]) -> None:
        record = {"lds_ops": 1, **record}
        try:
            line = json.dumps(record, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            line = json.dumps({"lds_ops": 1, "_serialization_error": True, "record_str": str(record)})
        if self.file_path is not None:
            try:
                with self._lock:
                    with self.file_path.open("a", encoding="utf-8") as f:
                        f.write(line)
                        f.write("\n")
            except OSError:
                # Never propagate logging errors
                pass
        if self.also_stdout:
            print(line)
