from __future__ import annotations

import threading
from typing import Set

from lawdir.schemas import LawyerRecord


class DedupLedger:
    """Run-scoped set of identity keys.

    ``admit`` is an atomic check-and-insert; keys are never removed, so a
    record seen once in a run is rejected on every later attempt.
    """

    def __init__(self) -> None:
        self._keys: Set[str] = set()
        self._lock = threading.Lock()

    def admit(self, record: LawyerRecord) -> bool:
        key = record.identity_key()
        with self._lock:
            if key in self._keys:
                return False
            self._keys.add(key)
            return True

    def __contains__(self, record: object) -> bool:
        key = record.identity_key() if isinstance(record, LawyerRecord) else record
        with self._lock:
            return key in self._keys

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)
