"""In-memory store for completed fault studies.

Implements the engine's ResultSink protocol. One instance lives on
``app.state`` for the lifetime of the application; studies run in the
threadpool, so access is serialized with a lock. The oldest results are
evicted once ``max_results`` is reached.
"""

from __future__ import annotations

import threading
import uuid
from collections import OrderedDict
from typing import Any

from engine.network.fault_runner import FaultStudyResult


class InMemoryResultStore:
    def __init__(self, max_results: int = 500):
        self.max_results = max_results
        self._results: OrderedDict[str, dict[str, Any]] = OrderedDict()
        self._lock = threading.Lock()

    def save(self, result: FaultStudyResult) -> str:
        study_id = str(uuid.uuid4())
        record = result.to_dict()
        with self._lock:
            self._results[study_id] = record
            while len(self._results) > self.max_results:
                self._results.popitem(last=False)
        return study_id

    def get(self, study_id: str) -> dict[str, Any] | None:
        with self._lock:
            return self._results.get(study_id)

    def list_summaries(self) -> list[dict[str, Any]]:
        with self._lock:
            return [
                {"id": sid, "timestamp": rec["timestamp"], "summary": rec["summary"]}
                for sid, rec in self._results.items()
            ]

    def clear(self) -> None:
        with self._lock:
            self._results.clear()

    def __len__(self) -> int:
        return len(self._results)
