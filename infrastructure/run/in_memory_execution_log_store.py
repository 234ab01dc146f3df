from __future__ import annotations

from threading import Lock
from typing import Dict, List

from application.ports.execution_log_store import ExecutionLogStorePort
from domain.execution_log import ExecutionLogEntry


class InMemoryExecutionLogStore(ExecutionLogStorePort):
    def __init__(self) -> None:
        self._logs: Dict[str, List[ExecutionLogEntry]] = {}
        self._lock = Lock()

    def append(self, execution_id: str, entry: ExecutionLogEntry) -> None:
        with self._lock:
            self._logs.setdefault(execution_id, []).append(entry)

    def list(self, execution_id: str) -> List[ExecutionLogEntry]:
        with self._lock:
            return list(self._logs.get(execution_id, []))

    def clear(self) -> None:
        with self._lock:
            self._logs.clear()
