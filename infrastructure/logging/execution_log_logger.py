from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict

from application.ports.execution_log_store import ExecutionLogStorePort
from application.ports.logger import LoggerPort
from domain.execution_log import ExecutionLogEntry


@dataclass(frozen=True)
class ExecutionLogLogger(LoggerPort):
    """Records events of one execution into an ExecutionLogStorePort."""

    execution_id: str
    log_store: ExecutionLogStorePort
    bound: Dict[str, Any] = field(default_factory=dict)

    def bind(self, **fields: Any) -> "ExecutionLogLogger":
        merged = dict(self.bound)
        merged.update(fields)
        return ExecutionLogLogger(execution_id=self.execution_id, log_store=self.log_store, bound=merged)

    def debug(self, event: str, **fields: Any) -> None:
        self._emit("debug", event, fields)

    def info(self, event: str, **fields: Any) -> None:
        self._emit("info", event, fields)

    def warning(self, event: str, **fields: Any) -> None:
        self._emit("warning", event, fields)

    def error(self, event: str, **fields: Any) -> None:
        self._emit("error", event, fields)

    def _emit(self, level: str, event: str, fields: Dict[str, Any]) -> None:
        payload = dict(self.bound)
        payload.update(fields)
        payload.setdefault("type", event)
        payload.setdefault("level", level)
        entry = ExecutionLogEntry(
            timestamp=datetime.now(timezone.utc),
            event=event,
            fields=payload,
        )
        self.log_store.append(self.execution_id, entry)
