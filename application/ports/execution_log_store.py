from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from domain.execution_log import ExecutionLogEntry


class ExecutionLogStorePort(ABC):
    @abstractmethod
    def append(self, execution_id: str, entry: ExecutionLogEntry) -> None:
        ...

    @abstractmethod
    def list(self, execution_id: str) -> List[ExecutionLogEntry]:
        ...
