from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")

# record sets per schema version; upgrades only ever add tables
SCHEMA_VERSIONS: Dict[int, List[str]] = {
    1: ["collections", "history"],
    2: ["collections", "history", "environments"],
    3: ["collections", "history", "environments", "chains", "chain_executions"],
}
SCHEMA_VERSION = max(SCHEMA_VERSIONS)


class RecordQueryPort(ABC, Generic[T]):
    @abstractmethod
    def to_list(self) -> List[T]:
        ...

    @abstractmethod
    def delete(self) -> int:
        ...


class WhereClausePort(ABC, Generic[T]):
    @abstractmethod
    def equals(self, value: Any) -> RecordQueryPort[T]:
        ...


class TablePort(ABC, Generic[T]):
    @abstractmethod
    def add(self, record: T) -> str:
        ...

    @abstractmethod
    def get(self, key: str) -> Optional[T]:
        ...

    @abstractmethod
    def put(self, record: T) -> str:
        ...

    @abstractmethod
    def put_unless(self, record: T, guard: Callable[[Optional[T]], bool]) -> bool:
        """Atomically write `record` unless guard(current stored record) is true."""
        ...

    @abstractmethod
    def update(self, key: str, changes: Dict[str, Any]) -> bool:
        """Apply attribute changes; returns False when the key is absent."""
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

    @abstractmethod
    def where(self, field_name: str) -> WhereClausePort[T]:
        ...

    @abstractmethod
    def to_list(self) -> List[T]:
        ...


class DocumentStorePort(ABC):
    @property
    @abstractmethod
    def version(self) -> int:
        ...

    @abstractmethod
    def table(self, name: str) -> TablePort[Any]:
        ...

    @property
    def collections(self) -> TablePort[Any]:
        return self.table("collections")

    @property
    def history(self) -> TablePort[Any]:
        return self.table("history")

    @property
    def environments(self) -> TablePort[Any]:
        return self.table("environments")

    @property
    def chains(self) -> TablePort[Any]:
        return self.table("chains")

    @property
    def chain_executions(self) -> TablePort[Any]:
        return self.table("chain_executions")
