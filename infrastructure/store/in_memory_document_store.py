from __future__ import annotations

import copy
from dataclasses import is_dataclass, replace
from threading import Lock
from typing import Any, Callable, Dict, List, Optional

from application.ports.document_store import (
    SCHEMA_VERSION,
    SCHEMA_VERSIONS,
    DocumentStorePort,
    RecordQueryPort,
    TablePort,
    WhereClausePort,
)
from domain.exceptions import ValidationError
from domain.ids import new_id


def _get_field(record: Any, name: str) -> Any:
    if isinstance(record, dict):
        return record.get(name)
    return getattr(record, name, None)


class _RecordQuery(RecordQueryPort[Any]):
    def __init__(self, table: "InMemoryTable", predicate: Callable[[Any], bool]) -> None:
        self._table = table
        self._predicate = predicate

    def to_list(self) -> List[Any]:
        return self._table._select(self._predicate)

    def delete(self) -> int:
        return self._table._delete_where(self._predicate)


class _WhereClause(WhereClausePort[Any]):
    def __init__(self, table: "InMemoryTable", field_name: str) -> None:
        self._table = table
        self._field = field_name

    def equals(self, value: Any) -> _RecordQuery:
        return _RecordQuery(self._table, lambda r: _get_field(r, self._field) == value)


class InMemoryTable(TablePort[Any]):
    """
    Records are deep-copied on the way in and out, so callers never share
    mutable state with the stored version.
    """

    def __init__(self, name: str, key_field: str = "id") -> None:
        self.name = name
        self._key_field = key_field
        self._records: Dict[str, Any] = {}
        self._lock = Lock()

    def add(self, record: Any) -> str:
        with self._lock:
            record = copy.deepcopy(record)
            key = self._key_of(record)
            if key in self._records:
                raise ValidationError(f"Key already exists in {self.name}: {key}")
            self._records[key] = record
            return key

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            return copy.deepcopy(self._records.get(key))

    def put(self, record: Any) -> str:
        with self._lock:
            record = copy.deepcopy(record)
            key = self._key_of(record)
            self._records[key] = record
            return key

    def put_unless(self, record: Any, guard: Callable[[Optional[Any]], bool]) -> bool:
        with self._lock:
            record = copy.deepcopy(record)
            key = self._key_of(record)
            if guard(self._records.get(key)):
                return False
            self._records[key] = record
            return True

    def update(self, key: str, changes: Dict[str, Any]) -> bool:
        with self._lock:
            record = self._records.get(key)
            if record is None:
                return False
            changes = copy.deepcopy(changes)
            if isinstance(record, dict):
                record.update(changes)
            elif is_dataclass(record):
                self._records[key] = replace(record, **changes)
            else:
                for name, value in changes.items():
                    setattr(record, name, value)
            return True

    def delete(self, key: str) -> None:
        with self._lock:
            self._records.pop(key, None)

    def where(self, field_name: str) -> _WhereClause:
        return _WhereClause(self, field_name)

    def to_list(self) -> List[Any]:
        return self._select(lambda _r: True)

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def _select(self, predicate: Callable[[Any], bool]) -> List[Any]:
        with self._lock:
            return [copy.deepcopy(r) for r in self._records.values() if predicate(r)]

    def _delete_where(self, predicate: Callable[[Any], bool]) -> int:
        with self._lock:
            keys = [k for k, r in self._records.items() if predicate(r)]
            for key in keys:
                del self._records[key]
            return len(keys)

    def _key_of(self, record: Any) -> str:
        key = _get_field(record, self._key_field)
        if key:
            return key
        # auto-key for plain documents such as history entries
        if isinstance(record, dict):
            record[self._key_field] = new_id()
            return record[self._key_field]
        raise ValidationError(f"Record for {self.name} has no {self._key_field}")


class InMemoryDocumentStore(DocumentStorePort):
    def __init__(self, version: int = SCHEMA_VERSION) -> None:
        if version not in SCHEMA_VERSIONS:
            raise ValidationError(f"Unknown schema version: {version}")
        self._version = 0
        self._tables: Dict[str, InMemoryTable] = {}
        self._lock = Lock()
        self.upgrade(version)

    @property
    def version(self) -> int:
        return self._version

    def table(self, name: str) -> InMemoryTable:
        with self._lock:
            table = self._tables.get(name)
        if table is None:
            raise ValidationError(f"Unknown table: {name} (schema version {self._version})")
        return table

    def table_names(self) -> List[str]:
        with self._lock:
            return list(self._tables)

    def upgrade(self, target: int = SCHEMA_VERSION) -> None:
        """Add the record sets declared up to `target`; existing data is kept."""
        if target not in SCHEMA_VERSIONS:
            raise ValidationError(f"Unknown schema version: {target}")
        if target < self._version:
            raise ValidationError(f"Cannot downgrade schema from {self._version} to {target}")
        with self._lock:
            for name in SCHEMA_VERSIONS[target]:
                self._tables.setdefault(name, InMemoryTable(name))
            self._version = target
