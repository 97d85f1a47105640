"""In-memory entity collections backed by a snapshot file."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Generic, Iterable, List, Mapping, Optional, TypeVar

from .codec import to_field_names, utc_now
from .errors import NotFound, PersistenceFailure
from .models import Record
from .persistence import JsonFileAdapter

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Record)


class EntityCollection(Generic[R]):
    """Keyed set of records of one kind with monotonically increasing ids.

    Every successful mutation rewrites the collection's file before the call
    returns. Identifiers are never reused while the process lives: the
    counter starts at ``max(loaded ids) + 1`` and only moves forward.
    """

    def __init__(self, adapter: JsonFileAdapter[R]) -> None:
        self.adapter = adapter
        self.model = adapter.model
        self._records: Dict[int, R] = {}
        self._next_id = 1
        self._lock = threading.RLock()

    @property
    def kind(self) -> str:
        return self.model.kind.value

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, record_id: object) -> bool:
        with self._lock:
            return record_id in self._records

    def load(self, defaults: Iterable[Mapping[str, Any]] = ()) -> int:
        """Populate from the data file, falling back to ``defaults``.

        Loaded records fully replace the defaults. Defaults are kept in
        memory only; they reach the file with the first mutation.
        """

        loaded = self.adapter.load()
        with self._lock:
            if loaded:
                self._records = dict(loaded)
                self._next_id = self.adapter.next_id(loaded)
                return len(self._records)
            self._records = {}
            self._next_id = 1
            for data in defaults:
                record = self._build(data)
                self._records[record.id] = record
            if self._records:
                logger.info("seeded default records", extra={"kind": self.kind, "count": len(self._records)})
            return len(self._records)

    def next_id(self) -> int:
        with self._lock:
            return self._next_id

    def get(self, record_id: int) -> Optional[R]:
        with self._lock:
            return self._records.get(record_id)

    def all(self) -> List[R]:
        with self._lock:
            return list(self._records.values())

    def find(self, predicate: Callable[[R], bool]) -> List[R]:
        with self._lock:
            return [record for record in self._records.values() if predicate(record)]

    def first(self, predicate: Callable[[R], bool]) -> Optional[R]:
        with self._lock:
            return next((record for record in self._records.values() if predicate(record)), None)

    def create(self, data: Mapping[str, Any]) -> R:
        with self._lock:
            before, next_before = dict(self._records), self._next_id
            record = self._build(data)
            self._records[record.id] = record
            self._save(before, next_before)
            return record

    def update(self, record_id: int, fields: Mapping[str, Any]) -> R:
        changes = to_field_names(self.model, fields)
        changes.pop("id", None)
        with self._lock:
            existing = self._records.get(record_id)
            if existing is None:
                raise NotFound(self.kind, record_id)
            merged = {**existing.model_dump(), **changes}
            now = utc_now()
            for name in self.model.touch_on_update:
                merged[name] = now
            record = self.model.model_validate(merged)
            before = dict(self._records)
            self._records[record_id] = record
            self._save(before, self._next_id)
            return record

    def delete(self, record_id: int) -> bool:
        with self._lock:
            if record_id not in self._records:
                raise NotFound(self.kind, record_id)
            before = dict(self._records)
            del self._records[record_id]
            self._save(before, self._next_id)
            return True

    def restore(self, records: Iterable[R]) -> None:
        """Put previously removed records back under their own ids."""
        with self._lock:
            before = dict(self._records)
            merged = {**self._records, **{record.id: record for record in records}}
            self._records = dict(sorted(merged.items()))
            self._save(before, self._next_id)

    def delete_where(self, predicate: Callable[[R], bool]) -> List[R]:
        """Remove every matching record with a single save; return them."""
        with self._lock:
            doomed = [record for record in self._records.values() if predicate(record)]
            if not doomed:
                return []
            before = dict(self._records)
            for record in doomed:
                del self._records[record.id]
            self._save(before, self._next_id)
            return doomed

    def _build(self, data: Mapping[str, Any]) -> R:
        fields = to_field_names(self.model, data)
        fields.pop("id", None)
        now = utc_now()
        for name in self.model.stamp_on_create:
            fields[name] = now
        for name in self.model.cleared_on_create:
            fields[name] = None
        record = self.model.model_validate({**fields, "id": self._next_id})
        self._next_id += 1
        return record

    def _save(self, before: Dict[int, R], next_before: int) -> None:
        try:
            self.adapter.save(self._records.values())
        except PersistenceFailure:
            self._records = before
            self._next_id = next_before
            raise
