"""Keyed diff between two record collections.

Records are compared by a SHA-256 of their canonical serialization
(JSON with sorted keys), so field order never produces a false update.
"""

import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


@dataclass
class RecordUpdate(Generic[T]):
    previous: T
    next: T


@dataclass
class DiffResult(Generic[T]):
    added: list[T] = field(default_factory=list)
    removed: list[T] = field(default_factory=list)
    updated: list[RecordUpdate[T]] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.removed or self.updated)

    def summary(self) -> dict[str, int]:
        return {
            "added": len(self.added),
            "removed": len(self.removed),
            "updated": len(self.updated),
        }


def _canonical(record: Any) -> str:
    """Serialize a record to a key-order-independent string."""
    if isinstance(record, BaseModel):
        payload = record.model_dump(mode="json")
    else:
        payload = record
    return json.dumps(payload, sort_keys=True, default=str, separators=(",", ":"))


def compute_record_hash(record: Any) -> str:
    """SHA-256 hex of a record's canonical serialization."""
    return hashlib.sha256(_canonical(record).encode("utf-8")).hexdigest()


def diff_by_key(
    current: list[T],
    next_records: list[T],
    key_of: Callable[[T], str],
) -> DiffResult[T]:
    """Compute added/removed/updated records between two collections.

    When a key repeats within one side, the last record with that key wins.
    Output lists follow the insertion order of their source collection.
    """
    current_map = {key_of(record): record for record in current}
    next_map = {key_of(record): record for record in next_records}

    result: DiffResult[T] = DiffResult()
    for key, record in next_map.items():
        if key not in current_map:
            result.added.append(record)
            continue
        existing = current_map[key]
        if compute_record_hash(existing) != compute_record_hash(record):
            result.updated.append(RecordUpdate(previous=existing, next=record))

    for key, record in current_map.items():
        if key not in next_map:
            result.removed.append(record)

    return result
