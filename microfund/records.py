"""
Record Store Module

Base record type with dict conversion, per-entity-type identifier generation,
and the in-memory store holding every collection. The store enforces id
uniqueness per collection and applies each mutation atomically: a block that
raises leaves every collection exactly as it was.
"""

from contextlib import contextmanager
from dataclasses import dataclass, fields, MISSING
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Dict, Hashable, Iterator, List, Optional, Union, get_args, get_origin, get_type_hints
import uuid

from .exceptions import DuplicateRecordError, RecordNotFoundError


# Scope sentinel for the consolidated view across all branches
ALL_BRANCHES = "ALL"

COLLECTIONS = (
    "branches",
    "bank_accounts",
    "clients",
    "loans",
    "dps",
    "fdr",
    "transactions",
    "users",
)

# Collections whose records carry a branch_id and are narrowed by scope
BRANCH_SCOPED_COLLECTIONS = (
    "bank_accounts",
    "clients",
    "loans",
    "dps",
    "fdr",
    "transactions",
)


def new_id(prefix: str) -> str:
    """Generate a collision-resistant id scoped to an entity type"""
    return f"{prefix}_{uuid.uuid4().hex}"


def _to_storable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def as_utc(value: datetime) -> datetime:
    """Timezone-aware UTC datetime; a naive value is taken to be UTC"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _from_storable(field_type: Any, value: Any) -> Any:
    if value is None:
        return None

    # Optional[X] -> X
    if get_origin(field_type) is Union:
        candidates = [arg for arg in get_args(field_type) if arg is not type(None)]
        field_type = candidates[0] if candidates else Any

    if field_type is Decimal:
        if isinstance(value, Decimal):
            return value
        try:
            return Decimal(str(value))
        except InvalidOperation:
            raise ValueError(f"Invalid decimal value: {value!r}")
    if field_type is datetime:
        return as_utc(value if isinstance(value, datetime) else datetime.fromisoformat(value))
    if field_type is date:
        return value if isinstance(value, date) else date.fromisoformat(value)
    if isinstance(field_type, type) and issubclass(field_type, Enum):
        return value if isinstance(value, field_type) else field_type(value)
    return value


@dataclass(frozen=True)
class Record:
    """Base class for every stored entity"""
    id: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-safe dictionary"""
        return {f.name: _to_storable(getattr(self, f.name)) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Record':
        """Create instance from dictionary, ignoring unknown keys"""
        hints = get_type_hints(cls)
        kwargs = {}
        for f in fields(cls):
            if f.name in data:
                kwargs[f.name] = _from_storable(hints[f.name], data[f.name])
            elif f.default is MISSING and f.default_factory is MISSING:
                raise KeyError(f"{cls.__name__} record is missing field '{f.name}'")
        return cls(**kwargs)


class RecordStore:
    """
    In-memory collections of every entity.

    Records are frozen; status and balance transitions replace the record in
    its collection. `version` increases by one for every committed mutation
    so derived views can be cached against it.
    """

    def __init__(self, **collections: List[Record]):
        unknown = set(collections) - set(COLLECTIONS)
        if unknown:
            raise ValueError(f"Unknown collections: {sorted(unknown)}")

        for name in COLLECTIONS:
            records = list(collections.get(name, []))
            ids = [record.id for record in records]
            if len(ids) != len(set(ids)):
                raise DuplicateRecordError(f"Duplicate ids in {name}")
            setattr(self, name, records)

        self.version = 0
        self._atomic_depth = 0

    def collection(self, name: str) -> List[Record]:
        """Get a collection by name"""
        if name not in COLLECTIONS:
            raise ValueError(f"Unknown collection: {name}")
        return getattr(self, name)

    def get(self, name: str, record_id: str) -> Optional[Record]:
        """Get a record by id, or None"""
        for record in self.collection(name):
            if record.id == record_id:
                return record
        return None

    def require(self, name: str, record_id: str, kind: str) -> Record:
        """Get a record by id or raise RecordNotFoundError"""
        record = self.get(name, record_id)
        if record is None:
            raise RecordNotFoundError(kind, record_id)
        return record

    def find(self, name: str, **filters: Any) -> List[Record]:
        """Find records whose attributes equal the given filters"""
        return [
            record for record in self.collection(name)
            if all(getattr(record, key, None) == value for key, value in filters.items())
        ]

    def insert(self, name: str, record: Record) -> Record:
        """Append a record, enforcing id uniqueness"""
        records = self.collection(name)
        if any(existing.id == record.id for existing in records):
            raise DuplicateRecordError(f"{name} already contains a record with id {record.id}")
        records.append(record)
        return record

    def replace(self, name: str, record: Record) -> Record:
        """Swap in a new version of an existing record; returns the old one"""
        records = self.collection(name)
        for index, existing in enumerate(records):
            if existing.id == record.id:
                records[index] = record
                return existing
        raise RecordNotFoundError(name, record.id)

    @contextmanager
    def atomic(self) -> Iterator['RecordStore']:
        """
        Apply a mutation as one indivisible step.

        On any exception every collection is restored and the version is left
        unchanged. Nested blocks join the outermost one.
        """
        if self._atomic_depth:
            self._atomic_depth += 1
            try:
                yield self
            finally:
                self._atomic_depth -= 1
            return

        saved = {name: list(getattr(self, name)) for name in COLLECTIONS}
        self._atomic_depth = 1
        try:
            yield self
        except BaseException:
            for name, records in saved.items():
                setattr(self, name, records)
            raise
        else:
            self.version += 1
        finally:
            self._atomic_depth = 0

    def counts(self) -> Dict[str, int]:
        """Number of records per collection"""
        return {name: len(getattr(self, name)) for name in COLLECTIONS}

    def __eq__(self, other) -> bool:
        if not isinstance(other, RecordStore):
            return NotImplemented
        return all(getattr(self, name) == getattr(other, name) for name in COLLECTIONS)

    def __repr__(self) -> str:
        return f"RecordStore(version={self.version}, counts={self.counts()})"


class VersionedCache:
    """
    Memoizes values derived from a store, keyed on (store, version, key).

    Entries are dropped as soon as a different store or a newer version is
    seen, so a cached value can never outlive the data it was derived from.
    """

    def __init__(self):
        self._store: Optional[RecordStore] = None
        self._version: Optional[int] = None
        self._entries: Dict[Hashable, Any] = {}
        self.hits = 0
        self.misses = 0

    def get(self, store: RecordStore, key: Hashable, factory: Callable[[], Any]) -> Any:
        if store is not self._store or store.version != self._version:
            self._store = store
            self._version = store.version
            self._entries = {}

        if key in self._entries:
            self.hits += 1
            return self._entries[key]

        self.misses += 1
        value = factory()
        self._entries[key] = value
        return value
