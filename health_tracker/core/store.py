#!/usr/bin/env python3
"""
Reconciliation Store - Canonical client-side entity state

Merges three input streams per entity table without duplicating rows:
local optimistic writes, server-confirmed persist results, and change-feed
events pushed by the backend. Records move from absent to provisional
(local insert) to confirmed (persist result or feed event); there is no
delete state.

Optimistic records carry a client-minted correlation id that the backend
stores and echoes back, so the confirmed row replaces its provisional
counterpart even when the canonical id differs.
"""

import enum
import logging
import time
import uuid
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Iterator, List, Optional

from ..data.models import EventType
from ..errors import RecordNotFoundError

logger = logging.getLogger(__name__)

PROVISIONAL_PREFIX = "tmp_"

Listener = Callable[[str, Any], None]

class RecordState(str, enum.Enum):
    PROVISIONAL = "provisional"
    CONFIRMED = "confirmed"

@dataclass
class StoreEntry:
    """Stored record with its reconciliation state"""
    record: Any
    state: RecordState
    timestamp: float

def new_correlation_id() -> str:
    return uuid.uuid4().hex

def new_provisional_id() -> str:
    return f"{PROVISIONAL_PREFIX}{uuid.uuid4().hex}"

class EntityStore:
    """In-memory collection of one entity type keyed by id"""

    def __init__(self, name: str):
        self.name = name
        self._entries: Dict[str, StoreEntry] = {}
        self._correlations: Dict[str, str] = {}  # correlation id -> current key
        self._listeners: List[Listener] = []
        self.duplicates_suppressed = 0

    # Mutations

    def apply_local_insert(self, record: Any) -> Any:
        """Show a client-side record immediately, before the backend confirms it"""
        if record.id is None:
            record = replace(record, id=new_provisional_id())
        if record.correlation_id is None:
            record = replace(record, correlation_id=new_correlation_id())

        if record.id in self._entries:
            logger.debug(f"[{self.name}] local insert for existing id {record.id} ignored")
            return self._entries[record.id].record

        self._entries[record.id] = StoreEntry(record, RecordState.PROVISIONAL, time.time())
        self._correlations[record.correlation_id] = record.id
        logger.debug(f"[{self.name}] provisional insert {record.id} (ref {record.correlation_id})")
        self._notify(record)
        return record

    def apply_local_update(self, record: Any) -> Any:
        """Optimistically overwrite a record the store already holds"""
        entry = self._entries.get(record.id)
        if entry is None:
            raise RecordNotFoundError(f"[{self.name}] no record with id {record.id}")
        self._entries[record.id] = StoreEntry(record, entry.state, time.time())
        logger.debug(f"[{self.name}] optimistic update {record.id}")
        self._notify(record)
        return record

    def apply_server_confirmed(self, record: Any) -> Any:
        """Install the authoritative record returned by a successful persist"""
        entry = StoreEntry(record, RecordState.CONFIRMED, time.time())
        provisional_key = self._provisional_key_for(record)

        if provisional_key is not None:
            self._promote(provisional_key, entry)
            logger.debug(f"[{self.name}] confirmed {provisional_key} as {record.id}")
        else:
            self._entries[record.id] = entry
            logger.debug(f"[{self.name}] confirmed {record.id}")

        if record.correlation_id:
            self._correlations[record.correlation_id] = record.id
        self._notify(record)
        return record

    def apply_remote_event(self, event_type: EventType, record: Any) -> bool:
        """Merge a change-feed event; returns False when it changed nothing.

        Inserts for an id already present are dropped (the feed echoes this
        session's own writes). Updates always overwrite in arrival order.
        """
        if event_type == EventType.INSERT:
            if record.id in self._entries:
                self.duplicates_suppressed += 1
                logger.debug(f"[{self.name}] duplicate insert for {record.id} suppressed")
                return False
            entry = StoreEntry(record, RecordState.CONFIRMED, time.time())
            provisional_key = self._provisional_key_for(record)
            if provisional_key is not None:
                # feed echo overtook the persist result
                self._promote(provisional_key, entry)
                logger.debug(f"[{self.name}] feed confirmed {provisional_key} as {record.id}")
            else:
                self._entries[record.id] = entry
                logger.debug(f"[{self.name}] remote insert {record.id}")
        elif event_type == EventType.UPDATE:
            entry = StoreEntry(record, RecordState.CONFIRMED, time.time())
            provisional_key = self._provisional_key_for(record)
            if provisional_key is not None:
                # update overtook both the insert echo and the persist result
                self._promote(provisional_key, entry)
                logger.debug(f"[{self.name}] feed update confirmed {provisional_key} as {record.id}")
            else:
                self._entries[record.id] = entry
                logger.debug(f"[{self.name}] remote update {record.id}")
        else:
            raise ValueError(f"Unsupported event type: {event_type}")

        if record.correlation_id:
            self._correlations[record.correlation_id] = record.id
        self._notify(record)
        return True

    def _provisional_key_for(self, record: Any) -> Optional[str]:
        if not record.correlation_id:
            return None
        key = self._correlations.get(record.correlation_id)
        if key is None or key == record.id:
            return None
        entry = self._entries.get(key)
        if entry is None or entry.state != RecordState.PROVISIONAL:
            return None
        return key

    def _promote(self, provisional_key: str, entry: StoreEntry) -> None:
        """Replace a provisional entry with its confirmed record, keeping its position"""
        new_key = entry.record.id
        if new_key in self._entries:
            del self._entries[provisional_key]
            self._entries[new_key] = entry
            return
        self._entries = {
            (new_key if key == provisional_key else key): (entry if key == provisional_key else value)
            for key, value in self._entries.items()
        }

    # Reads

    def get(self, id: str, default: Any = None) -> Any:
        entry = self._entries.get(id)
        if entry is None:
            logger.debug(f"[{self.name}] miss for {id}")
            return default
        return entry.record

    def has(self, id: str) -> bool:
        return id in self._entries

    def state_of(self, id: str) -> Optional[RecordState]:
        entry = self._entries.get(id)
        return entry.state if entry else None

    def find_by_correlation(self, correlation_id: str) -> Any:
        key = self._correlations.get(correlation_id)
        return self.get(key) if key else None

    def list(self, predicate: Optional[Callable[[Any], bool]] = None) -> List[Any]:
        records = [entry.record for entry in self._entries.values()]
        if predicate is None:
            return records
        return [r for r in records if predicate(r)]

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, id: object) -> bool:
        return id in self._entries

    def __iter__(self) -> Iterator[Any]:
        return iter(self.list())

    # Listeners

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(table, record)`` after every change; returns a remover"""
        self._listeners.append(listener)

        def remove():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return remove

    def _notify(self, record: Any) -> None:
        for listener in list(self._listeners):
            try:
                listener(self.name, record)
            except Exception as e:
                logger.error(f"[{self.name}] listener failed: {e}", exc_info=True)

    def get_stats(self) -> Dict[str, Any]:
        provisional = sum(1 for e in self._entries.values() if e.state == RecordState.PROVISIONAL)
        return {
            "total_entries": len(self._entries),
            "provisional": provisional,
            "confirmed": len(self._entries) - provisional,
            "duplicates_suppressed": self.duplicates_suppressed,
        }

class ReconciliationStore:
    """One entity store per table; the single owner of a session's state"""

    TABLES = ("profiles", "medical_records", "injuries", "training_logs", "messages", "teams")

    def __init__(self):
        self._stores = {name: EntityStore(name) for name in self.TABLES}

    def table(self, name: str) -> EntityStore:
        try:
            return self._stores[name]
        except KeyError:
            raise KeyError(f"Unknown table '{name}'") from None

    @property
    def profiles(self) -> EntityStore:
        return self._stores["profiles"]

    @property
    def medical_records(self) -> EntityStore:
        return self._stores["medical_records"]

    @property
    def injuries(self) -> EntityStore:
        return self._stores["injuries"]

    @property
    def training_logs(self) -> EntityStore:
        return self._stores["training_logs"]

    @property
    def messages(self) -> EntityStore:
        return self._stores["messages"]

    @property
    def teams(self) -> EntityStore:
        return self._stores["teams"]

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Listen to every table at once"""
        removers = [store.add_listener(listener) for store in self._stores.values()]

        def remove():
            for remover in removers:
                remover()
        return remove

    def get_stats(self) -> Dict[str, Any]:
        return {name: store.get_stats() for name, store in self._stores.items()}
