"""
Remote data gateway contract

The session consumes the hosted backend only through this interface:
row-level query/insert/update plus a per-table change feed. Rows use the
backend's flat snake_case storage naming; conversion to domain entities
happens in ``gateway.mapping``.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Collection, Dict, List, Mapping, Optional, Protocol, Sequence, runtime_checkable

from ..data.models import EventType

Row = Dict[str, Any]

TABLES = ("profiles", "medical_records", "injuries", "training_logs", "messages", "teams")


@dataclass(frozen=True)
class RowFilter:
    """Row predicate shared by queries and change-feed subscriptions.

    ``equals`` fields must all match, ``members`` fields must be one of the
    given values, and when ``either`` is set at least one of its
    field/value pairs must match.
    """
    equals: Mapping[str, Any] = field(default_factory=dict)
    members: Mapping[str, Collection[Any]] = field(default_factory=dict)
    either: Mapping[str, Any] = field(default_factory=dict)

    def matches(self, row: Mapping[str, Any]) -> bool:
        for key, value in self.equals.items():
            if row.get(key) != value:
                return False
        for key, values in self.members.items():
            if row.get(key) not in values:
                return False
        if self.either and not any(row.get(k) == v for k, v in self.either.items()):
            return False
        return True


ALL_ROWS = RowFilter()


@dataclass(frozen=True)
class ChangeEvent:
    """Change-feed notification for one committed row"""
    event_type: EventType
    table: str
    record: Row


ChangeCallback = Callable[[ChangeEvent], None]


class Subscription:
    """Handle returned by ``subscribe``; call ``unsubscribe`` on teardown"""

    def __init__(self, table: str, row_filter: RowFilter, callback: ChangeCallback,
                 events: Collection[EventType], on_close: Callable[["Subscription"], None]):
        self.table = table
        self.row_filter = row_filter
        self.callback = callback
        self.events = frozenset(events)
        self._on_close = on_close
        self.active = True

    def wants(self, event: ChangeEvent) -> bool:
        return (
            self.active
            and event.table == self.table
            and event.event_type in self.events
            and self.row_filter.matches(event.record)
        )

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._on_close(self)

    def __repr__(self):
        return f"Subscription(table='{self.table}', active={self.active})"


@runtime_checkable
class RemoteDataGateway(Protocol):
    """Async access to the hosted relational backend"""

    async def query(self, table: str, row_filter: RowFilter = ALL_ROWS,
                    order_by: Optional[str] = None, descending: bool = False) -> List[Row]:
        ...

    async def insert(self, table: str, row: Row) -> Row:
        ...

    async def update(self, table: str, id: str, patch: Row) -> Row:
        ...

    def subscribe(self, table: str, row_filter: RowFilter, callback: ChangeCallback,
                  events: Sequence[EventType] = (EventType.INSERT, EventType.UPDATE)) -> Subscription:
        ...
