#!/usr/bin/env python3
"""
SQL Gateway - Reference backend on SQLAlchemy with an in-process change feed
"""

import asyncio
import copy
import logging
import threading
import uuid
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import create_engine, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ..data.models import EventType
from ..errors import PersistenceError, QueryError
from .base import ALL_ROWS, ChangeCallback, ChangeEvent, Row, RowFilter, Subscription
from .tables import Base, TABLE_MODELS

logger = logging.getLogger(__name__)

class SqlGateway:
    """Remote data gateway backed by a relational database.

    Blocking database work runs in a worker thread, serialized by a lock,
    so the event loop never waits on I/O. Change events are delivered to
    subscribers on a later turn of the event loop, so the writer sees its
    own persist result before the feed echo arrives.
    """

    def __init__(self, database_url: str = "sqlite:///:memory:"):
        self.database_url = database_url
        engine_kwargs: Dict[str, Any] = {}
        if database_url.startswith("sqlite"):
            # sessions are opened from worker threads
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in database_url:
                # one shared connection, or every session sees an empty database
                engine_kwargs["poolclass"] = StaticPool
        self.engine = create_engine(database_url, **engine_kwargs)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(bind=self.engine, expire_on_commit=False)
        self._lock = threading.Lock()
        self._subscriptions: List[Subscription] = []
        logger.info(f"SQL gateway ready ({self.engine.dialect.name})")

    # Helpers

    def _model(self, table: str):
        try:
            return TABLE_MODELS[table]
        except KeyError:
            raise KeyError(f"Unknown table '{table}'") from None

    @staticmethod
    def _primary_key(model) -> str:
        return model.__table__.primary_key.columns.values()[0].name

    @staticmethod
    def _to_row(obj) -> Row:
        return {column.name: copy.deepcopy(getattr(obj, column.name)) for column in obj.__table__.columns}

    def _column(self, model, table: str, name: str):
        if name not in model.__table__.columns:
            raise QueryError(f"Unknown column '{name}'", table=table)
        return getattr(model, name)

    # Reads

    async def query(self, table: str, row_filter: RowFilter = ALL_ROWS,
                    order_by: Optional[str] = None, descending: bool = False) -> List[Row]:
        """Select rows matching the filter"""
        model = self._model(table)

        def _do() -> List[Row]:
            with self._lock:
                session = self.Session()
                try:
                    q = session.query(model)
                    for key, value in row_filter.equals.items():
                        q = q.filter(self._column(model, table, key) == value)
                    for key, values in row_filter.members.items():
                        q = q.filter(self._column(model, table, key).in_(list(values)))
                    if row_filter.either:
                        q = q.filter(or_(*[
                            self._column(model, table, key) == value for key, value in row_filter.either.items()
                        ]))
                    if order_by:
                        column = self._column(model, table, order_by)
                        q = q.order_by(column.desc() if descending else column.asc())
                    return [self._to_row(obj) for obj in q.all()]
                except SQLAlchemyError as e:
                    logger.error(f"Query on '{table}' failed: {e}")
                    raise QueryError(f"Query on '{table}' failed: {e}", table=table) from e
                finally:
                    session.close()

        rows = await asyncio.to_thread(_do)
        logger.debug(f"Query on '{table}' returned {len(rows)} rows")
        return rows

    # Writes

    async def insert(self, table: str, row: Row) -> Row:
        """Insert a row; the backend mints the canonical id when none is given"""
        model = self._model(table)
        pk = self._primary_key(model)
        values = dict(row)
        if not values.get(pk):
            values[pk] = uuid.uuid4().hex
        unknown = set(values) - set(model.__table__.columns.keys())
        if unknown:
            raise PersistenceError(f"Unknown columns for '{table}': {sorted(unknown)}", table=table)

        def _do() -> Row:
            with self._lock:
                session = self.Session()
                try:
                    obj = model(**values)
                    session.add(obj)
                    session.commit()
                    return self._to_row(obj)
                except SQLAlchemyError as e:
                    session.rollback()
                    logger.error(f"Insert into '{table}' failed: {e}")
                    raise PersistenceError(f"Insert into '{table}' failed: {e}", table=table) from e
                finally:
                    session.close()

        confirmed = await asyncio.to_thread(_do)
        logger.debug(f"Inserted '{table}' row {confirmed[pk]}")
        self._publish(ChangeEvent(EventType.INSERT, table, confirmed))
        return copy.deepcopy(confirmed)

    async def update(self, table: str, id: str, patch: Row) -> Row:
        """Apply a partial update to one row"""
        model = self._model(table)
        unknown = set(patch) - set(model.__table__.columns.keys())
        if unknown:
            raise PersistenceError(f"Unknown columns for '{table}': {sorted(unknown)}", table=table)

        def _do() -> Row:
            with self._lock:
                session = self.Session()
                try:
                    obj = session.get(model, id)
                    if obj is None:
                        raise PersistenceError(f"No '{table}' row with id {id}", table=table)
                    for key, value in patch.items():
                        setattr(obj, key, copy.deepcopy(value))
                    session.commit()
                    return self._to_row(obj)
                except SQLAlchemyError as e:
                    session.rollback()
                    logger.error(f"Update of '{table}' row {id} failed: {e}")
                    raise PersistenceError(f"Update of '{table}' row {id} failed: {e}", table=table) from e
                finally:
                    session.close()

        confirmed = await asyncio.to_thread(_do)
        logger.debug(f"Updated '{table}' row {id}: {sorted(patch)}")
        self._publish(ChangeEvent(EventType.UPDATE, table, confirmed))
        return copy.deepcopy(confirmed)

    # Change feed

    def subscribe(self, table: str, row_filter: RowFilter, callback: ChangeCallback,
                  events: Sequence[EventType] = (EventType.INSERT, EventType.UPDATE)) -> Subscription:
        """Register a change-feed callback for one table"""
        self._model(table)
        subscription = Subscription(table, row_filter, callback, events, on_close=self._remove_subscription)
        self._subscriptions.append(subscription)
        logger.debug(f"Subscribed to '{table}' ({', '.join(e.value for e in subscription.events)})")
        return subscription

    def _remove_subscription(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
            logger.debug(f"Unsubscribed from '{subscription.table}'")

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    def _publish(self, event: ChangeEvent) -> None:
        targets = [s for s in self._subscriptions if s.wants(event)]
        if not targets:
            return
        loop = asyncio.get_running_loop()
        for subscription in targets:
            loop.call_soon(self._deliver, subscription, ChangeEvent(
                event.event_type, event.table, copy.deepcopy(event.record)
            ))

    @staticmethod
    def _deliver(subscription: Subscription, event: ChangeEvent) -> None:
        # torn down between commit and delivery
        if not subscription.active:
            return
        try:
            subscription.callback(event)
        except Exception as e:
            logger.error(f"Change handler for '{event.table}' failed: {e}", exc_info=True)

    def dispose(self) -> None:
        for subscription in list(self._subscriptions):
            subscription.unsubscribe()
        self.engine.dispose()
