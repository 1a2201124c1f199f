"""Document-store facade over SQLAlchemy.

The game only needs a handful of conditional operations from its storage:
read a document by key, create it only if absent, merge fields into it,
increment a numeric field atomically, raise a field to a maximum, and
query / subscribe to an ordered, capped slice of a collection. Each
collection maps onto one model whose primary key column is ``key``.

Uniqueness and atomicity are enforced by the database (primary key
constraints, ``UPDATE ... SET x = x + n``, ``UPDATE ... WHERE x < n``),
never by read-then-write in Python.
"""
import threading
from dataclasses import dataclass, field
from functools import wraps
from typing import Any, Callable, Dict, List, Optional, Union

from flask import current_app
from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError, OperationalError

from whosejunk import db
from whosejunk.exceptions import StoreUnavailable
from whosejunk.models import Attempt, SeasonCounter


COLLECTIONS = {
    'attempts': Attempt,
    'seasons': SeasonCounter,
}


class _ServerTimestamp:
    def __repr__(self):
        return 'SERVER_TIMESTAMP'


# Placeholder resolved to the database clock at write time
SERVER_TIMESTAMP = _ServerTimestamp()


@dataclass(frozen=True)
class Ack:
    collection: str
    key: str
    document: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class Conflict:
    collection: str
    key: str


WriteResult = Union[Ack, Conflict]


@dataclass(frozen=True)
class Query:
    collection: str
    where: Dict[str, Any] = field(default_factory=dict)
    order_by: Optional[str] = None
    descending: bool = True
    limit: Optional[int] = None


class Subscription:
    """Live view of a query. Receives a snapshot now and after each change."""

    def __init__(self, store: 'DocumentStore', query: Query, listener: Callable[[List[dict]], None]):
        self.query = query
        self.latest: Optional[List[dict]] = None
        self.active = True
        self._store = store
        self._listener = listener

    def deliver(self, snapshot: List[dict]) -> bool:
        if not self.active or snapshot == self.latest:
            return False
        self.latest = snapshot
        self._listener(snapshot)
        return True

    def cancel(self) -> None:
        if self.active:
            self.active = False
            self._store._unregister(self)


def _guarded(func):
    """Roll back and raise StoreUnavailable when the database is unreachable."""
    @wraps(func)
    def wrapper(self, *args, **kwargs):
        try:
            return func(self, *args, **kwargs)
        except OperationalError as exc:
            db.session.rollback()
            current_app.logger.error(f"[store] {func.__name__} failed: {exc}")
            raise StoreUnavailable('The leaderboard is unavailable right now, please try again.') from exc
    return wrapper


class DocumentStore:

    def __init__(self):
        self._subscriptions: List[Subscription] = []
        self._lock = threading.Lock()

    def _model(self, collection):
        try:
            return COLLECTIONS[collection]
        except KeyError:
            raise ValueError(f"Unknown collection: {collection}") from None

    @staticmethod
    def _resolve(fields):
        return {
            name: (db.func.now() if value is SERVER_TIMESTAMP else value)
            for name, value in fields.items()
        }

    @_guarded
    def get_document(self, collection: str, key: str) -> Optional[dict]:
        model = self._model(collection)
        stmt = select(model).where(model.key == key).execution_options(populate_existing=True)
        obj = db.session.execute(stmt).scalar_one_or_none()
        return obj.to_dict() if obj else None

    @_guarded
    def create_only(self, collection: str, key: str, fields: Dict[str, Any]) -> WriteResult:
        """Insert the document, or report a Conflict if the key is taken."""
        model = self._model(collection)
        try:
            db.session.execute(insert(model).values(key=key, **self._resolve(fields)))
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            if self.get_document(collection, key) is None:
                # Not a key collision (e.g. a NOT NULL violation)
                raise
            return Conflict(collection, key)
        self._notify(collection)
        return Ack(collection, key, self.get_document(collection, key))

    @_guarded
    def merge_write(self, collection: str, key: str, fields: Dict[str, Any]) -> Ack:
        model = self._model(collection)
        values = self._resolve(fields)
        stmt = (
            update(model)
            .where(model.key == key)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if db.session.execute(stmt).rowcount == 0:
            try:
                db.session.execute(insert(model).values(key=key, **values))
            except IntegrityError:
                # Created concurrently; fall back to updating it
                db.session.rollback()
                db.session.execute(stmt)
        db.session.commit()
        self._notify(collection)
        return Ack(collection, key, self.get_document(collection, key))

    @_guarded
    def increment_field(self, collection: str, key: str, field_name: str, delta: int) -> Ack:
        """Atomically add ``delta`` to a numeric field (missing documents start at 0)."""
        model = self._model(collection)
        column = getattr(model, field_name)
        bump = (
            update(model)
            .where(model.key == key)
            .values({field_name: column + delta})
            .execution_options(synchronize_session=False)
        )
        if db.session.execute(bump).rowcount == 0:
            try:
                db.session.execute(insert(model).values(key=key, **{field_name: delta}))
            except IntegrityError:
                db.session.rollback()
                db.session.execute(bump)
        value = db.session.execute(select(column).where(model.key == key)).scalar_one()
        db.session.commit()
        current_app.logger.info(f"[store] {collection}/{key}.{field_name} += {delta} -> {value}")
        self._notify(collection)
        return Ack(collection, key, self.get_document(collection, key))

    @_guarded
    def max_field(self, collection: str, key: str, field_name: str, value: int,
                  fields: Optional[Dict[str, Any]] = None) -> Ack:
        """Raise a numeric field to ``value`` unless it already holds at least that.

        The comparison runs inside the UPDATE, so a stale caller can never
        lower a stored value. ``fields`` are written alongside a raise and on
        first insert.
        """
        model = self._model(collection)
        column = getattr(model, field_name)
        values = self._resolve(dict(fields or {}, **{field_name: value}))
        raise_stmt = (
            update(model)
            .where(model.key == key, column < value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if db.session.execute(raise_stmt).rowcount == 0:
            try:
                db.session.execute(insert(model).values(key=key, **values))
            except IntegrityError:
                # Already present: either higher already, or created concurrently
                db.session.rollback()
                if self.get_document(collection, key) is None:
                    raise
                db.session.execute(raise_stmt)
        db.session.commit()
        self._notify(collection)
        return Ack(collection, key, self.get_document(collection, key))

    @_guarded
    def query(self, q: Query) -> List[dict]:
        model = self._model(q.collection)
        stmt = select(model)
        for name, value in q.where.items():
            stmt = stmt.where(getattr(model, name) == value)
        if q.order_by:
            column = getattr(model, q.order_by)
            stmt = stmt.order_by(column.desc() if q.descending else column.asc(), model.key.asc())
        else:
            stmt = stmt.order_by(model.key.asc())
        if q.limit is not None:
            stmt = stmt.limit(q.limit)
        stmt = stmt.execution_options(populate_existing=True)
        return [obj.to_dict() for obj in db.session.execute(stmt).scalars()]

    def subscribe(self, q: Query, listener: Callable[[List[dict]], None]) -> Subscription:
        """Register a listener; it gets the current snapshot before this returns."""
        self._model(q.collection)
        sub = Subscription(self, q, listener)
        with self._lock:
            self._subscriptions.append(sub)
        try:
            sub.deliver(self.query(q))
        except Exception:
            sub.cancel()
            raise
        return sub

    def subscription_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def _unregister(self, sub: Subscription) -> None:
        with self._lock:
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)

    def _notify(self, collection: str) -> None:
        with self._lock:
            watchers = [s for s in self._subscriptions if s.active and s.query.collection == collection]
        for sub in watchers:
            try:
                sub.deliver(self.query(sub.query))
            except Exception:
                # A failing listener must not undo a write that already committed
                current_app.logger.exception(f"[store] listener failed for {collection}")


def get_store() -> DocumentStore:
    return current_app.extensions['document_store']
