"""
Realtime change feed for sales, sale products and themes.

Row changes are collected from the SQLAlchemy session at flush time and
delivered to subscribers once the transaction commits, in commit order.
A rolled back transaction delivers nothing.

Usage:
    feed = get_change_feed()
    sub = feed.subscribe('sale_products', on_change, row_filter={'sale_id': sale_id})
    ...
    sub.unsubscribe()
"""
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import event, inspect
from sqlalchemy.orm.exc import ObjectDeletedError

logger = logging.getLogger(__name__)

INSERT = 'INSERT'
UPDATE = 'UPDATE'
DELETE = 'DELETE'

WATCHED_TABLES = ('sales', 'sale_products', 'themes')

_PENDING_KEY = 'realtime_pending_changes'


@dataclass
class ChangeEvent:
    """Row event payload: `new` is empty for deletes, `old` carries the prior row."""
    event_type: str
    table: str
    new: Dict[str, Any] = field(default_factory=dict)
    old: Dict[str, Any] = field(default_factory=dict)

    @property
    def record(self) -> Dict[str, Any]:
        return self.new if self.event_type != DELETE else self.old


class Subscription:
    """Handle returned by `ChangeFeed.subscribe`; must be released with `unsubscribe()`."""

    def __init__(self, feed: 'ChangeFeed', table: str, callback: Callable[[ChangeEvent], None],
                 row_filter: Optional[Dict[str, Any]] = None):
        self.feed = feed
        self.table = table
        self.callback = callback
        self.row_filter = dict(row_filter or {})
        self.active = True

    def matches(self, change: ChangeEvent) -> bool:
        if change.table != self.table:
            return False
        record = change.record
        return all(record.get(key) == value for key, value in self.row_filter.items())

    def unsubscribe(self) -> None:
        if self.active:
            self.feed._remove(self)
            self.active = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.unsubscribe()


class ChangeFeed:
    """In-process publisher of committed row changes."""

    def __init__(self):
        self._subscriptions: List[Subscription] = []
        self._lock = threading.Lock()
        self._attached = set()

    def subscribe(self, table: str, callback: Callable[[ChangeEvent], None],
                  row_filter: Optional[Dict[str, Any]] = None) -> Subscription:
        if table not in WATCHED_TABLES:
            raise ValueError(f"Table '{table}' is not published on the change feed")
        subscription = Subscription(self, table, callback, row_filter)
        with self._lock:
            self._subscriptions.append(subscription)
        logger.debug(f"[REALTIME] Subscribed to '{table}' filter={subscription.row_filter}")
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def publish(self, change: ChangeEvent) -> None:
        with self._lock:
            targets = [s for s in self._subscriptions if s.matches(change)]
        for subscription in targets:
            try:
                subscription.callback(change)
            except Exception as e:
                # A broken listener must not poison delivery to the others
                logger.exception(f"[REALTIME] ✗ Subscriber for '{change.table}' failed: {e}")

    def attach(self, session_factory) -> None:
        """Hook flush/commit/rollback events of a sessionmaker or scoped_session."""
        target = getattr(session_factory, 'session_factory', session_factory)
        if id(target) in self._attached:
            return
        event.listen(target, 'after_flush', self._collect)
        event.listen(target, 'after_commit', self._deliver)
        event.listen(target, 'after_rollback', self._discard)
        self._attached.add(id(target))

    def _collect(self, session, flush_context) -> None:
        pending = session.info.setdefault(_PENDING_KEY, [])
        for obj in session.new:
            table = getattr(obj, '__tablename__', None)
            if table in WATCHED_TABLES:
                pending.append(ChangeEvent(INSERT, table, new=obj.to_dict()))
        for obj in session.dirty:
            table = getattr(obj, '__tablename__', None)
            if table in WATCHED_TABLES and session.is_modified(obj, include_collections=False):
                pending.append(ChangeEvent(UPDATE, table, new=obj.to_dict(), old={'id': obj.id}))
        for obj in session.deleted:
            table = getattr(obj, '__tablename__', None)
            if table in WATCHED_TABLES:
                pending.append(ChangeEvent(DELETE, table, old=_deleted_row(obj)))

    def _deliver(self, session) -> None:
        pending = session.info.pop(_PENDING_KEY, [])
        for change in pending:
            self.publish(change)

    def _discard(self, session) -> None:
        session.info.pop(_PENDING_KEY, None)


def _deleted_row(obj) -> Dict[str, Any]:
    """Row image of a deleted object; expired attributes can no longer be loaded."""
    try:
        return obj.to_dict()
    except ObjectDeletedError:
        return {'id': inspect(obj).identity[0]}


class LiveCollection:
    """
    Local list of records kept in sync with the change feed.

    Inserts are added and the list re-sorted by the table's natural order
    (creation time descending for sales, position ascending for products),
    updates replace the record with the same id, deletes remove it.
    """

    def __init__(self, feed: ChangeFeed, table: str, records=None, order_key: str = 'position',
                 descending: bool = False, row_filter: Optional[Dict[str, Any]] = None):
        self.feed = feed
        self.table = table
        self.order_key = order_key
        self.descending = descending
        self.row_filter = row_filter
        self.records: List[Dict[str, Any]] = list(records or [])
        self._subscription: Optional[Subscription] = None
        self._sort()

    @classmethod
    def for_sales(cls, feed: ChangeFeed, records=None) -> 'LiveCollection':
        return cls(feed, 'sales', records, order_key='created_at', descending=True)

    @classmethod
    def for_products(cls, feed: ChangeFeed, sale_id: str, records=None) -> 'LiveCollection':
        return cls(feed, 'sale_products', records, order_key='position', row_filter={'sale_id': sale_id})

    def start(self) -> 'LiveCollection':
        if self._subscription is None:
            self._subscription = self.feed.subscribe(self.table, self.apply, self.row_filter)
        return self

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _sort(self) -> None:
        self.records.sort(key=lambda r: (r.get(self.order_key) is None, r.get(self.order_key)),
                          reverse=self.descending)

    def apply(self, change: ChangeEvent) -> None:
        if change.event_type == INSERT:
            self.records.append(change.new)
            self._sort()
        elif change.event_type == UPDATE:
            self.records = [change.new if r.get('id') == change.new.get('id') else r for r in self.records]
            self._sort()
        elif change.event_type == DELETE:
            self.records = [r for r in self.records if r.get('id') != change.old.get('id')]

    @property
    def ids(self) -> List[str]:
        return [r['id'] for r in self.records]


_change_feed: Optional[ChangeFeed] = None


def get_change_feed() -> ChangeFeed:
    """Get or create the ChangeFeed singleton."""
    global _change_feed
    if _change_feed is None:
        _change_feed = ChangeFeed()
    return _change_feed
