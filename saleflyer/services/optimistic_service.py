"""
Optimistic mutations over a sale's product list.

Each mutation is applied to the local view first, recorded in a pending
ledger, sent to the repository, and then either reconciled by re-reading the
authoritative list or rolled back to the view as it was before the call.

Two mutations on the same record that overlap can clobber each other on
rollback: the first one restores its own snapshot on top of the second's
optimistic state. Callers that need stronger guarantees should serialize
mutations per record.
"""
import copy
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from saleflyer.exceptions import describe_backend_error

logger = logging.getLogger(__name__)

ADD = 'add'
UPDATE = 'update'
DELETE = 'delete'
REORDER = 'reorder'


@dataclass(frozen=True)
class PendingOperation:
    id: str
    kind: str
    timestamp: float


@dataclass(frozen=True)
class Notice:
    """User-facing toast."""
    title: str
    description: str
    variant: str = 'default'

    def to_dict(self):
        return {'title': self.title, 'description': self.description, 'variant': self.variant}


def success_notice(description: str) -> Notice:
    return Notice('Success', description)


def error_notice(description: str) -> Notice:
    return Notice('Error', description, 'destructive')


class OptimisticProductList:
    """
    Local, optimistically updated view of one sale's products.

    `repository` must provide list_products(sale_id), add_product(sale_id, data),
    update_product(id, updates), delete_product(id) and
    reorder_products(sale_id, ids); records are dicts with an 'id' key.
    """

    def __init__(self, repository, sale_id: str,
                 notifier: Optional[Callable[[Notice], None]] = None,
                 clock: Callable[[], float] = time.time):
        self.repository = repository
        self.sale_id = sale_id
        self.notifier = notifier
        self.clock = clock
        self.products: List[Dict[str, Any]] = []
        self.notices: List[Notice] = []
        self.last_error: Optional[Exception] = None
        self._pending: Dict[str, PendingOperation] = {}

    # Pending ledger -------------------------------------------------------

    def is_pending(self, record_id: str) -> bool:
        return record_id in self._pending

    def get_pending_operation(self, record_id: str) -> Optional[PendingOperation]:
        return self._pending.get(record_id)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def _track(self, record_id: str, kind: str) -> None:
        self._pending[record_id] = PendingOperation(record_id, kind, self.clock())

    def _untrack(self, record_id: str) -> None:
        self._pending.pop(record_id, None)

    def close(self) -> None:
        self._pending.clear()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # Helpers ---------------------------------------------------------------

    def refresh(self) -> List[Dict[str, Any]]:
        self.products = list(self.repository.list_products(self.sale_id))
        return self.products

    def _notify(self, notice: Notice) -> None:
        self.notices.append(notice)
        level = logging.WARNING if notice.variant == 'destructive' else logging.INFO
        logger.log(level, f"[OPTIMISTIC] {notice.title}: {notice.description}")
        if self.notifier:
            self.notifier(notice)

    def _find(self, record_id: str) -> Optional[Dict[str, Any]]:
        return next((p for p in self.products if p.get('id') == record_id), None)

    # Mutations -------------------------------------------------------------

    def add(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Add a product. Failures are rolled back, reported and re-raised."""
        temp_id = f"temp-{uuid.uuid4().hex}"
        now = self.clock()
        provisional = dict(data, id=temp_id, sale_id=self.sale_id, created_at=now, updated_at=now)
        provisional['position'] = len(self.products)

        self.products = self.products + [provisional]
        self._track(temp_id, ADD)
        self.last_error = None
        try:
            saved = self.repository.add_product(self.sale_id, data)
            self.refresh()
            self._notify(success_notice('Product added successfully'))
            return saved
        except Exception as e:
            self.last_error = e
            self.products = [p for p in self.products if p.get('id') != temp_id]
            self._notify(error_notice(f"Failed to add product: {describe_backend_error(e)}"))
            raise
        finally:
            self._untrack(temp_id)

    def update(self, product_id: str, updates: Dict[str, Any]) -> bool:
        """Update a product. Returns False when it failed (already rolled back)."""
        current = self._find(product_id)
        if current is None:
            return False
        previous = copy.deepcopy(current)
        merged = dict(current, **updates)

        self.products = [merged if p.get('id') == product_id else p for p in self.products]
        self._track(product_id, UPDATE)
        self.last_error = None
        try:
            self.repository.update_product(product_id, updates)
            self.refresh()
            self._notify(success_notice('Product updated successfully'))
            return True
        except Exception as e:
            self.last_error = e
            self.products = [previous if p.get('id') == product_id else p for p in self.products]
            self._notify(error_notice(f"Failed to update product: {describe_backend_error(e)}"))
            return False
        finally:
            self._untrack(product_id)

    def delete(self, product_id: str) -> bool:
        """Delete a product. Returns False when it failed (record re-inserted)."""
        index = next((i for i, p in enumerate(self.products) if p.get('id') == product_id), None)
        if index is None:
            return False
        removed = self.products[index]

        self.products = [p for p in self.products if p.get('id') != product_id]
        self._track(product_id, DELETE)
        self.last_error = None
        try:
            self.repository.delete_product(product_id)
            self.refresh()
            self._notify(success_notice('Product deleted successfully'))
            return True
        except Exception as e:
            self.last_error = e
            restored = list(self.products)
            restored.insert(min(index, len(restored)), removed)
            self.products = restored
            self._notify(error_notice(f"Failed to delete product: {describe_backend_error(e)}"))
            return False
        finally:
            self._untrack(product_id)

    def reorder(self, product_ids: Sequence[str]) -> bool:
        """Apply a new order (position = index); all-or-nothing rollback."""
        snapshot = list(self.products)
        by_id = {p.get('id'): p for p in self.products}
        reordered = [
            dict(by_id[pid], position=index)
            for index, pid in enumerate(pid for pid in product_ids if pid in by_id)
        ]

        self.products = reordered
        self._track(self.sale_id, REORDER)
        self.last_error = None
        try:
            self.repository.reorder_products(self.sale_id, list(product_ids))
            self.refresh()
            self._notify(success_notice('Products reordered successfully'))
            return True
        except Exception as e:
            self.last_error = e
            self.products = snapshot
            self._notify(error_notice(f"Failed to reorder products: {describe_backend_error(e)}"))
            return False
        finally:
            self._untrack(self.sale_id)
