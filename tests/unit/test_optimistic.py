"""Unit tests for optimistic product mutations (in-memory repository)."""
import pytest

from saleflyer.exceptions import BackendError, ValidationError
from saleflyer.services.optimistic_service import (
    ADD, DELETE, REORDER, UPDATE, OptimisticProductList
)


class FakeRepository:
    """Dict-backed product store; `fail` maps an operation name to the error to raise."""

    def __init__(self, products=None):
        self.rows = {p['id']: dict(p) for p in (products or [])}
        self.fail = {}
        self.observer = None
        self._next_id = 100

    def _check(self, operation):
        if self.observer:
            self.observer(operation)
        if operation in self.fail:
            raise self.fail[operation]

    def list_products(self, sale_id):
        rows = [r for r in self.rows.values() if r['sale_id'] == sale_id]
        return sorted((dict(r) for r in rows), key=lambda r: r['position'])

    def add_product(self, sale_id, data):
        self._check('add')
        self._next_id += 1
        row = dict(data, id=f'p{self._next_id}', sale_id=sale_id,
                   position=len(self.list_products(sale_id)))
        self.rows[row['id']] = row
        return dict(row)

    def update_product(self, product_id, updates):
        self._check('update')
        self.rows[product_id].update(updates)
        return dict(self.rows[product_id])

    def delete_product(self, product_id):
        self._check('delete')
        del self.rows[product_id]

    def reorder_products(self, sale_id, product_ids):
        self._check('reorder')
        for index, product_id in enumerate(product_ids):
            self.rows[product_id]['position'] = index


def _seed(count=3):
    return [
        {'id': f'p{i}', 'sale_id': 's1', 'product_name': f'Product {i}', 'position': i,
         'original_price': '39.99', 'sale_price': '32.99'}
        for i in range(count)
    ]


@pytest.fixture
def repository():
    return FakeRepository(_seed())


@pytest.fixture
def view(repository):
    products = OptimisticProductList(repository, 's1', clock=lambda: 1000.0)
    products.refresh()
    return products


class TestAdd:

    def test_success_reconciles_with_backend(self, view, repository):
        saved = view.add({'product_name': 'Crown Royal'})

        assert saved['id'] == 'p101'
        assert [p['id'] for p in view.products] == ['p0', 'p1', 'p2', 'p101']
        assert view.pending_count == 0
        assert view.notices[-1].description == 'Product added successfully'
        assert view.notices[-1].variant == 'default'

    def test_provisional_record_visible_while_in_flight(self, view, repository):
        seen = {}

        def observe(operation):
            temp = [p for p in view.products if p['id'].startswith('temp-')]
            seen['temp'] = temp
            seen['pending'] = view.is_pending(temp[0]['id'])
            seen['kind'] = view.get_pending_operation(temp[0]['id']).kind

        repository.observer = observe
        view.add({'product_name': 'Crown Royal'})

        assert len(seen['temp']) == 1
        assert seen['temp'][0]['product_name'] == 'Crown Royal'
        assert seen['temp'][0]['position'] == 3
        assert seen['pending'] is True
        assert seen['kind'] == ADD

    def test_failure_restores_snapshot_and_reraises(self, view, repository):
        snapshot = list(view.products)
        temp_ids = []

        def observe(operation):
            temp_ids.extend(p['id'] for p in view.products if p['id'].startswith('temp-'))

        repository.observer = observe
        repository.fail['add'] = BackendError('connection reset')

        with pytest.raises(BackendError):
            view.add({'product_name': 'Crown Royal'})

        assert view.products == snapshot
        assert not view.is_pending(temp_ids[0])
        assert view.pending_count == 0
        assert view.notices[-1].description == 'Failed to add product: connection reset'
        assert view.notices[-1].variant == 'destructive'
        assert view.last_error is repository.fail['add']

    def test_policy_rejection_message(self, view, repository):
        repository.fail['add'] = Exception('new row violates row-level security policy')

        with pytest.raises(Exception):
            view.add({'product_name': 'Crown Royal'})

        assert view.notices[-1].description == (
            "Failed to add product: You don't have permission to perform this action."
        )


class TestUpdate:

    def test_success(self, view):
        assert view.update('p1', {'product_name': 'Renamed'}) is True
        assert view.products[1]['product_name'] == 'Renamed'
        assert not view.is_pending('p1')

    def test_optimistic_state_during_call(self, view, repository):
        seen = {}

        def observe(operation):
            seen['name'] = view.products[1]['product_name']
            seen['kind'] = view.get_pending_operation('p1').kind

        repository.observer = observe
        view.update('p1', {'product_name': 'Renamed'})

        assert seen == {'name': 'Renamed', 'kind': UPDATE}

    def test_failure_restores_previous_record(self, view, repository):
        before = [dict(p) for p in view.products]
        repository.fail['update'] = ValidationError('Sale price must be lower than original price')

        assert view.update('p1', {'sale_price': '99.99'}) is False
        assert view.products == before
        assert not view.is_pending('p1')
        assert view.notices[-1].description == (
            'Failed to update product: Sale price must be lower than original price'
        )

    def test_unknown_record(self, view):
        assert view.update('nope', {'product_name': 'x'}) is False


class TestDelete:

    def test_success(self, view):
        assert view.delete('p1') is True
        assert [p['id'] for p in view.products] == ['p0', 'p2']

    def test_record_gone_during_call(self, view, repository):
        seen = {}

        def observe(operation):
            seen['ids'] = [p['id'] for p in view.products]
            seen['kind'] = view.get_pending_operation('p1').kind

        repository.observer = observe
        view.delete('p1')

        assert seen == {'ids': ['p0', 'p2'], 'kind': DELETE}

    def test_failure_reinserts_at_original_index(self, view, repository):
        before = list(view.products)
        repository.fail['delete'] = BackendError('timeout')

        assert view.delete('p1') is False
        assert view.products == before
        assert not view.is_pending('p1')


class TestReorder:

    def test_success(self, view, repository):
        assert view.reorder(['p2', 'p0', 'p1']) is True
        assert [p['id'] for p in view.products] == ['p2', 'p0', 'p1']
        assert [p['position'] for p in view.products] == [0, 1, 2]
        assert view.notices[-1].description == 'Products reordered successfully'

    def test_positions_applied_before_backend_answers(self, view, repository):
        seen = {}

        def observe(operation):
            seen['order'] = [(p['id'], p['position']) for p in view.products]
            seen['kind'] = view.get_pending_operation('s1').kind

        repository.observer = observe
        view.reorder(['p2', 'p0', 'p1'])

        assert seen['order'] == [('p2', 0), ('p0', 1), ('p1', 2)]
        assert seen['kind'] == REORDER

    def test_failure_restores_whole_list(self, view, repository):
        before = list(view.products)
        repository.fail['reorder'] = BackendError('deadlock detected')

        assert view.reorder(['p2', 'p0', 'p1']) is False
        assert view.products == before
        assert view.pending_count == 0


class TestNotifier:

    def test_every_notice_is_forwarded(self, repository):
        received = []
        view = OptimisticProductList(repository, 's1', notifier=received.append)
        view.refresh()

        view.update('p0', {'product_name': 'A'})
        repository.fail['delete'] = BackendError('boom')
        view.delete('p1')

        assert [n.title for n in received] == ['Success', 'Error']

    def test_close_clears_ledger(self, view):
        view._track('p0', UPDATE)
        with view:
            assert view.is_pending('p0')
        assert view.pending_count == 0
