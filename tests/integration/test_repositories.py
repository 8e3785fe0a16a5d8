"""
Integration tests for the sale, product and theme repositories.
"""
from datetime import date

import pytest

from saleflyer.exceptions import NotFoundError, ValidationError
from saleflyer.models import Sale, SaleProduct, Theme
from saleflyer.services import product_service, sales_service, theme_service
from saleflyer.services.flyer_export_service import load_sale_flyer

pytestmark = pytest.mark.integration


def _product(name='Crown Royal', original='39.99', sale_price='32.99', **extra):
    data = {'product_name': name, 'original_price': original, 'sale_price': sale_price, 'category': 'spirits'}
    data.update(extra)
    return data


class TestSales:
    """Sales queries and activation."""

    def test_create_uses_seasonal_palette(self, session):
        sale = sales_service.create_sale(session, {
            'name': 'Halloween Special',
            'theme': 'halloween',
            'start_date': '2024-10-01',
            'end_date': '2024-10-31',
        })

        assert sale.background_color == '#FF8C00'
        assert sale.accent_color == '#000000'
        assert sale.is_active is False

    def test_create_rejects_inverted_dates(self, session):
        with pytest.raises(ValidationError):
            sales_service.create_sale(session, {
                'name': 'Backwards', 'start_date': '2024-10-31', 'end_date': '2024-10-01',
            })

    def test_create_rejects_unknown_theme_reference(self, session):
        with pytest.raises(ValidationError) as exc:
            sales_service.create_sale(session, {
                'name': 'Orphan', 'start_date': '2024-10-01', 'end_date': '2024-10-31',
                'theme_id': 'does-not-exist',
            })
        assert exc.value.message == 'Selected theme does not exist'

    def test_list_newest_first(self, session, make_sale):
        first = make_sale(name='First').id
        second = make_sale(name='Second').id

        assert [s.id for s in sales_service.list_sales(session)] == [second, first]

    def test_activation_is_exclusive(self, session, make_sale):
        a = make_sale(name='A').id
        b = make_sale(name='B').id

        sales_service.activate_sale(session, a)
        sales_service.activate_sale(session, b)

        active = session.query(Sale).filter(Sale.is_active.is_(True)).all()
        assert [s.id for s in active] == [b]
        assert sales_service.get_active_sale(session).id == b

    def test_create_active_sale_deactivates_others(self, session, make_sale):
        old = make_sale(name='Old', is_active=True).id

        new = sales_service.create_sale(session, {
            'name': 'New', 'start_date': '2024-11-01', 'end_date': '2024-11-30', 'is_active': True,
        }).id

        assert session.get(Sale, old).is_active is False
        assert session.get(Sale, new).is_active is True

    def test_update_to_active_deactivates_others(self, session, make_sale):
        a = make_sale(name='A', is_active=True).id
        b = make_sale(name='B').id

        sales_service.update_sale(session, b, {'is_active': True})

        assert session.get(Sale, a).is_active is False
        assert session.get(Sale, b).is_active is True

    def test_no_active_sale(self, session, make_sale):
        make_sale()
        assert sales_service.get_active_sale(session) is None

    def test_activate_missing_sale(self, session):
        with pytest.raises(NotFoundError):
            sales_service.activate_sale(session, 'missing')

    def test_deactivate(self, session, make_sale):
        sale_id = make_sale(is_active=True).id
        assert sales_service.deactivate_sale(session, sale_id).is_active is False

    def test_update_partial(self, session, sale):
        updated = sales_service.update_sale(session, sale.id, {'name': 'Renamed', 'background_color': '#123456'})

        assert updated.name == 'Renamed'
        assert updated.background_color == '#123456'
        assert updated.start_date == date(2024, 10, 1)

    def test_update_rejects_unknown_fields(self, session, sale):
        with pytest.raises(ValidationError):
            sales_service.update_sale(session, sale.id, {'owner': 'me'})

    def test_sale_with_missing_theme(self, session, sale):
        found, theme = sales_service.get_sale_with_theme(session, sale.id)
        assert found.id == sale.id
        assert theme is None


class TestProducts:
    """Products: add, update, delete and reorder."""

    def test_add_appends_at_end(self, session, sale, make_products):
        make_products(sale.id, 2)

        product = product_service.add_product(session, sale.id, _product())

        assert product.position == 2
        assert str(product.original_price) == '39.99'

    def test_add_rejects_invalid_prices(self, session, sale):
        with pytest.raises(ValidationError) as exc:
            product_service.add_product(session, sale.id, _product(sale_price='45.00'))

        assert exc.value.message == 'Sale price must be lower than original price'
        assert exc.value.payload['validation']['is_valid'] is False
        assert session.query(SaleProduct).count() == 0

    def test_add_to_missing_sale(self, session):
        with pytest.raises(NotFoundError):
            product_service.add_product(session, 'missing', _product())

    @pytest.mark.parametrize('price', ['NaN', 'Infinity', '1e30'])
    def test_add_rejects_non_finite_prices(self, session, sale, price):
        with pytest.raises(ValidationError) as exc:
            product_service.add_product(session, sale.id, _product(original=price))

        assert exc.value.message == 'original_price must be a number'
        assert session.query(SaleProduct).count() == 0

    def test_position_is_not_editable(self, session, sale, make_products):
        p1, p2 = make_products(sale.id, 2)

        with pytest.raises(ValidationError):
            product_service.add_product(session, sale.id, _product(position=0))
        with pytest.raises(ValidationError):
            product_service.update_product(session, p2, {'position': 0})

        products = product_service.list_products(session, sale.id)
        assert [(p.id, p.position) for p in products] == [(p1, 0), (p2, 1)]

    def test_update_checks_merged_prices(self, session, sale, make_products):
        product_id = make_products(sale.id, 1)[0]

        with pytest.raises(ValidationError):
            product_service.update_product(session, product_id, {'sale_price': '50.00'})

        product = product_service.update_product(session, product_id, {'sale_price': '31.99', 'size': '1.14L'})
        assert str(product.sale_price) == '31.99'
        assert product.size == '1.14L'

    def test_reorder_round_trip(self, session, sale, make_products):
        p1, p2, p3 = make_products(sale.id, 3)

        product_service.reorder_products(session, sale.id, [p3, p1, p2])

        products = product_service.list_products(session, sale.id)
        assert [(p.id, p.position) for p in products] == [(p3, 0), (p1, 1), (p2, 2)]

    def test_reorder_requires_every_product(self, session, sale, make_products):
        p1, p2, p3 = make_products(sale.id, 3)

        with pytest.raises(ValidationError):
            product_service.reorder_products(session, sale.id, [p3, p1])
        with pytest.raises(ValidationError):
            product_service.reorder_products(session, sale.id, [p3, p1, p1])

        assert [p.id for p in product_service.list_products(session, sale.id)] == [p1, p2, p3]

    def test_delete_compacts_positions(self, session, sale, make_products):
        p1, p2, p3, p4 = make_products(sale.id, 4)

        product_service.delete_product(session, p2)

        products = product_service.list_products(session, sale.id)
        assert [(p.id, p.position) for p in products] == [(p1, 0), (p3, 1), (p4, 2)]

    def test_delete_missing_product(self, session):
        with pytest.raises(NotFoundError):
            product_service.delete_product(session, 'missing')

    def test_deleting_sale_removes_products(self, session, sale, make_products):
        make_products(sale.id, 3)

        session.delete(session.get(Sale, sale.id))
        session.commit()

        assert session.query(SaleProduct).count() == 0


class TestThemes:
    """Themes and their effect on the flyer."""

    def test_create_with_defaults(self, session):
        theme = theme_service.create_theme(session, {'name': 'Plain'})

        assert theme.background_color == '#F59E0B'
        assert theme.accent_color == '#1A1A1A'

    def test_theme_colors_win_on_flyer(self, session, make_theme, make_sale, make_products):
        theme_id = make_theme(name='Spooky', background_color='#4C1D95', accent_color='#F97316').id
        sale_id = make_sale(theme_id=theme_id).id
        make_products(sale_id, 1)

        document = load_sale_flyer(session, sale_id)

        assert document.colors.background == '#4C1D95'
        assert document.theme_name == 'Spooky'

    def test_delete_theme_unlinks_sales(self, session, make_theme, make_sale):
        theme_id = make_theme().id
        sale_id = make_sale(theme_id=theme_id).id

        theme_service.delete_theme(session, theme_id)

        assert session.get(Theme, theme_id) is None
        assert session.get(Sale, sale_id).theme_id is None

    def test_update_missing_theme(self, session):
        with pytest.raises(NotFoundError):
            theme_service.update_theme(session, 'missing', {'name': 'x'})

    def test_list_sorted_by_name(self, session, make_theme):
        make_theme(name='Winter')
        make_theme(name='Autumn')

        assert [t.name for t in theme_service.list_themes(session)] == ['Autumn', 'Winter']
