"""
Unit tests for SQLAlchemy models.
"""
from datetime import date
from decimal import Decimal

from saleflyer.models import (
    DEFAULT_LAYOUT_CONFIG, FlyerTemplate, Sale, SaleProduct, SaleTheme, THEME_COLORS, Theme
)


class TestSaleModel:
    """Tests for Sale model."""

    def test_defaults(self, session):
        """New sales are inactive and use the general palette."""
        sale = Sale(name='Fall Sale', start_date=date(2024, 10, 1), end_date=date(2024, 10, 31))
        session.add(sale)
        session.commit()

        assert len(sale.id) == 36
        assert sale.is_active is False
        assert sale.theme == 'general'
        assert sale.background_color == THEME_COLORS[SaleTheme.GENERAL]['background']
        assert sale.accent_color == THEME_COLORS[SaleTheme.GENERAL]['accent']

    def test_to_dict(self, session, sale):
        data = sale.to_dict()

        assert data['name'] == 'Fall Sale'
        assert data['start_date'] == '2024-10-01'
        assert data['is_active'] is False
        assert data['theme_id'] is None

    def test_every_tag_has_palette(self):
        assert set(THEME_COLORS) == set(SaleTheme)

    def test_products_ordered_by_position(self, session, sale):
        sale_id = sale.id
        for position, name in ((2, 'C'), (0, 'A'), (1, 'B')):
            session.add(SaleProduct(
                sale_id=sale_id, product_name=name, original_price=Decimal('20.00'),
                sale_price=Decimal('15.99'), position=position,
            ))
        session.commit()

        assert [p.product_name for p in session.get(Sale, sale_id).products] == ['A', 'B', 'C']


class TestSaleProductModel:
    """Tests for SaleProduct model."""

    def test_savings(self):
        product = SaleProduct(original_price=Decimal('39.99'), sale_price=Decimal('32.99'))
        assert product.savings == Decimal('7.00')

    def test_to_dict_prices_are_strings(self, session, sale, make_products):
        product_id = make_products(sale.id, 1)[0]
        data = session.get(SaleProduct, product_id).to_dict()

        assert data['original_price'] == '39.99'
        assert data['sale_price'] == '32.99'
        assert data['category'] == 'spirits'
        assert data['position'] == 0


class TestThemeModel:

    def test_to_dict(self, session):
        theme = Theme(name='Harvest', background_color='#7C2D12', accent_color='#FDE68A')
        session.add(theme)
        session.commit()

        data = theme.to_dict()
        assert data['name'] == 'Harvest'
        assert data['header_image_url'] is None


class TestFlyerTemplateModel:

    def test_default_layout(self, session):
        template = FlyerTemplate(name='Standard')
        session.add(template)
        session.commit()

        data = template.to_dict()
        assert data['layout_config'] == DEFAULT_LAYOUT_CONFIG
        assert data['is_default'] is False
        assert data['theme'] == 'general'
