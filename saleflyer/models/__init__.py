"""Models package - exports all SQLAlchemy models."""
from saleflyer.models.theme import Theme
from saleflyer.models.sale import Sale, SaleTheme, THEME_COLORS
from saleflyer.models.sale_product import SaleProduct, ProductCategory
from saleflyer.models.flyer_template import FlyerTemplate, DEFAULT_LAYOUT_CONFIG

__all__ = [
    'Theme',
    'Sale', 'SaleTheme', 'THEME_COLORS',
    'SaleProduct', 'ProductCategory',
    'FlyerTemplate', 'DEFAULT_LAYOUT_CONFIG',
]
