"""
Public marketing pages and health checks.

The current flyer payload (active sale + products) is cached in Redis and
dropped whenever a sale, product or theme row changes.
"""
from flask import Blueprint, current_app, jsonify, render_template
from sqlalchemy import text

from saleflyer.database import get_session
from saleflyer.services.cache_service import PUBLIC_FLYER_MODULE, get_cache
from saleflyer.services.flyer_layout import resolve_colors
from saleflyer.services.product_service import list_products
from saleflyer.services.sales_service import get_active_sale, get_sale_with_theme
from saleflyer.utils.formatters import date_range, savings

main_bp = Blueprint('main', __name__)


def load_current_flyer() -> dict:
    """Active sale with its products, as plain data for the public pages."""
    session = get_session()
    sale = get_active_sale(session)
    if sale is None:
        return {'sale': None, 'products': []}

    _, theme = get_sale_with_theme(session, sale.id)
    colors = resolve_colors(sale, theme)
    products = []
    for product in list_products(session, sale.id):
        item = product.to_dict()
        item['savings'] = savings(product.original_price, product.sale_price)
        products.append(item)

    return {
        'sale': dict(
            sale.to_dict(),
            date_range=date_range(sale.start_date, sale.end_date),
            theme_name=theme.name if theme else None,
        ),
        'colors': {'background': colors.background, 'accent': colors.accent},
        'products': products,
    }


def current_flyer() -> dict:
    return get_cache().memoize(
        PUBLIC_FLYER_MODULE, 'current', load_current_flyer,
        ttl=current_app.config.get('CACHE_FLYER_TTL')
    )


@main_bp.route('/')
def index():
    """Marketing home page with this week's specials."""
    flyer = current_flyer()
    return render_template('index.html', flyer=flyer, specials=flyer['products'][:8])


@main_bp.route('/flyer')
def flyer():
    """Full grid of the current (active) flyer."""
    return render_template('flyer.html', flyer=current_flyer())


@main_bp.route('/health')
def health():
    """Database connectivity check."""
    try:
        row = get_session().execute(text("SELECT 1 as health_check")).fetchone()
        if row and row[0] == 1:
            return jsonify({'status': 'healthy', 'database': 'connected'}), 200
        return jsonify({'status': 'unhealthy', 'database': 'error'}), 500
    except Exception as e:
        current_app.logger.error(f"Health check failed: {e}")
        return jsonify({'status': 'unhealthy', 'database': 'disconnected', 'error': str(e)}), 500


@main_bp.route('/health/cache')
def health_cache():
    """Cache status; never fails since the cache is optional."""
    available = get_cache().is_available()
    return jsonify({'status': 'ok' if available else 'degraded', 'cache': 'connected' if available else 'disabled'}), 200
