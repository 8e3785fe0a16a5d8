import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from saleflyer import create_app
from saleflyer import database
from saleflyer.database import Base, get_session
from saleflyer.models import Sale, SaleProduct, Theme


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing (in-memory SQLite, no Redis)."""
    app = create_app('config.TestingConfig')
    return app


@pytest.fixture(autouse=True)
def clean_tables(request):
    """Empty every table after each test that touched the app."""
    yield
    if 'app' not in request.fixturenames:
        return
    session = get_session()
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    database.db_session.remove()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Database session shared with the app (same scoped_session, same thread)."""
    session = get_session()
    yield session
    session.rollback()


@pytest.fixture(scope='function')
def admin_client(client, app):
    """Client with the admin session flag set."""
    with client.session_transaction() as sess:
        sess[app.config['SESSION_AUTH_KEY']] = True
    return client


@pytest.fixture(scope='function')
def make_theme(session):
    """Factory: persist a Theme."""
    def _make(name='Harvest', background_color='#7C2D12', accent_color='#FDE68A', header_image_url=None):
        theme = Theme(
            name=name,
            background_color=background_color,
            accent_color=accent_color,
            header_image_url=header_image_url,
        )
        session.add(theme)
        session.commit()
        return theme
    return _make


@pytest.fixture(scope='function')
def make_sale(session):
    """Factory: persist a Sale; created_at is spaced out so ordering is deterministic."""
    counter = {'n': 0}

    def _make(name='Fall Sale', is_active=False, theme_id=None, theme='general',
              background_color='#F59E0B', accent_color='#1A1A1A',
              start_date=date(2024, 10, 1), end_date=date(2024, 10, 31)):
        counter['n'] += 1
        sale = Sale(
            name=name,
            theme=theme,
            theme_id=theme_id,
            start_date=start_date,
            end_date=end_date,
            is_active=is_active,
            background_color=background_color,
            accent_color=accent_color,
            created_at=datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=counter['n']),
        )
        session.add(sale)
        session.commit()
        return sale
    return _make


@pytest.fixture(scope='function')
def make_products(session):
    """Factory: persist `count` products for a sale with positions 0..count-1."""
    def _make(sale_id, count, original='39.99', sale_price='32.99', category='spirits', **extra):
        products = []
        for index in range(count):
            product = SaleProduct(
                sale_id=sale_id,
                product_name=f'Product {index + 1}',
                original_price=Decimal(original),
                sale_price=Decimal(sale_price),
                category=category,
                position=index,
                **extra
            )
            session.add(product)
            products.append(product)
        session.commit()
        return [p.id for p in products]
    return _make


@pytest.fixture(scope='function')
def sale(make_sale):
    return make_sale()
