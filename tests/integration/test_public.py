"""
Integration tests for the public pages, health checks, metrics and CLI.
"""
import pytest

from saleflyer.cli_commands import SEASONAL_THEME_NAMES
from saleflyer.models import FlyerTemplate, Theme

pytestmark = pytest.mark.integration


class TestPublicPages:

    def test_home_without_active_sale(self, client):
        response = client.get('/')

        assert response.status_code == 200
        assert b'No sale is running right now.' in response.data

    def test_home_shows_active_sale(self, client, make_sale, make_products):
        sale_id = make_sale(name='Halloween Special', is_active=True).id
        make_products(sale_id, 10)

        html = client.get('/').get_data(as_text=True)

        assert 'Halloween Special' in html
        assert 'October 1st - October 31st, 2024' in html
        assert html.count('$32.99') == 8

    def test_inactive_sale_not_shown(self, client, make_sale):
        make_sale(name='Draft Sale')

        assert b'Draft Sale' not in client.get('/flyer').data

    def test_flyer_page(self, client, make_sale, make_products):
        sale_id = make_sale(name='Christmas Cheer', is_active=True, background_color='#DC2626').id
        make_products(sale_id, 3)

        html = client.get('/flyer').get_data(as_text=True)

        assert 'Christmas Cheer' in html
        assert '#DC2626' in html
        assert html.count('$32.99') == 3

    def test_flyer_without_sale(self, client):
        assert b'No current flyer' in client.get('/flyer').data

    def test_unknown_page(self, client):
        assert client.get('/does-not-exist').status_code == 404


class TestHealth:

    def test_database(self, client):
        response = client.get('/health')

        assert response.status_code == 200
        assert response.get_json() == {'status': 'healthy', 'database': 'connected'}

    def test_metrics(self, client):
        client.get('/health')
        response = client.get('/metrics')

        assert response.status_code == 200
        assert b'http_requests_total' in response.data


class TestCli:

    def test_seed_themes_is_idempotent(self, app, session):
        runner = app.test_cli_runner()

        first = runner.invoke(args=['seed-themes'])
        second = runner.invoke(args=['seed-themes'])

        assert first.exit_code == 0
        assert f'{len(SEASONAL_THEME_NAMES)} theme(s) created' in first.output
        assert '0 theme(s) created' in second.output
        assert session.query(Theme).count() == len(SEASONAL_THEME_NAMES)
        assert 'Default flyer template created' in first.output
        assert session.query(FlyerTemplate).filter(FlyerTemplate.is_default.is_(True)).count() == 1

    def test_export_flyer(self, app, make_sale, make_products, tmp_path):
        sale_id = make_sale(name='Fall').id
        make_products(sale_id, 2)
        target = tmp_path / 'fall.pdf'

        result = app.test_cli_runner().invoke(args=['export-flyer', '--sale-id', sale_id, '--output', str(target)])

        assert result.exit_code == 0, result.output
        assert target.read_bytes().startswith(b'%PDF')

    def test_export_missing_sale(self, app):
        result = app.test_cli_runner().invoke(args=['export-flyer', '--sale-id', 'missing'])

        assert result.exit_code == 1
        assert 'Sale not found' in result.output
