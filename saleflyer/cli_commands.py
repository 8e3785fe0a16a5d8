"""
Flask CLI commands.

Commands:
- flask init-db: Create all tables
- flask seed-themes: Insert the seasonal themes (and the default layout preset) that don't exist yet
- flask export-flyer --sale-id ID --output FILE: Write a sale's flyer PDF
"""

import click
from flask import current_app

from saleflyer.database import create_all, get_session
from saleflyer.models import DEFAULT_LAYOUT_CONFIG, FlyerTemplate, SaleTheme, THEME_COLORS, Theme
from saleflyer.services.flyer_export_service import ExportSettings, export_flyer_pdf, load_sale_flyer
from saleflyer.exceptions import FlyerAppError

SEASONAL_THEME_NAMES = {
    SaleTheme.EASTER: 'Easter',
    SaleTheme.HALLOWEEN: 'Halloween',
    SaleTheme.VICTORIA_DAY: 'Victoria Day',
    SaleTheme.CHRISTMAS: 'Christmas',
    SaleTheme.GENERAL: 'General',
}


def seed_themes(session) -> int:
    """Create one Theme per seasonal tag, skipping names that already exist."""
    existing = {name for (name,) in session.query(Theme.name).all()}
    created = 0
    for tag, name in SEASONAL_THEME_NAMES.items():
        if name in existing:
            continue
        palette = THEME_COLORS[tag]
        session.add(Theme(name=name, background_color=palette['background'], accent_color=palette['accent']))
        created += 1
    session.commit()
    return created


def seed_default_template(session) -> bool:
    """Store the 5x4 layout preset unless a default template already exists."""
    if session.query(FlyerTemplate).filter(FlyerTemplate.is_default.is_(True)).first():
        return False
    session.add(FlyerTemplate(
        name='Standard 5x4',
        theme=SaleTheme.GENERAL.value,
        layout_config=dict(DEFAULT_LAYOUT_CONFIG),
        is_default=True,
    ))
    session.commit()
    return True


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create every table."""
        create_all()
        click.echo(click.style('✅ Database tables created', fg='green'))

    @app.cli.command('seed-themes')
    def seed_themes_command():
        """Insert the default seasonal themes and the default layout preset."""
        session = get_session()
        try:
            created = seed_themes(session)
            template_created = seed_default_template(session)
        except Exception as e:
            session.rollback()
            click.echo(click.style(f'❌ Could not seed themes: {e}', fg='red'))
            raise SystemExit(1)
        click.echo(click.style(f'✅ {created} theme(s) created', fg='green'))
        if template_created:
            click.echo(click.style('✅ Default flyer template created', fg='green'))

    @app.cli.command('export-flyer')
    @click.option('--sale-id', required=True, help='Sale to export')
    @click.option('--output', type=click.Path(dir_okay=False, writable=True), default=None,
                  help='Target file (defaults to the generated flyer file name)')
    def export_flyer_command(sale_id, output):
        """Render a sale's flyer to PDF."""
        try:
            document = load_sale_flyer(
                get_session(), sale_id,
                business_name=current_app.config.get('BUSINESS_NAME', 'MY LIQUOR'),
                town=current_app.config.get('BUSINESS_TOWN', 'Drayton Valley'),
            )
            result = export_flyer_pdf(
                document,
                ExportSettings.from_config(current_app.config),
                progress=lambda notice: click.echo(f'   {notice.description}'),
            )
        except FlyerAppError as e:
            click.echo(click.style(f'❌ {e.message}', fg='red'))
            raise SystemExit(1)

        if not result.succeeded:
            click.echo(click.style(f'❌ Export failed after {result.attempts} attempts: {result.error}', fg='red'))
            raise SystemExit(1)

        path = output or result.filename
        with open(path, 'wb') as fh:
            fh.write(result.pdf)
        click.echo(click.style(f'✅ {document.page_count} page(s) written to {path}', fg='green'))
