"""Themes repository - flyer palettes and their header images."""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from werkzeug.datastructures import FileStorage

from saleflyer.exceptions import FlyerAppError, NotFoundError, ValidationError, translate_backend_error
from saleflyer.models import Sale, Theme
from saleflyer.services.storage_service import upload_theme_header
from saleflyer.utils.parsing import parse_hex_color, parse_optional_text, parse_required_text

logger = logging.getLogger(__name__)

THEME_FIELDS = ('name', 'background_color', 'accent_color', 'header_image_url')
DEFAULT_THEME_COLORS = {'background_color': '#F59E0B', 'accent_color': '#1A1A1A'}


def coerce_theme_fields(data: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
    unknown = set(data) - set(THEME_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown theme fields: {', '.join(sorted(unknown))}")

    fields: Dict[str, Any] = {}
    if 'name' in data or not partial:
        fields['name'] = parse_required_text(data.get('name'), 'Theme name', 120)
    for key in ('background_color', 'accent_color'):
        if data.get(key):
            fields[key] = parse_hex_color(data[key], key)
        elif not partial:
            fields[key] = DEFAULT_THEME_COLORS[key]
    if 'header_image_url' in data:
        fields['header_image_url'] = parse_optional_text(data.get('header_image_url'))
    return fields


def _fail(session, error: Exception, action: str):
    session.rollback()
    if isinstance(error, FlyerAppError):
        raise error
    logger.error(f"[THEMES] ✗ {action} failed: {error}")
    raise translate_backend_error(error)


def list_themes(session) -> List[Theme]:
    return session.query(Theme).order_by(Theme.name.asc()).all()


def get_theme(session, theme_id: Optional[str]) -> Optional[Theme]:
    """Theme by id, or None (a missing theme is not an error for callers)."""
    if not theme_id:
        return None
    return session.get(Theme, theme_id)


def create_theme(session, data: Dict[str, Any]) -> Theme:
    fields = coerce_theme_fields(data)
    try:
        theme = Theme(**fields)
        session.add(theme)
        session.commit()
        return theme
    except SQLAlchemyError as e:
        _fail(session, e, 'create_theme')


def update_theme(session, theme_id: str, updates: Dict[str, Any]) -> Theme:
    fields = coerce_theme_fields(updates, partial=True)
    try:
        theme = get_theme(session, theme_id)
        if not theme:
            raise NotFoundError('Theme not found')
        for key, value in fields.items():
            setattr(theme, key, value)
        session.commit()
        return theme
    except (FlyerAppError, SQLAlchemyError) as e:
        _fail(session, e, 'update_theme')


def delete_theme(session, theme_id: str) -> None:
    """Delete a theme; sales that used it fall back to their own colors."""
    try:
        theme = get_theme(session, theme_id)
        if not theme:
            raise NotFoundError('Theme not found')
        for sale in session.query(Sale).filter(Sale.theme_id == theme_id).all():
            sale.theme_id = None
        session.delete(theme)
        session.commit()
    except (FlyerAppError, SQLAlchemyError) as e:
        _fail(session, e, 'delete_theme')


def upload_header_image(session, theme_id: str, file: FileStorage) -> Theme:
    """Upload a header image for the theme and store its public URL on it."""
    theme = get_theme(session, theme_id)
    if not theme:
        raise NotFoundError('Theme not found')
    url = upload_theme_header(file, theme.name)
    return update_theme(session, theme_id, {'header_image_url': url})
