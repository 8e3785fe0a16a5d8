"""
Sales repository.
Queries and mutations for the `sales` table, including activation.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import MultipleResultsFound, SQLAlchemyError

from saleflyer.exceptions import FlyerAppError, NotFoundError, ValidationError, translate_backend_error
from saleflyer.models import Sale, SaleTheme, Theme, THEME_COLORS
from saleflyer.utils.parsing import (
    parse_bool, parse_date, parse_hex_color, parse_optional_text, parse_required_text
)

logger = logging.getLogger(__name__)

SALE_FIELDS = (
    'name', 'theme', 'theme_id', 'start_date', 'end_date', 'is_active',
    'background_color', 'accent_color', 'header_image',
)


def parse_sale_theme(value: Any) -> SaleTheme:
    try:
        return SaleTheme(value or SaleTheme.GENERAL.value)
    except ValueError:
        allowed = ', '.join(t.value for t in SaleTheme)
        raise ValidationError(f"Unknown theme '{value}'. Allowed: {allowed}")


def coerce_sale_fields(data: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
    """
    Validate and normalize a sale payload.

    With partial=False every required field must be present and missing
    colors are filled from the seasonal palette of the chosen theme tag.
    """
    unknown = set(data) - set(SALE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown sale fields: {', '.join(sorted(unknown))}")

    fields: Dict[str, Any] = {}
    if 'name' in data or not partial:
        fields['name'] = parse_required_text(data.get('name'), 'Sale name')
    if 'theme' in data or not partial:
        fields['theme'] = parse_sale_theme(data.get('theme')).value
    if 'theme_id' in data:
        fields['theme_id'] = parse_optional_text(data.get('theme_id'), 36)
    if 'start_date' in data or not partial:
        fields['start_date'] = parse_date(data.get('start_date'), 'Start date')
    if 'end_date' in data or not partial:
        fields['end_date'] = parse_date(data.get('end_date'), 'End date')
    if 'is_active' in data:
        fields['is_active'] = parse_bool(data.get('is_active'))
    if 'header_image' in data:
        fields['header_image'] = parse_optional_text(data.get('header_image'))

    palette = THEME_COLORS[SaleTheme(fields['theme'])] if 'theme' in fields else None
    for key, palette_key in (('background_color', 'background'), ('accent_color', 'accent')):
        if data.get(key):
            fields[key] = parse_hex_color(data[key], key)
        elif not partial and palette:
            fields[key] = palette[palette_key]

    start, end = fields.get('start_date'), fields.get('end_date')
    if start and end and end < start:
        raise ValidationError("End date must be on or after the start date")
    return fields


def _fail(session, error: Exception, action: str):
    session.rollback()
    if isinstance(error, FlyerAppError):
        raise error
    logger.error(f"[SALES] ✗ {action} failed: {error}")
    raise translate_backend_error(error)


def list_sales(session) -> List[Sale]:
    """All sales, newest first."""
    return session.query(Sale).order_by(Sale.created_at.desc()).all()


def get_active_sale(session) -> Optional[Sale]:
    """The sale flagged active, or None when there is none."""
    try:
        return session.query(Sale).filter(Sale.is_active.is_(True)).one_or_none()
    except MultipleResultsFound:
        logger.warning("[SALES] More than one active sale found; using the most recently updated")
        return (
            session.query(Sale)
            .filter(Sale.is_active.is_(True))
            .order_by(Sale.updated_at.desc())
            .first()
        )


def get_sale(session, sale_id: str) -> Sale:
    sale = session.get(Sale, sale_id)
    if not sale:
        raise NotFoundError('Sale not found')
    return sale


def get_sale_with_theme(session, sale_id: str) -> Tuple[Sale, Optional[Theme]]:
    """Sale plus its theme record; the theme is None when unset or missing."""
    sale = get_sale(session, sale_id)
    theme = session.get(Theme, sale.theme_id) if sale.theme_id else None
    return sale, theme


def _check_theme_reference(session, fields: Dict[str, Any]) -> None:
    theme_id = fields.get('theme_id')
    if theme_id and not session.get(Theme, theme_id):
        raise ValidationError('Selected theme does not exist')


def create_sale(session, data: Dict[str, Any]) -> Sale:
    """Create a sale; new sales start inactive unless stated otherwise."""
    fields = coerce_sale_fields(data)
    fields.setdefault('is_active', False)
    try:
        _check_theme_reference(session, fields)
        if fields['is_active']:
            _deactivate_others(session, None)
        sale = Sale(**fields)
        session.add(sale)
        session.commit()
        logger.info(f"[SALES] ✓ Created sale {sale.id} '{sale.name}'")
        return sale
    except (FlyerAppError, SQLAlchemyError) as e:
        _fail(session, e, 'create_sale')


def update_sale(session, sale_id: str, updates: Dict[str, Any]) -> Sale:
    fields = coerce_sale_fields(updates, partial=True)
    try:
        sale = get_sale(session, sale_id)
        _check_theme_reference(session, fields)

        start = fields.get('start_date', sale.start_date)
        end = fields.get('end_date', sale.end_date)
        if end < start:
            raise ValidationError("End date must be on or after the start date")

        if fields.get('is_active') and not sale.is_active:
            _deactivate_others(session, sale.id)
        for key, value in fields.items():
            setattr(sale, key, value)
        session.commit()
        return sale
    except (FlyerAppError, SQLAlchemyError) as e:
        _fail(session, e, 'update_sale')


def _deactivate_others(session, sale_id: Optional[str]) -> int:
    query = session.query(Sale).filter(Sale.is_active.is_(True))
    if sale_id is not None:
        query = query.filter(Sale.id != sale_id)
    others = query.all()
    for other in others:
        other.is_active = False
    session.flush()
    return len(others)


def activate_sale(session, sale_id: str) -> Sale:
    """
    Make `sale_id` the only active sale.

    Deactivation of the others and activation of the target share one
    transaction, so a failure in between leaves the previous state intact.
    """
    try:
        sale = get_sale(session, sale_id)
        deactivated = _deactivate_others(session, sale.id)
        sale.is_active = True
        session.commit()
        logger.info(f"[SALES] ✓ Activated sale {sale.id} (deactivated {deactivated})")
        return sale
    except (FlyerAppError, SQLAlchemyError) as e:
        _fail(session, e, 'activate_sale')


def deactivate_sale(session, sale_id: str) -> Sale:
    try:
        sale = get_sale(session, sale_id)
        sale.is_active = False
        session.commit()
        return sale
    except (FlyerAppError, SQLAlchemyError) as e:
        _fail(session, e, 'deactivate_sale')
