"""
Sale products repository.
CRUD and reordering for the `sale_products` table. Prices are checked with
the price validator before anything is written.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Sequence

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from saleflyer.exceptions import FlyerAppError, NotFoundError, ValidationError, translate_backend_error
from saleflyer.models import Sale, SaleProduct
from saleflyer.services.price_validation_service import to_category, to_decimal, validate_price
from saleflyer.utils.parsing import parse_optional_text, parse_required_text

logger = logging.getLogger(__name__)

PRODUCT_FIELDS = (
    'product_name', 'product_image', 'original_price', 'sale_price',
    'size', 'category', 'badge_text', 'sale_id',
)
MONEY = Decimal('0.01')


def coerce_product_fields(data: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
    """
    Validate and normalize a product payload (prices become 2-place Decimals).

    Positions are not editable here; order only changes through reorder_products
    and the compaction in delete_product.
    """
    unknown = set(data) - set(PRODUCT_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown product fields: {', '.join(sorted(unknown))}")

    fields: Dict[str, Any] = {}
    if 'product_name' in data or not partial:
        fields['product_name'] = parse_required_text(data.get('product_name'), 'Product name')
    for key in ('original_price', 'sale_price'):
        if key in data or not partial:
            if data.get(key) in (None, ''):
                raise ValidationError(f"{key} is required")
            fields[key] = to_decimal(data[key], key).quantize(MONEY)
    if 'category' in data or not partial:
        fields['category'] = to_category(data.get('category')).value
    for key, max_length in (('product_image', 512), ('size', 50), ('badge_text', 50)):
        if key in data:
            fields[key] = parse_optional_text(data.get(key), max_length)
    return fields


def check_prices(original_price, sale_price, category) -> None:
    """Raise ValidationError carrying the validator feedback when prices are rejected."""
    result = validate_price(original_price, sale_price, category)
    if not result.is_valid:
        raise ValidationError(result.error, payload={'validation': result.to_dict()})


def _fail(session, error: Exception, action: str):
    session.rollback()
    if isinstance(error, FlyerAppError):
        raise error
    logger.error(f"[PRODUCTS] ✗ {action} failed: {error}")
    raise translate_backend_error(error)


def list_products(session, sale_id: str) -> List[SaleProduct]:
    """Products of a sale in display/print order."""
    return (
        session.query(SaleProduct)
        .filter(SaleProduct.sale_id == sale_id)
        .order_by(SaleProduct.position.asc(), SaleProduct.created_at.asc())
        .all()
    )


def get_product(session, product_id: str) -> SaleProduct:
    product = session.get(SaleProduct, product_id)
    if not product:
        raise NotFoundError('Product not found')
    return product


def add_product(session, sale_id: str, data: Dict[str, Any]) -> SaleProduct:
    """Append a product to the end of a sale."""
    payload = {k: v for k, v in data.items() if k != 'sale_id'}
    fields = coerce_product_fields(payload)
    check_prices(fields['original_price'], fields['sale_price'], fields['category'])
    try:
        if not session.get(Sale, sale_id):
            raise NotFoundError('Sale not found')
        count = session.query(func.count(SaleProduct.id)).filter(SaleProduct.sale_id == sale_id).scalar()
        fields['position'] = count or 0
        product = SaleProduct(sale_id=sale_id, **fields)
        session.add(product)
        session.commit()
        logger.info(f"[PRODUCTS] ✓ Added '{product.product_name}' to sale {sale_id} at {product.position}")
        return product
    except (FlyerAppError, SQLAlchemyError) as e:
        _fail(session, e, 'add_product')


def update_product(session, product_id: str, updates: Dict[str, Any]) -> SaleProduct:
    fields = coerce_product_fields({k: v for k, v in updates.items() if k != 'sale_id'}, partial=True)
    try:
        product = get_product(session, product_id)
        if {'original_price', 'sale_price', 'category'} & set(fields):
            check_prices(
                fields.get('original_price', product.original_price),
                fields.get('sale_price', product.sale_price),
                fields.get('category', product.category),
            )
        for key, value in fields.items():
            setattr(product, key, value)
        session.commit()
        return product
    except (FlyerAppError, SQLAlchemyError) as e:
        _fail(session, e, 'update_product')


def delete_product(session, product_id: str) -> None:
    """Delete a product and close the gap it leaves in the positions."""
    try:
        product = get_product(session, product_id)
        sale_id = product.sale_id
        session.delete(product)
        session.flush()
        for index, remaining in enumerate(list_products(session, sale_id)):
            if remaining.position != index:
                remaining.position = index
        session.commit()
        logger.info(f"[PRODUCTS] ✓ Deleted product {product_id} from sale {sale_id}")
    except (FlyerAppError, SQLAlchemyError) as e:
        _fail(session, e, 'delete_product')


def reorder_products(session, sale_id: str, product_ids: Sequence[str]) -> List[SaleProduct]:
    """
    Reassign positions so that position == index in `product_ids`.

    The list must name every product of the sale exactly once. All rows are
    written in a single transaction; any failure leaves the old order.
    """
    ids = list(product_ids)
    if len(set(ids)) != len(ids):
        raise ValidationError('Product list contains duplicates')
    try:
        products = {p.id: p for p in list_products(session, sale_id)}
        if set(ids) != set(products):
            raise ValidationError('Reorder must include every product of the sale exactly once')
        for index, product_id in enumerate(ids):
            product = products[product_id]
            if product.position != index:
                product.position = index
        session.commit()
        return list_products(session, sale_id)
    except (FlyerAppError, SQLAlchemyError) as e:
        _fail(session, e, 'reorder_products')


class SqlProductRepository:
    """Repository object handed to the optimistic layer; returns plain dicts."""

    def __init__(self, session):
        self.session = session

    def list_products(self, sale_id: str) -> List[Dict[str, Any]]:
        return [p.to_dict() for p in list_products(self.session, sale_id)]

    def add_product(self, sale_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return add_product(self.session, sale_id, data).to_dict()

    def update_product(self, product_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        return update_product(self.session, product_id, updates).to_dict()

    def delete_product(self, product_id: str) -> None:
        delete_product(self.session, product_id)

    def reorder_products(self, sale_id: str, product_ids: Sequence[str]) -> None:
        reorder_products(self.session, sale_id, product_ids)
