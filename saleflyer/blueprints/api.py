"""
Admin JSON API used by the console (fetch calls).

Routes (all under /admin/api, admin session required):
- /sales, /sales/<id>, /sales/<id>/activate, /sales/<id>/deactivate
- /sales/<id>/products, /sales/<id>/products/reorder, /sales/<id>/products/upload-image
- /products/<id>
- /validate-price
- /themes, /themes/<id>, /themes/<id>/header

The blueprint is CSRF-exempt for JSON bodies; the multipart upload routes
require the token in the X-CSRFToken header.

Product mutations go through the optimistic list so the response carries the
reconciled product list and the toast to show.
"""
from typing import Any, Dict, Tuple

from flask import Blueprint, jsonify, request, Response

from saleflyer.database import get_session
from saleflyer.exceptions import ValidationError
from saleflyer.middleware import require_admin, require_csrf_token
from saleflyer.services import product_service, sales_service, theme_service
from saleflyer.services.optimistic_service import OptimisticProductList
from saleflyer.services.price_validation_service import validate_price
from saleflyer.services.storage_service import upload_product_image

api_bp = Blueprint('api', __name__, url_prefix='/admin/api')


@api_bp.before_request
@require_admin
def guard():
    """Every API route requires the admin session."""
    return None


def _json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Expected a JSON object body')
    return data


def _uploaded_file():
    file = request.files.get('file')
    if file is None or not file.filename:
        raise ValidationError('No file uploaded')
    return file


def _product_list(sale_id: str) -> OptimisticProductList:
    view = OptimisticProductList(product_service.SqlProductRepository(get_session()), sale_id)
    view.refresh()
    return view


def _failed(view: OptimisticProductList) -> Tuple[Response, int]:
    notice = view.notices[-1]
    status = getattr(view.last_error, 'status_code', 502)
    return jsonify({
        'status': 'error',
        'message': notice.description,
        'notice': notice.to_dict(),
        'products': view.products,
    }), status


def _succeeded(view: OptimisticProductList, status: int = 200, **extra) -> Tuple[Response, int]:
    body = {'status': 'success', 'notice': view.notices[-1].to_dict(), 'products': view.products}
    body.update(extra)
    return jsonify(body), status


# Sales ----------------------------------------------------------------------

@api_bp.route('/sales', methods=['GET'])
def list_sales():
    return jsonify({'sales': [s.to_dict() for s in sales_service.list_sales(get_session())]})


@api_bp.route('/sales', methods=['POST'])
def create_sale():
    sale = sales_service.create_sale(get_session(), _json_body())
    return jsonify({'status': 'success', 'sale': sale.to_dict()}), 201


@api_bp.route('/sales/active', methods=['GET'])
def active_sale():
    sale = sales_service.get_active_sale(get_session())
    return jsonify({'sale': sale.to_dict() if sale else None})


@api_bp.route('/sales/<sale_id>', methods=['GET'])
def get_sale(sale_id):
    sale, theme = sales_service.get_sale_with_theme(get_session(), sale_id)
    return jsonify({'sale': sale.to_dict(), 'theme': theme.to_dict() if theme else None})


@api_bp.route('/sales/<sale_id>', methods=['PATCH', 'PUT'])
def update_sale(sale_id):
    sale = sales_service.update_sale(get_session(), sale_id, _json_body())
    return jsonify({'status': 'success', 'sale': sale.to_dict()})


@api_bp.route('/sales/<sale_id>/activate', methods=['POST'])
def activate_sale(sale_id):
    sale = sales_service.activate_sale(get_session(), sale_id)
    return jsonify({'status': 'success', 'message': 'Sale activated successfully', 'sale': sale.to_dict()})


@api_bp.route('/sales/<sale_id>/deactivate', methods=['POST'])
def deactivate_sale(sale_id):
    sale = sales_service.deactivate_sale(get_session(), sale_id)
    return jsonify({'status': 'success', 'sale': sale.to_dict()})


# Products -------------------------------------------------------------------

@api_bp.route('/sales/<sale_id>/products', methods=['GET'])
def list_products(sale_id):
    sales_service.get_sale(get_session(), sale_id)
    return jsonify({'products': _product_list(sale_id).products})


@api_bp.route('/sales/<sale_id>/products', methods=['POST'])
def add_product(sale_id):
    data = _json_body()
    sales_service.get_sale(get_session(), sale_id)
    view = _product_list(sale_id)
    product = view.add(data)
    return _succeeded(view, 201, product=product)


@api_bp.route('/products/<product_id>', methods=['PATCH', 'PUT'])
def update_product(product_id):
    data = _json_body()
    product = product_service.get_product(get_session(), product_id)
    view = _product_list(product.sale_id)
    if not view.update(product_id, data):
        return _failed(view)
    return _succeeded(view)


@api_bp.route('/products/<product_id>', methods=['DELETE'])
def delete_product(product_id):
    product = product_service.get_product(get_session(), product_id)
    view = _product_list(product.sale_id)
    if not view.delete(product_id):
        return _failed(view)
    return _succeeded(view)


@api_bp.route('/sales/<sale_id>/products/reorder', methods=['POST'])
def reorder_products(sale_id):
    product_ids = _json_body().get('product_ids')
    if not isinstance(product_ids, list):
        raise ValidationError('product_ids must be a list')
    view = _product_list(sale_id)
    if not view.reorder(product_ids):
        return _failed(view)
    return _succeeded(view)


@api_bp.route('/sales/<sale_id>/products/upload-image', methods=['POST'])
@require_csrf_token
def upload_image(sale_id):
    sales_service.get_sale(get_session(), sale_id)
    url = upload_product_image(_uploaded_file(), sale_id)
    return jsonify({'status': 'success', 'url': url}), 201


@api_bp.route('/validate-price', methods=['POST'])
def validate_product_price():
    data = _json_body()
    result = validate_price(data.get('original_price'), data.get('sale_price'), data.get('category') or 'spirits')
    return jsonify(result.to_dict())


# Themes ---------------------------------------------------------------------

@api_bp.route('/themes', methods=['GET'])
def list_themes():
    return jsonify({'themes': [t.to_dict() for t in theme_service.list_themes(get_session())]})


@api_bp.route('/themes', methods=['POST'])
def create_theme():
    theme = theme_service.create_theme(get_session(), _json_body())
    return jsonify({'status': 'success', 'message': 'Theme created successfully', 'theme': theme.to_dict()}), 201


@api_bp.route('/themes/<theme_id>', methods=['PATCH', 'PUT'])
def update_theme(theme_id):
    theme = theme_service.update_theme(get_session(), theme_id, _json_body())
    return jsonify({'status': 'success', 'message': 'Theme updated successfully', 'theme': theme.to_dict()})


@api_bp.route('/themes/<theme_id>', methods=['DELETE'])
def delete_theme(theme_id):
    theme_service.delete_theme(get_session(), theme_id)
    return jsonify({'status': 'success', 'message': 'Theme deleted successfully'})


@api_bp.route('/themes/<theme_id>/header', methods=['POST'])
@require_csrf_token
def upload_theme_header(theme_id):
    theme = theme_service.upload_header_image(get_session(), theme_id, _uploaded_file())
    return jsonify({'status': 'success', 'theme': theme.to_dict()}), 201
