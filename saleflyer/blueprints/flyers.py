"""
Flyer blueprint: preview summary, print view and PDF export.

Routes:
- GET  /admin/flyers/<sale_id>/preview - JSON layout summary (pages, colors, theme)
- GET  /admin/flyers/<sale_id>/print - Print-ready HTML of the same layout
- POST /admin/flyers/<sale_id>/export - PDF download (?mode=basic for the single-attempt export)
"""
import time
from io import BytesIO

from flask import Blueprint, current_app, jsonify, redirect, render_template, request, send_file, url_for

from saleflyer.database import get_session
from saleflyer.exceptions import FlyerExportError, NotFoundError
from saleflyer.middleware import require_admin
from saleflyer.services.flyer_export_service import (
    ExportSettings, export_flyer_pdf, generate_flyer_pdf, load_sale_flyer
)
from saleflyer.services.flyer_layout import ALERT_COLOR

flyers_bp = Blueprint('flyers', __name__, url_prefix='/admin/flyers')


def _document(sale_id: str):
    return load_sale_flyer(
        get_session(), sale_id,
        business_name=current_app.config.get('BUSINESS_NAME', 'MY LIQUOR'),
        town=current_app.config.get('BUSINESS_TOWN', 'Drayton Valley'),
    )


@flyers_bp.errorhandler(NotFoundError)
def sale_not_found(error):
    """Dedicated panel when the referenced sale does not exist."""
    if request.is_json or request.path.endswith('/preview'):
        return jsonify(error.to_dict()), 404
    return render_template('flyers/not_found.html', message=error.message), 404


@flyers_bp.route('/<sale_id>/preview')
@require_admin
def preview(sale_id):
    return jsonify(_document(sale_id).summary())


@flyers_bp.route('/<sale_id>/print')
@require_admin
def print_view(sale_id):
    """Print CSS keeps only .flyer-content and breaks after every page but the last."""
    return render_template('flyers/print.html', document=_document(sale_id), alert_color=ALERT_COLOR)


@flyers_bp.route('/<sale_id>/export', methods=['POST'])
@require_admin
def export(sale_id):
    from saleflyer.blueprints.metrics import record_flyer_export

    document = _document(sale_id)
    settings = ExportSettings.from_config(current_app.config)
    mode = request.args.get('mode', 'hardened')

    started = time.time()
    if mode == 'basic':
        result = generate_flyer_pdf(document, settings)
    else:
        result = export_flyer_pdf(document, settings)
    record_flyer_export(mode, result, time.time() - started)

    if not result.succeeded:
        print_url = url_for('flyers.print_view', sale_id=sale_id)
        if request.is_json or request.accept_mimetypes.best == 'application/json':
            raise FlyerExportError(
                'Flyer generation failed, use the print view instead',
                payload={
                    'fallback': 'print',
                    'print_url': print_url,
                    'attempts': result.attempts,
                    'notices': [n.to_dict() for n in result.notices],
                }
            )
        return redirect(print_url)

    current_app.logger.info(
        f"[FLYER] Sending {result.filename} ({result.page_count} pages, "
        f"{len(result.hidden_images)} hidden images, placeholders={result.placeholder_pages})"
    )
    return send_file(
        BytesIO(result.pdf),
        mimetype='application/pdf',
        as_attachment=True,
        download_name=result.filename,
    )
