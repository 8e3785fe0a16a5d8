"""
Admin Blueprint - store staff console.

Routes:
- /admin/login - Password login
- /admin/logout - Clear the admin session
- /admin/ - Console with Sales, Products, Flyer Preview, Themes and Create Sale tabs
- /admin/sales, /admin/sales/<id>/activate - Form posts from the console
- /admin/sales/<id>/products - Product form post
- /admin/themes - Theme form post (with optional header image)
"""
from typing import Union

from flask import Blueprint, render_template, request, redirect, url_for, flash, session, Response, current_app

from saleflyer.database import get_session
from saleflyer.exceptions import FlyerAppError, NotFoundError
from saleflyer.forms.admin_forms import LoginForm, ProductForm, SaleForm, ThemeForm, payload
from saleflyer.middleware import check_admin_password, is_admin, require_admin
from saleflyer.services import product_service, sales_service, theme_service
from saleflyer.services.flyer_export_service import load_sale_flyer
from saleflyer.services.optimistic_service import OptimisticProductList

admin_bp = Blueprint('admin', __name__, url_prefix='/admin')

TABS = ('sales', 'products', 'preview', 'themes', 'create')


def _flash_form_errors(form) -> None:
    for field_errors in form.errors.values():
        for message in field_errors:
            flash(message, 'danger')


def _sale_form() -> SaleForm:
    form = SaleForm()
    themes = theme_service.list_themes(get_session())
    form.theme_id.choices = [('', 'None (use sale colors)')] + [(t.id, t.name) for t in themes]
    return form


def _safe_next(target: str) -> str:
    if target and target.startswith('/') and not target.startswith('//'):
        return target
    return url_for('admin.console')


@admin_bp.route('/login', methods=['GET', 'POST'])
def login() -> Union[str, Response]:
    """Shared staff password login."""
    if is_admin():
        return redirect(url_for('admin.console'))

    form = LoginForm()
    if request.method == 'POST':
        if not form.validate_on_submit():
            _flash_form_errors(form)
            return render_template('admin/login.html', form=form), 400

        if not check_admin_password(form.password.data):
            current_app.logger.warning(f"Failed admin login from {request.remote_addr}")
            flash('Incorrect password.', 'danger')
            return render_template('admin/login.html', form=form), 401

        session.clear()
        session[current_app.config['SESSION_AUTH_KEY']] = True
        session.permanent = True
        flash('Welcome back!', 'success')
        return redirect(_safe_next(request.args.get('next')))

    return render_template('admin/login.html', form=form)


@admin_bp.route('/logout', methods=['POST'])
def logout() -> Response:
    session.clear()
    flash('You have been logged out.', 'success')
    return redirect(url_for('admin.login'))


@admin_bp.route('/')
@require_admin
def console() -> str:
    """Admin console; `sale` picks the sale for the Products and Preview tabs."""
    db = get_session()
    tab = request.args.get('tab', 'sales')
    if tab not in TABS:
        tab = 'sales'

    sales = sales_service.list_sales(db)
    selected_id = request.args.get('sale') or (sales[0].id if sales else None)
    selected = next((s for s in sales if s.id == selected_id), None)
    if selected_id and selected is None:
        raise NotFoundError('Sale not found')

    products = product_service.list_products(db, selected.id) if selected else []
    preview = load_sale_flyer(
        db, selected.id,
        business_name=current_app.config.get('BUSINESS_NAME', 'MY LIQUOR'),
        town=current_app.config.get('BUSINESS_TOWN', 'Drayton Valley'),
    ) if selected else None

    return render_template(
        'admin/console.html',
        tab=tab,
        sales=sales,
        selected=selected,
        products=products,
        preview=preview,
        themes=theme_service.list_themes(db),
        sale_form=_sale_form(),
        product_form=ProductForm(),
        theme_form=ThemeForm(),
    )


@admin_bp.route('/sales', methods=['POST'])
@require_admin
def create_sale() -> Response:
    form = _sale_form()
    if not form.validate_on_submit():
        _flash_form_errors(form)
        return redirect(url_for('admin.console', tab='create'))

    sale = sales_service.create_sale(get_session(), payload(form))
    flash(f'Sale "{sale.name}" created successfully', 'success')
    return redirect(url_for('admin.console', tab='products', sale=sale.id))


@admin_bp.route('/sales/<sale_id>/activate', methods=['POST'])
@require_admin
def activate_sale(sale_id) -> Response:
    sale = sales_service.activate_sale(get_session(), sale_id)
    flash(f'"{sale.name}" is now the active sale', 'success')
    return redirect(url_for('admin.console', tab='sales', sale=sale.id))


@admin_bp.route('/sales/<sale_id>/products', methods=['POST'])
@require_admin
def add_product(sale_id) -> Response:
    sales_service.get_sale(get_session(), sale_id)
    form = ProductForm()
    if not form.validate_on_submit():
        _flash_form_errors(form)
        return redirect(url_for('admin.console', tab='products', sale=sale_id))

    view = OptimisticProductList(product_service.SqlProductRepository(get_session()), sale_id)
    view.refresh()
    try:
        view.add(payload(form))
    except FlyerAppError:
        notice = view.notices[-1]
        flash(notice.description, 'danger')
    else:
        flash(view.notices[-1].description, 'success')
    return redirect(url_for('admin.console', tab='products', sale=sale_id))


@admin_bp.route('/themes', methods=['POST'])
@require_admin
def create_theme() -> Response:
    form = ThemeForm()
    if not form.validate_on_submit():
        _flash_form_errors(form)
        return redirect(url_for('admin.console', tab='themes'))

    db = get_session()
    data = payload(form)
    header = data.pop('header_image', None)
    theme = theme_service.create_theme(db, data)
    if header is not None and header.filename:
        theme_service.upload_header_image(db, theme.id, header)
    flash('Theme created successfully', 'success')
    return redirect(url_for('admin.console', tab='themes'))
