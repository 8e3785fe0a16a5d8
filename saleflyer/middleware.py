"""Admin session guard and CSRF check for multipart API uploads."""
import hmac
from functools import wraps
from flask import session, redirect, url_for, flash, request, current_app, jsonify
from flask_wtf.csrf import CSRFError, validate_csrf
from wtforms.validators import ValidationError as CSRFValidationError


def is_admin() -> bool:
    return bool(session.get(current_app.config['SESSION_AUTH_KEY']))


def check_admin_password(password: str) -> bool:
    """Compare against ADMIN_PASSWORD; login is impossible while it is unset."""
    expected = current_app.config.get('ADMIN_PASSWORD')
    if not expected or not password:
        return False
    return hmac.compare_digest(password.encode('utf-8'), expected.encode('utf-8'))


def require_admin(f):
    """
    Decorator: Require the admin session.

    JSON callers get a 401 payload, browsers are redirected to the login page
    with `next` pointing back at the original URL.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not is_admin():
            if request.is_json or request.path.startswith('/admin/api'):
                return jsonify({'status': 'error', 'message': 'Authentication required'}), 401
            flash('Please log in to access the admin panel.', 'warning')
            return redirect(url_for('admin.login', next=request.path))
        return f(*args, **kwargs)

    return decorated_function


def require_csrf_token(f):
    """
    Decorator: Require a CSRF token on a route of a CSRF-exempt blueprint.

    The token is read from the X-CSRFToken header, or from the csrf_token
    form field for plain multipart posts.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if current_app.config.get('WTF_CSRF_ENABLED', True):
            token = request.headers.get('X-CSRFToken') or request.form.get('csrf_token')
            try:
                validate_csrf(token)
            except CSRFValidationError as e:
                raise CSRFError(e.args[0])
        return f(*args, **kwargs)

    return decorated_function
