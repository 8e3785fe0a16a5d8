"""Flask application factory."""
from flask import Flask, render_template, request, redirect, url_for, flash, jsonify
from flask_wtf.csrf import CSRFProtect
from saleflyer.database import init_db
import os


def wants_json() -> bool:
    """JSON for API calls and fetch() requests, HTML + flash otherwise."""
    return (
        request.is_json
        or request.path.startswith('/admin/api')
        or request.accept_mimetypes.best == 'application/json'
    )


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Initialize CSRF protection
    csrf = CSRFProtect(app)

    from flask_wtf.csrf import CSRFError

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        app.logger.warning(f"CSRF Error: {e.description}")
        if wants_json():
            return jsonify({'status': 'error', 'message': 'Your session has expired. Reload the page.'}), 400
        flash('Your session has expired or the form is invalid. Please try again.', 'warning')
        return redirect(request.referrer or '/')

    # Sentry error tracking in production
    if os.getenv('SENTRY_DSN') and (app.config.get('ENV') == 'production' or os.getenv('FLASK_ENV') == 'production'):
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=os.getenv('SENTRY_DSN'),
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            environment=os.getenv('FLASK_ENV', 'production'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Initialize database (attaches the realtime feed to the session)
    init_db(app)

    # Redis cache for the public flyer pages
    from saleflyer.services.cache_service import init_cache
    init_cache(app)

    # Prometheus metrics instrumentation
    from saleflyer.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Production: trust the reverse proxy headers
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    # Jinja filters
    from saleflyer.utils.formatters import money, dollars, long_date, date_range
    app.jinja_env.filters['money'] = money
    app.jinja_env.filters['dollars'] = dollars
    app.jinja_env.filters['long_date'] = long_date
    app.jinja_env.filters['date_range'] = date_range

    @app.context_processor
    def inject_business_info():
        return {
            'business_name': app.config.get('BUSINESS_NAME', 'MY LIQUOR'),
            'business_town': app.config.get('BUSINESS_TOWN', 'Drayton Valley'),
        }

    # Error Handlers
    from saleflyer.exceptions import FlyerAppError

    @app.errorhandler(FlyerAppError)
    def handle_flyer_error(error):
        """Handle custom application exceptions."""
        app.logger.error(f"FlyerAppError [{error.status_code}]: {error.message}")

        if wants_json():
            return jsonify(error.to_dict()), error.status_code

        flash(error.message, 'danger')
        return redirect(request.referrer or url_for('admin.console'))

    @app.errorhandler(404)
    def not_found_error(error):
        if wants_json():
            return jsonify({'status': 'error', 'message': 'Not Found'}), 404
        return render_template('errors/404.html'), 404

    @app.errorhandler(500)
    @app.errorhandler(Exception)
    def internal_error(error):
        from werkzeug.exceptions import HTTPException
        if isinstance(error, HTTPException) and error.code != 500:
            return error

        app.logger.exception(f"Unhandled Exception: {error}")
        if wants_json():
            return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500
        return render_template('errors/500.html'), 500

    # Register blueprints
    from saleflyer.blueprints.main import main_bp
    from saleflyer.blueprints.admin import admin_bp
    from saleflyer.blueprints.api import api_bp
    from saleflyer.blueprints.flyers import flyers_bp
    from saleflyer.blueprints.metrics import metrics_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(flyers_bp)
    app.register_blueprint(metrics_bp)

    # JSON API is called from the console with fetch(); guarded by the admin session
    csrf.exempt(api_bp)
    app.register_blueprint(api_bp)

    # Register CLI commands
    from saleflyer.cli_commands import init_cli_commands
    init_cli_commands(app)

    return app
