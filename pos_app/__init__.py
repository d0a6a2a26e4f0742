"""Flask application factory."""
import logging
import traceback

from flask import Flask, jsonify, request
from flask_wtf.csrf import CSRFProtect, CSRFError
from werkzeug.exceptions import HTTPException

from pos_app.database import init_db


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    log_level = app.config.get('LOG_LEVEL', 'INFO')
    app.logger.setLevel(log_level)
    logging.getLogger('pos_app').setLevel(log_level)

    # Initialize CSRF protection
    csrf = CSRFProtect(app)

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        app.logger.warning(f"CSRF Error: {e.description}")
        return jsonify({'status': 'error', 'message': 'Session expired. Reload the page.'}), 400

    # Production: Enable ProxyFix for HTTPS behind Nginx reverse proxy
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    # Initialize database
    init_db(app)

    # Load the operator before each request
    from pos_app.middleware import load_user

    @app.before_request
    def before_request_handler():
        load_user()

    # Error Handlers
    from pos_app.exceptions import PosError

    @app.errorhandler(PosError)
    def handle_pos_error(error):
        """Handle custom application exceptions."""
        if error.status_code >= 500:
            app.logger.error(f"PosError [{error.status_code}]: {error.message}")
        else:
            app.logger.info(f"PosError [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'status': 'error', 'message': error.description}), error.code

    @app.errorhandler(Exception)
    def internal_error(error):
        app.logger.error(f"Unhandled Exception on {request.method} {request.path}: {error}")
        app.logger.error(f"Traceback: {traceback.format_exc()}")
        return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from pos_app.blueprints.auth import auth_bp
    from pos_app.blueprints.users import users_bp
    from pos_app.blueprints.catalog import catalog_bp
    from pos_app.blueprints.pos import pos_bp
    from pos_app.blueprints.sales import sales_bp

    # JSON API clients authenticate with the session cookie only
    for bp in (auth_bp, users_bp, catalog_bp, sales_bp):
        csrf.exempt(bp)

    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(pos_bp)
    app.register_blueprint(sales_bp)

    # Register CLI commands
    from pos_app.cli_commands import init_cli_commands
    init_cli_commands(app)

    return app
