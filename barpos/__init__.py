"""Flask application factory."""
from flask import Flask, jsonify, request
from barpos.database import init_db
import logging
import os


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.basicConfig(
        level=app.config.get('LOG_LEVEL', 'INFO'),
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )

    # Error tracking in production
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

    # Redis cache for read models and the change feed
    from barpos.services.cache_service import init_cache
    init_cache(app)

    from barpos.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Behind a reverse proxy in production
    if app.config.get('ENV') == 'production' or app.config.get('FLASK_ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    init_db(app)

    from barpos.middleware import load_manager

    @app.before_request
    def before_request_handler():
        """Load the calling manager for each request."""
        load_manager()

    # Error Handlers
    from barpos.exceptions import BarPosError

    @app.errorhandler(BarPosError)
    def handle_barpos_error(error):
        """Render domain errors as JSON with their own status."""
        if error.status_code >= 500:
            app.logger.error(f"{error.kind} [{error.status_code}]: {error.message}")
        else:
            app.logger.info(f"{error.kind} [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'status': 'error', 'kind': 'NotFound', 'message': 'Not Found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'status': 'error', 'kind': 'MethodNotAllowed', 'message': 'Method Not Allowed'}), 405

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.error(f"Unhandled Exception on {request.path}: {error}", exc_info=True)
        return jsonify({'status': 'error', 'kind': 'Error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from barpos.blueprints.events import events_bp
    from barpos.blueprints.beverages import beverages_bp
    from barpos.blueprints.pos import pos_bp
    from barpos.blueprints.tables import tables_bp
    from barpos.blueprints.reports import reports_bp
    from barpos.blueprints.metrics import metrics_bp

    app.register_blueprint(events_bp)
    app.register_blueprint(beverages_bp)
    app.register_blueprint(pos_bp)
    app.register_blueprint(tables_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(metrics_bp)

    @app.route('/health')
    def health():
        return jsonify({'status': 'ok'})

    from barpos.cli_commands import init_cli_commands
    init_cli_commands(app)

    return app
