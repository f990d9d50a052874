import logging
import os

from flask import Flask, jsonify
from flask_cors import CORS
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

logger = logging.getLogger(__name__)

_CRITICAL_ENV_VARS = ['SECRET_KEY', 'JWT_SECRET_KEY', 'DATABASE_URL']


def _init_sentry(app):
    dsn = app.config.get('SENTRY_DSN')
    if not dsn:
        return
    import sentry_sdk
    from sentry_sdk.integrations.flask import FlaskIntegration
    sentry_sdk.init(dsn=dsn, integrations=[FlaskIntegration()], traces_sample_rate=0.1)


def _check_environment(config_name):
    if config_name in ('development', 'testing'):
        return
    missing = [v for v in _CRITICAL_ENV_VARS if not os.environ.get(v)]
    if missing:
        logger.critical('MISSING CRITICAL ENV VARS (app may not work correctly): %s', ', '.join(missing))


def create_app(config_name=None):
    """Flask application factory"""
    app = Flask(__name__)

    # Load configuration
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'development')

    from config import config
    app.config.from_object(config[config_name])
    app.config['ENV_NAME'] = config_name

    from app.logging_config import setup_logging
    setup_logging(app)
    _check_environment(config_name)
    _init_sentry(app)

    # Initialize extensions
    from app.extensions import limiter, socketio
    from app.middleware import RequestIdMiddleware

    db.init_app(app)
    CORS(app, resources={r'/api/*': {'origins': app.config['CORS_ORIGINS']}}, supports_credentials=True)
    limiter.init_app(app)
    socketio.init_app(app, cors_allowed_origins=app.config['CORS_ORIGINS'],
                      async_mode=app.config.get('SOCKETIO_ASYNC_MODE'))
    app.wsgi_app = RequestIdMiddleware(app.wsgi_app)

    from app import socket_events  # noqa: F401  registers the handlers
    app.extensions['notification_publisher'] = socket_events.SocketIOPublisher(socketio)

    from app.errors import register_error_handlers
    register_error_handlers(app)

    # Register blueprints
    from app.routes.auth import auth_bp
    from app.routes.users import users_bp
    from app.routes.companies import companies_bp
    from app.routes.service_requests import requests_bp
    from app.routes.quotes import quotes_bp
    from app.routes.missions import missions_bp
    from app.routes.reports import reports_bp
    from app.routes.invoices import invoices_bp
    from app.routes.payments import payments_bp
    from app.routes.products import products_bp
    from app.routes.equipments import equipments_bp
    from app.routes.service_types import service_types_bp
    from app.routes.messages import messages_bp
    from app.routes.notifications import notifications_bp
    from app.routes.site_customization import site_customization_bp
    from app.routes.dashboard import dashboard_bp
    from app.routes.uploads import uploads_bp

    api_prefix = app.config['API_PREFIX']
    app.register_blueprint(auth_bp, url_prefix=f'{api_prefix}/auth')
    app.register_blueprint(users_bp, url_prefix=f'{api_prefix}/users')
    app.register_blueprint(companies_bp, url_prefix=f'{api_prefix}/companies')
    app.register_blueprint(requests_bp, url_prefix=f'{api_prefix}/requests')
    app.register_blueprint(quotes_bp, url_prefix=f'{api_prefix}/quotes')
    app.register_blueprint(missions_bp, url_prefix=f'{api_prefix}/missions')
    app.register_blueprint(reports_bp, url_prefix=f'{api_prefix}/reports')
    app.register_blueprint(invoices_bp, url_prefix=f'{api_prefix}/invoices')
    app.register_blueprint(payments_bp, url_prefix=f'{api_prefix}/payments')
    app.register_blueprint(products_bp, url_prefix=f'{api_prefix}/products')
    app.register_blueprint(equipments_bp, url_prefix=f'{api_prefix}/equipments')
    app.register_blueprint(service_types_bp, url_prefix=f'{api_prefix}/service-types')
    app.register_blueprint(messages_bp, url_prefix=f'{api_prefix}/messages')
    app.register_blueprint(notifications_bp, url_prefix=f'{api_prefix}/notifications')
    app.register_blueprint(site_customization_bp, url_prefix=f'{api_prefix}/site-customization')
    app.register_blueprint(dashboard_bp, url_prefix=f'{api_prefix}/dashboard')
    app.register_blueprint(uploads_bp)

    from app.cli import register_commands
    register_commands(app)

    # Health check endpoint
    @app.route(f'{api_prefix}/health')
    @limiter.exempt
    def health():
        from app.utils.helpers import utcnow
        return jsonify({
            'success': True,
            'message': 'Server is running',
            'timestamp': utcnow().isoformat(),
            'environment': config_name,
        }), 200

    return app
