"""
PostPurchase Pro backend.

Serves the checkout extension (offer fetch and event reporting), the embedded
admin app (offers, analytics, billing) and Shopify webhooks.
"""
import os
import re
from flask import Flask
from flask_cors import CORS
from sqlalchemy.exc import SQLAlchemyError

from .extensions import db, migrate
from .config import get_config, validate_config
from .utils.logging_config import setup_logging

# Called from the checkout extension sandbox, whose origin is not fixed
CHECKOUT_ENDPOINTS = r'/api/(offer|analytics/event|analytics/decline)'


def create_app(config_name: str = None) -> Flask:
    """Build the app for `config_name` (defaults to FLASK_ENV)."""
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'development')

    setup_logging()
    validate_config(config_name)

    app = Flask(__name__)
    app.config.from_object(get_config(config_name))

    db.init_app(app)
    migrate.init_app(app, db)

    # Embedded admin origins; checkout endpoints are open
    admin_origins = [
        'http://localhost:5173',
        'http://127.0.0.1:5173',
        'https://admin.shopify.com',
        re.compile(r'https://.*\.myshopify\.com'),
    ]
    # `shopify app dev` tunnels
    if config_name != 'production':
        admin_origins.append(re.compile(r'https://.*\.trycloudflare\.com'))
    CORS(
        app,
        resources={
            CHECKOUT_ENDPOINTS: {'origins': '*'},
            r'/api/.*': {'origins': admin_origins, 'supports_credentials': True},
        },
        allow_headers=['Content-Type', 'Authorization', 'X-Shop-Domain']
    )

    register_blueprints(app)

    from .commands import init_app as init_commands
    init_commands(app)

    # Background scheduler (production or ENABLE_SCHEDULER=true)
    from .utils.scheduler import init_scheduler
    init_scheduler(app)

    register_error_handlers(app)

    @app.route('/health')
    def health_check():
        return {'status': 'healthy', 'service': 'postpurchase-pro'}

    return app


def register_blueprints(app: Flask) -> None:
    # Checkout extension
    from .api.checkout import checkout_bp

    # Admin app
    from .api.offers import offers_bp
    from .api.analytics import analytics_bp
    from .api.billing import billing_bp

    # Webhooks
    from .webhooks.app_lifecycle import app_lifecycle_bp

    app.register_blueprint(checkout_bp, url_prefix='/api')
    app.register_blueprint(offers_bp, url_prefix='/api/offers')
    app.register_blueprint(analytics_bp, url_prefix='/api/analytics')
    app.register_blueprint(billing_bp, url_prefix='/api/billing')
    app.register_blueprint(app_lifecycle_bp, url_prefix='/webhook')


def register_error_handlers(app: Flask) -> None:
    """Every error leaves the API in the shape built by utils.errors."""
    from .utils.errors import ErrorCode, error_response, exception_response
    from .utils.exceptions import PostPurchaseError

    @app.errorhandler(PostPurchaseError)
    def handle_domain_error(error):
        return exception_response(error)

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(error):
        db.session.rollback()
        return error_response('A database error occurred', ErrorCode.DATABASE_ERROR, 500, error=str(error))

    @app.errorhandler(400)
    def bad_request(error):
        return error_response('Bad request', ErrorCode.INVALID_REQUEST, 400, error=str(error))

    @app.errorhandler(404)
    def not_found(error):
        return error_response('Not found', ErrorCode.NOT_FOUND, 404, error=str(error), log_error=False)

    @app.errorhandler(405)
    def method_not_allowed(error):
        return error_response('Method not allowed', ErrorCode.INVALID_REQUEST, 405, log_error=False)

    @app.errorhandler(500)
    def internal_error(error):
        return error_response('Internal server error', ErrorCode.INTERNAL_ERROR, 500, error=str(error))
