# backend/twsystem/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, migrate


def create_app(config=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config or Config)

    from .logging_config import setup_logging
    setup_logging(app)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    from .errors import register_error_handlers
    register_error_handlers(app)

    from .services.mail_service import build_mail_sender
    from .services.rate_limit_service import build_limiters
    from .services.token_service import TokenSettings
    from .services.workflow_service import connect_signal_handlers

    app.extensions["twsystem.tokens"] = TokenSettings.from_config(app.config)
    app.extensions["twsystem.rate_limiters"] = build_limiters(app.config)
    app.extensions["twsystem.mail"] = build_mail_sender(app.config)
    connect_signal_handlers()

    # Register blueprints
    from .routes.health import health_bp
    from .routes.auth import auth_bp
    from .routes.users import users_bp
    from .routes.clients import clients_bp
    from .routes.developments import developments_bp
    from .routes.production_orders import production_orders_bp
    from .routes.production_sheets import production_sheets_bp
    from .routes.delivery_sheets import delivery_sheets_bp
    from .routes.production_receipts import production_receipts_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(clients_bp)
    app.register_blueprint(developments_bp)
    app.register_blueprint(production_orders_bp)
    app.register_blueprint(production_sheets_bp)
    app.register_blueprint(delivery_sheets_bp)
    app.register_blueprint(production_receipts_bp)

    from .decorators import check_rate_limit

    @app.before_request
    def limit_api_requests():
        if request.method != "OPTIONS" and request.path.startswith("/api/"):
            check_rate_limit("api")

    allowed_origins = set(app.config.get("ALLOWED_ORIGINS") or ())

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
