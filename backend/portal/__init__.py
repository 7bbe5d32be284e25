# backend/portal/__init__.py
from flask import Flask

from .config import Config
from .extensions import db, migrate, notifications


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    notifications.init_app(app)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.requests import requests_bp  # Employee: catalog, submit, history
    from .routes.approvals import approvals_bp  # Manager: approve / reject
    from .routes.dispatch import dispatch_bp  # Admin: dispatch queue and costs
    from .routes.stock import stock_bp  # Admin: items and stock receipts
    from .routes.users import users_bp  # Admin: staff profiles

    app.register_blueprint(system_bp)
    app.register_blueprint(requests_bp)
    app.register_blueprint(approvals_bp)
    app.register_blueprint(dispatch_bp)
    app.register_blueprint(stock_bp)
    app.register_blueprint(users_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
