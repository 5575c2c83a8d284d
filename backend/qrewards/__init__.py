# backend/qrewards/__init__.py
from __future__ import annotations

from flask import Flask

from .config import Config, engine_options
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.config.setdefault(
        "SQLALCHEMY_ENGINE_OPTIONS",
        engine_options(app.config["SQLALCHEMY_DATABASE_URI"], app.config["STORE_TIMEOUT_SECONDS"]),
    )
    app.logger.setLevel(app.config["LOG_LEVEL"])

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    from .services import components
    components.init_app(app)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.redeem import redeem_bp
    from .routes.admin import admin_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(redeem_bp)
    app.register_blueprint(admin_bp)

    from .services.admin_gate import AdminGate
    if not AdminGate(app.config["ADMIN_PASSWORD"]).is_configured:
        app.logger.warning("ADMIN_PASSWORD is not set; all admin endpoints will return 401")

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
