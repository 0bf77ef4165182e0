# backend/storefront/__init__.py
from flask import Flask

from .config import Config, engine_options_for
from .extensions import db, migrate


def create_app(test_config=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    # Engine options follow the final database URL (tests swap in SQLite)
    if not test_config or "SQLALCHEMY_ENGINE_OPTIONS" not in test_config:
        app.config["SQLALCHEMY_ENGINE_OPTIONS"] = engine_options_for(
            app.config["SQLALCHEMY_DATABASE_URI"],
            app.config["STORE_TIMEOUT_SECONDS"],
        )

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.orders import admin_orders_bp, intake_bp
    from .routes.alerts import alerts_bp
    from .routes.stock import stock_bp
    from .routes.logs import logs_bp
    from .routes.reports import reports_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(admin_orders_bp)
    app.register_blueprint(intake_bp)
    app.register_blueprint(alerts_bp)
    app.register_blueprint(stock_bp)
    app.register_blueprint(logs_bp)
    app.register_blueprint(reports_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
