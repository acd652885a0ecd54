# backend/cafe/__init__.py
from __future__ import annotations

import logging

from flask import Flask, jsonify

from .config import Config
from .extensions import db, migrate
from .errors import FulfillmentError
from .validation import ValidationError


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(getattr(logging, str(app.config["LOG_LEVEL"]).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.catalog import catalog_bp
    from .routes.inventory import inventory_bp
    from .routes.availability import availability_bp
    from .routes.orders import orders_bp
    from .routes.settlements import settlements_bp
    from .routes.reports import reports_bp
    from .routes.payroll import payroll_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(availability_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(settlements_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(payroll_bp)

    @app.errorhandler(FulfillmentError)
    def handle_fulfillment_error(exc: FulfillmentError):
        db.session.rollback()
        return jsonify(exc.to_dict()), exc.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc: ValidationError):
        db.session.rollback()
        return jsonify({"error": str(exc)}), 400

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
