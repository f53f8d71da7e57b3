# backend/atelier/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    """
    Build the workshop API.

    config_overrides is applied before extensions bind, so tests can swap
    the database URL (Flask-SQLAlchemy creates its engine in init_app).
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    db.init_app(app)
    migrate.init_app(app, db)

    # Models must be imported before Alembic autogenerate reads the metadata
    from . import models  # noqa: F401

    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.admin import admin_bp
    from .routes.orders import orders_bp
    from .routes.clients import clients_bp
    from .routes.measurements import measurements_bp
    from .routes.finance import finance_bp

    for blueprint in (system_bp, auth_bp, admin_bp, orders_bp, clients_bp, measurements_bp, finance_bp):
        app.register_blueprint(blueprint)

    allowed_origins = set(app.config.get("CORS_ORIGINS", ()))

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PATCH,DELETE,OPTIONS"
        return response

    from .cli import register_commands
    register_commands(app)

    return app
