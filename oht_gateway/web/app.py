"""Flask application configuration and blueprint registration."""

from __future__ import annotations

from flask import Flask, jsonify

from oht_gateway.config import CALLBACK_ROUTE
from oht_gateway.logger import get_logger

from .routes.callback import callback_bp
from .routes.jobs import items_bp, jobs_bp
from .routes.settings import settings_bp
from .routes.sweeps import sweeps_bp
from .services import init_services

logger = get_logger(__name__)


def build_app(transport=None) -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)

    # Ensure JSON responses keep Unicode data.
    app.json.ensure_ascii = False

    init_services(app, transport=transport)
    register_blueprints(app)
    register_default_routes(app)

    return app


def register_blueprints(app: Flask) -> None:
    """Register Flask blueprints."""
    app.register_blueprint(callback_bp, url_prefix=CALLBACK_ROUTE.rsplit("/", 1)[0])
    app.register_blueprint(jobs_bp, url_prefix="/api/jobs")
    app.register_blueprint(items_bp, url_prefix="/api/items")
    app.register_blueprint(settings_bp, url_prefix="/api/settings")
    app.register_blueprint(sweeps_bp, url_prefix="/api/sweeps")


def register_default_routes(app: Flask) -> None:
    """Register the health route and JSON error handlers."""

    @app.get("/health")
    def health_check():
        logger.debug("Health check requested")
        return jsonify({"status": "ok"})

    @app.errorhandler(404)
    def page_not_found(e):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(500)
    def internal_error(e):
        logger.exception("Internal server error: %s", e)
        return jsonify({"error": "Internal server error"}), 500
