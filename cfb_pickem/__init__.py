import logging
import os

from flask import Flask, jsonify, request
from flask_caching import Cache
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

from config import config

logger = logging.getLogger(__name__)

db = SQLAlchemy()
cache = Cache()
migrate = Migrate()


def create_app(config_name=None, start_scheduler=True):
    app = Flask(__name__)

    # Determine configuration
    if config_name is None:
        config_name = os.environ.get("FLASK_CONFIG", "default")

    app.config.from_object(config[config_name]())

    # Initialize extensions
    db.init_app(app)
    cache.init_app(app)
    migrate.init_app(app, db)

    # Import and register blueprints
    from cfb_pickem.routes.api import bp as api_bp

    app.register_blueprint(api_bp, url_prefix="/api")

    # Register error handlers
    register_error_handlers(app)

    # Setup logging
    from cfb_pickem.utils.logging_config import setup_logging

    setup_logging(app)

    show_config_warnings(app)

    # Create database tables
    with app.app_context():
        db.create_all()

    # Live score updates are owned by the app, never by a module global
    from cfb_pickem.services.scheduler_service import LiveUpdateScheduler

    live_updates = LiveUpdateScheduler(app)
    app.extensions["live_updates"] = live_updates

    if (
        start_scheduler
        and app.config.get("SCHEDULER_ENABLED", True)
        and not app.config.get("TESTING")
    ):
        live_updates.start()

    return app


def show_config_warnings(app):
    """Log configuration status"""
    config_name = os.environ.get("FLASK_CONFIG", "default")

    app.logger.info(f"CFB Pick'em starting with '{config_name}' configuration")

    if config_name == "production" and app.config.get("DEBUG"):
        app.logger.warning("DEBUG mode is enabled in production!")

    if not app.config.get("ADMIN_API_TOKEN"):
        app.logger.warning("ADMIN_API_TOKEN not set, admin endpoints will reject requests")

    if not app.config.get("CFBD_API_KEY"):
        app.logger.warning("CFBD_API_KEY not set, score feed requests are unauthenticated")

    db_url = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if "sqlite" in db_url:
        app.logger.info(
            "Using SQLite database (%s)", "in-memory" if "memory" in db_url else "file"
        )
    elif "postgresql" in db_url:
        app.logger.info("Using PostgreSQL database")


def register_error_handlers(app):
    """Register global error handlers"""

    @app.after_request
    def after_request(response):
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        return response

    @app.errorhandler(400)
    def bad_request_error(error):
        app.logger.warning(
            f"400 Bad Request: {str(error)} - Path: {request.path} - Method: {request.method}"
        )
        return jsonify({"error": "Bad request", "detail": getattr(error, "description", None)}), 400

    @app.errorhandler(403)
    def forbidden_error(error):
        return jsonify({"error": "Access forbidden"}), 403

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({"error": "Resource not found"}), 404

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return jsonify({"error": "Internal server error"}), 500


from cfb_pickem import models  # noqa: F401, E402 - imported for model registration
