"""Flask application factory for ticketvault."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException, InternalServerError

from .config import AppConfig, load_config
from .errors import TicketVaultError
from .extensions import db
from .services.numbering import ensure_ticket_counter
from .services.transactions import commit
from .storage import BlobStore
from .views.helpers import BLOB_STORE_EXTENSION


def _configure_logging(app: Flask, app_config: AppConfig) -> None:
    level = logging.getLevelName(app_config.log_level)
    package_logger = logging.getLogger(__package__)
    package_logger.setLevel(level)
    if not logging.getLogger().handlers and not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("[%(asctime)s] %(levelname)s in %(name)s: %(message)s")
        )
        package_logger.addHandler(handler)
    app.logger.setLevel(level)


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(TicketVaultError)
    def handle_service_error(exc: TicketVaultError):
        if exc.status_code >= 500:
            app.logger.error("Request failed: %s", exc, exc_info=exc.__cause__ or exc)
        return jsonify({"message": exc.message}), exc.status_code

    @app.errorhandler(InternalServerError)
    def handle_unexpected_error(exc: InternalServerError):
        original = getattr(exc, "original_exception", None)
        if original is not None:
            app.logger.error("Unhandled error: %s", original, exc_info=original)
        db.session.rollback()
        return jsonify({"message": "Internal Server Error"}), 500

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return jsonify({"message": exc.description}), exc.code


def create_app(config_path: Optional[str | Path] = None) -> Flask:
    """Create and configure the Flask application."""

    app = Flask(__name__, instance_relative_config=True)
    app_config: AppConfig = load_config(config_path)

    app.config["SECRET_KEY"] = app_config.secret_key
    app.config["SQLALCHEMY_DATABASE_URI"] = app_config.database_uri
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["MAX_CONTENT_LENGTH"] = app_config.max_upload_bytes
    app.config["APP_CONFIG"] = app_config

    _configure_logging(app, app_config)

    # One upload root serves both writes and reads.
    blob_store = BlobStore(app_config.uploads_path)
    blob_store.ensure_root()
    app.extensions[BLOB_STORE_EXTENSION] = blob_store

    db.init_app(app)

    with app.app_context():
        # Import models so SQLAlchemy registers them, then create tables if needed.
        from . import models  # noqa: F401

        db.create_all()
        ensure_ticket_counter(db.session)
        commit(db.session, "initialise ticket counter")

    from .views.attachments import attachments_bp
    from .views.tickets import tickets_bp

    app.register_blueprint(tickets_bp)
    app.register_blueprint(attachments_bp)
    _register_error_handlers(app)

    @app.get("/health")
    def health():
        return jsonify({"status": "ok"})

    return app


if __name__ == "__main__":
    application = create_app()
    application.run(debug=True)
