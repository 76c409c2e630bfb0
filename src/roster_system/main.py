from __future__ import annotations

import importlib
import logging
from datetime import timedelta
from types import ModuleType
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, jsonify
from flask_jwt_extended import JWTManager
from werkzeug.exceptions import HTTPException

from .config import get_settings_module
from .container import Container, build_container
from .core.exceptions import DomainError
from .core.logging_config import configure_logging
from .database.bootstrap import apply_schema, ensure_admin_identity, list_tables
from .identities.controller import register as register_identities
from .records.controller import register as register_records

logger = logging.getLogger(__name__)


def error_body(code: str, message: str) -> dict:
    return {"error": {"code": code, "message": message}}


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def handle_domain_error(exc: DomainError):
        return jsonify(error_body(exc.code, exc.message)), exc.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return jsonify(error_body(exc.name.upper().replace(" ", "_"), exc.description or exc.name)), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        logger.exception("Unhandled error: %s", exc)
        return jsonify(error_body("INTERNAL_SERVER_ERROR", "Internal server error")), 500


def create_app(*, settings: Optional[ModuleType] = None, container: Optional[Container] = None) -> Flask:
    load_dotenv(override=False)
    settings_module = get_settings_module()
    if settings is None:
        settings = importlib.import_module(settings_module)

    configure_logging(getattr(settings, "LOG_LEVEL", "INFO"))

    app = Flask(__name__)
    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))
    app.config["JWT_SECRET_KEY"] = getattr(settings, "JWT_SECRET_KEY")
    app.config["JWT_ACCESS_TOKEN_EXPIRES"] = timedelta(hours=int(getattr(settings, "JWT_EXPIRES_HOURS", 168)))
    app.config["DEFAULT_PAGE_SIZE"] = int(getattr(settings, "DEFAULT_PAGE_SIZE", 10))
    JWTManager(app)

    if container is None:
        container = build_container(settings=settings)
        db_config = getattr(settings, "DB_CONFIG")
        logger.debug(
            "settings=%s db=%s@%s:%s/%s",
            settings_module,
            db_config.get("user"),
            db_config.get("host"),
            db_config.get("port", 3306),
            db_config.get("database"),
        )

        if bool(getattr(settings, "AUTO_INIT_DB", False)) and container.conn is not None:
            apply_schema(container.conn)
            logger.info("schema ready (tables=%d)", len(list_tables(container.conn)))
        if bool(getattr(settings, "AUTO_SEED_DB", False)) and container.conn is not None:
            ensure_admin_identity(
                container.conn,
                email=getattr(settings, "ADMIN_EMAIL", ""),
                password=getattr(settings, "ADMIN_PASSWORD", ""),
            )

    app.extensions["roster_container"] = container

    register_error_handlers(app)

    @app.route("/api/health", methods=["GET"], endpoint="health")
    def health():
        return jsonify({"status": "ok", "cache": container.cache.ping()})

    register_identities(app, container)
    register_records(app, container)

    return app
