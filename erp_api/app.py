"""
Flask application factory.

``create_app`` wires the kernel settings into logging and the database
engine, registers the blueprints and the error mapping, and installs the
per-request hooks:

* ``before_request`` binds ``request_id`` and ``actor_id`` into
  ``LogContext`` so every log line of the request carries them.
* ``teardown_request`` closes the request's session (rolling back anything
  a failed handler left open) and clears the log context.

Pass ``init_db=False`` when the engine has already been initialised by the
caller, e.g. a test harness sharing one engine across apps.
"""

import logging
from uuid import uuid4

from flask import Flask, g, jsonify, request
from sqlalchemy import text

from erp_api.blueprints import BLUEPRINTS
from erp_api.context import REQUEST_ID_HEADER, current_actor, db_session
from erp_api.errors import register_error_handlers
from erp_api.json_provider import ErpJSONProvider
from erp_kernel.config import ErpSettings, load_settings
from erp_kernel.db.engine import create_tables, init_engine_from_settings
from erp_kernel.domain.clock import Clock, SystemClock
from erp_kernel.exceptions import StorageUnavailableError
from erp_kernel.logging_config import LogContext, configure_logging, get_logger

logger = get_logger("api.app")


def create_app(
    settings: ErpSettings | None = None,
    clock: Clock | None = None,
    init_db: bool = True,
) -> Flask:
    settings = settings or load_settings()
    configure_logging(level=getattr(logging, settings.log_level.upper()))

    if init_db:
        init_engine_from_settings(settings)
        create_tables()

    app = Flask(__name__)
    app.json = ErpJSONProvider(app)
    app.config["ERP_SETTINGS"] = settings
    app.extensions["erp_clock"] = clock or SystemClock()

    for blueprint in BLUEPRINTS:
        app.register_blueprint(blueprint)
    register_error_handlers(app)

    @app.before_request
    def _bind_request_context():
        LogContext.set(
            request_id=request.headers.get(REQUEST_ID_HEADER) or str(uuid4()),
            actor_id=str(current_actor()),
        )

    @app.teardown_request
    def _close_session(exc):
        session = g.pop("db_session", None)
        if session is not None:
            session.close()
        LogContext.clear()

    @app.get("/health")
    def health():
        try:
            db_session().execute(text("SELECT 1"))
        except Exception as exc:
            logger.error("health_check_failed", extra={"error": str(exc)})
            body = StorageUnavailableError("health_check", str(exc)).to_dict()
            return jsonify(body), 503
        return jsonify({"status": "ok"})

    logger.info("app_created", extra={
        "dialect": "sqlite" if settings.is_sqlite else "postgresql",
        "blueprints": [bp.name for bp in BLUEPRINTS],
    })
    return app
