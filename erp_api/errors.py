"""
Exception -> HTTP response mapping.

Every ``ErpKernelError`` is rendered from its ``to_dict()`` so the body
carries the machine-readable ``error`` code plus the structured fields.
The status is chosen by exception category, most specific first.
"""

from flask import Flask, jsonify
from sqlalchemy.exc import DBAPIError
from werkzeug.exceptions import HTTPException

from erp_kernel.db.engine import translate_dbapi_error
from erp_kernel.exceptions import (
    ConcurrencyError,
    DuplicateReferenceError,
    ErpKernelError,
    InventoryError,
    NotFoundError,
    PaymentError,
    StorageUnavailableError,
    ValidationError,
    WorkflowError,
)
from erp_kernel.logging_config import get_logger

logger = get_logger("api.errors")

_STATUS_BY_CATEGORY: tuple[tuple[type[ErpKernelError], int], ...] = (
    (NotFoundError, 404),
    (DuplicateReferenceError, 409),
    (WorkflowError, 409),
    (ConcurrencyError, 409),
    (StorageUnavailableError, 503),
    (ValidationError, 400),
    (InventoryError, 400),
    (PaymentError, 400),
)


def status_for(exc: ErpKernelError) -> int:
    for category, status in _STATUS_BY_CATEGORY:
        if isinstance(exc, category):
            return status
    return 500


def register_error_handlers(app: Flask) -> None:

    @app.errorhandler(ErpKernelError)
    def _handle_kernel_error(exc: ErpKernelError):
        status = status_for(exc)
        log = logger.error if status >= 500 else logger.info
        log("request_failed", extra={"error_code": exc.code, "status": status})
        return jsonify(exc.to_dict()), status

    @app.errorhandler(HTTPException)
    def _handle_http_error(exc: HTTPException):
        code = (exc.name or "HTTP_ERROR").upper().replace(" ", "_")
        return jsonify({"error": code, "message": exc.description}), exc.code

    @app.errorhandler(Exception)
    def _handle_unexpected(exc: Exception):
        logger.exception("request_crashed", extra={"error_type": type(exc).__name__})
        return jsonify({"error": "INTERNAL_ERROR", "message": "Internal server error"}), 500

    @app.errorhandler(DBAPIError)
    def _handle_driver_error(exc: DBAPIError):
        # Raised outside a service scope, e.g. while opening the request session.
        translated = translate_dbapi_error(exc, "request")
        if translated is None:
            return _handle_unexpected(exc)
        return _handle_kernel_error(translated)
