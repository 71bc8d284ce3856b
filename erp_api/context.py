"""
Per-request plumbing shared by the blueprints.

The database session is opened lazily on first use and closed by the
app's teardown hook; services are built around it on demand.
"""

from typing import Any
from uuid import UUID

from flask import current_app, g, request
from sqlalchemy.orm import Session

from erp_kernel.db.engine import get_session
from erp_kernel.domain.actors import SYSTEM_ACTOR_ID
from erp_kernel.domain.clock import Clock
from erp_kernel.exceptions import InvalidPayloadError
from erp_modules.inventory.service import InventoryService
from erp_modules.payables.service import PayablesService
from erp_modules.procurement.service import ProcurementService

ACTOR_HEADER = "X-Actor-Id"
REQUEST_ID_HEADER = "X-Request-Id"


def db_session() -> Session:
    if "db_session" not in g:
        g.db_session = get_session()
    return g.db_session


def clock() -> Clock:
    return current_app.extensions["erp_clock"]


def current_actor() -> UUID:
    """Actor id from the ``X-Actor-Id`` header, else the system actor."""
    raw = request.headers.get(ACTOR_HEADER)
    if not raw:
        return SYSTEM_ACTOR_ID
    try:
        return UUID(raw)
    except ValueError:
        raise InvalidPayloadError("request header", [f"'{ACTOR_HEADER}' must be a UUID"]) from None


def json_body() -> dict[str, Any]:
    """The request body as a JSON object; anything else is INVALID_PAYLOAD."""
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise InvalidPayloadError("request body", ["body must be a JSON object"])
    return body


def query_flag(name: str) -> bool:
    return request.args.get(name, "").lower() in ("1", "true", "yes")


def inventory_service() -> InventoryService:
    return InventoryService(db_session(), clock())


def procurement_service() -> ProcurementService:
    return ProcurementService(db_session(), clock())


def payables_service() -> PayablesService:
    return PayablesService(db_session(), clock())
