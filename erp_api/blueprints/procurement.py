"""Purchase requests with their approval decisions, and purchase orders."""

from uuid import UUID

from flask import Blueprint, jsonify, request

from erp_api import serializers
from erp_api.context import current_actor, json_body, payables_service, procurement_service
from erp_kernel.domain.payloads import parse_optional_uuid
from erp_kernel.exceptions import InvalidPayloadError
from erp_modules.payables.models import OrderInvoiceRequest
from erp_modules.procurement.models import (
    OrderStatus,
    PurchaseOrderInput,
    PurchaseRequestInput,
    RequestStatus,
)

bp = Blueprint("procurement", __name__, url_prefix="/api/purchase-requests")
orders_bp = Blueprint("purchase_orders", __name__, url_prefix="/api/purchase-orders")


def _status_arg(enum_type):
    raw = request.args.get("status")
    if not raw:
        return None
    try:
        return enum_type(raw)
    except ValueError:
        raise InvalidPayloadError("query", [f"unknown status {raw!r}"]) from None


@bp.get("")
def list_requests():
    requests = procurement_service().list_requests(status=_status_arg(RequestStatus))
    return jsonify([serializers.request_to_json(r) for r in requests])


@bp.post("")
def create_request():
    req = PurchaseRequestInput.from_payload(json_body())
    created = procurement_service().create_request(
        req.request_number,
        req.lines,
        urgency=req.urgency,
        reason=req.reason,
        requested_by_id=current_actor(),
        request_date=req.request_date,
    )
    return jsonify(serializers.request_to_json(created)), 201


@bp.get("/<uuid:request_id>")
def get_request(request_id: UUID):
    return jsonify(serializers.request_to_json(procurement_service().get_request(request_id)))


@bp.put("/<uuid:request_id>/approve")
def approve_request(request_id: UUID):
    decided = procurement_service().approve(request_id, actor_id=current_actor())
    return jsonify(serializers.request_to_json(decided))


@bp.put("/<uuid:request_id>/reject")
def reject_request(request_id: UUID):
    decided = procurement_service().reject(request_id, actor_id=current_actor())
    return jsonify(serializers.request_to_json(decided))


# Purchase orders


@orders_bp.get("")
def list_orders():
    supplier_id = parse_optional_uuid(request.args.get("supplierId"), "query", "supplierId")
    orders = procurement_service().list_orders(
        status=_status_arg(OrderStatus), supplier_id=supplier_id,
    )
    return jsonify([serializers.order_to_json(o) for o in orders])


@orders_bp.post("")
def create_order():
    inp = PurchaseOrderInput.from_payload(json_body())
    order = procurement_service().create_order(
        inp.po_number,
        inp.supplier_id,
        inp.lines,
        order_date=inp.order_date,
        expected_delivery_date=inp.expected_delivery_date,
        payment_terms=inp.payment_terms,
        delivery_terms=inp.delivery_terms,
        notes=inp.notes,
        actor_id=current_actor(),
    )
    return jsonify(serializers.order_to_json(order)), 201


@orders_bp.get("/<uuid:order_id>")
def get_order(order_id: UUID):
    return jsonify(serializers.order_to_json(procurement_service().get_order(order_id)))


@orders_bp.put("/<uuid:order_id>")
def update_order(order_id: UUID):
    changes = PurchaseOrderInput.from_payload(json_body())
    order = procurement_service().update_order(order_id, changes, actor_id=current_actor())
    return jsonify(serializers.order_to_json(order))


@orders_bp.delete("/<uuid:order_id>")
def delete_order(order_id: UUID):
    procurement_service().delete_order(order_id, actor_id=current_actor())
    return "", 204


@orders_bp.put("/<uuid:order_id>/<any(send, confirm, receive, cancel):action>")
def advance_order(order_id: UUID, action: str):
    service = procurement_service()
    step = getattr(service, f"{action}_order")
    return jsonify(serializers.order_to_json(step(order_id, actor_id=current_actor())))


@orders_bp.post("/<uuid:order_id>/convert-to-invoice")
def convert_to_invoice(order_id: UUID):
    req = OrderInvoiceRequest.from_payload(json_body())
    invoice = payables_service().create_invoice_from_po(
        order_id,
        req.invoice_number,
        req.invoice_date,
        due_date=req.due_date,
        project_id=req.project_id,
        asset_instance_id=req.asset_instance_id,
        actor_id=current_actor(),
        payment_terms=req.payment_terms,
        notes=req.notes,
    )
    return jsonify(serializers.invoice_to_json(invoice)), 201
