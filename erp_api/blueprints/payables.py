"""Purchase invoices, payments, credit notes and invoice approval."""

from uuid import UUID

from flask import Blueprint, jsonify, request

from erp_api import serializers
from erp_api.context import current_actor, json_body, payables_service
from erp_kernel.domain.payloads import parse_optional_uuid
from erp_kernel.exceptions import InvalidPayloadError
from erp_modules.payables.models import (
    CreditNoteRequest,
    InvoiceInput,
    InvoiceStatus,
    PaymentRequest,
)

bp = Blueprint("payables", __name__, url_prefix="/api/purchase-invoices")


@bp.get("")
def list_invoices():
    status = None
    raw = request.args.get("status")
    if raw:
        try:
            status = InvoiceStatus(raw)
        except ValueError:
            raise InvalidPayloadError("query", [f"unknown status {raw!r}"]) from None
    supplier_id = parse_optional_uuid(request.args.get("supplierId"), "query", "supplierId")
    invoices = payables_service().list_invoices(status=status, supplier_id=supplier_id)
    return jsonify([serializers.invoice_to_json(inv) for inv in invoices])


@bp.post("")
def create_invoice():
    inp = InvoiceInput.from_payload(json_body())
    invoice = payables_service().create_invoice(
        inp.invoice_number,
        inp.supplier_id,
        inp.lines,
        inp.invoice_date,
        due_date=inp.due_date,
        project_id=inp.project_id,
        asset_instance_id=inp.asset_instance_id,
        actor_id=current_actor(),
        payment_terms=inp.payment_terms,
        notes=inp.notes,
    )
    return jsonify(serializers.invoice_to_json(invoice)), 201


@bp.get("/<uuid:invoice_id>")
def get_invoice(invoice_id: UUID):
    return jsonify(serializers.invoice_to_json(payables_service().get_invoice(invoice_id)))


@bp.patch("/<uuid:invoice_id>/approve")
def approve_invoice(invoice_id: UUID):
    invoice = payables_service().approve_invoice(invoice_id, actor_id=current_actor())
    return jsonify(serializers.invoice_to_json(invoice))


@bp.patch("/<uuid:invoice_id>/reject")
def reject_invoice(invoice_id: UUID):
    invoice = payables_service().reject_invoice(invoice_id, actor_id=current_actor())
    return jsonify(serializers.invoice_to_json(invoice))


# Settlement


@bp.get("/<uuid:invoice_id>/payments")
def list_payments(invoice_id: UUID):
    payments = payables_service().list_payments(invoice_id)
    return jsonify([serializers.payment_to_json(p) for p in payments])


@bp.post("/<uuid:invoice_id>/payments")
def record_payment(invoice_id: UUID):
    req = PaymentRequest.from_payload(json_body())
    result = payables_service().record_payment(
        invoice_id,
        req.amount,
        req.payment_date,
        req.payment_method,
        reference_number=req.reference_number,
        notes=req.notes,
        files=req.files,
        actor_id=current_actor(),
    )
    return jsonify({
        "payment": serializers.payment_to_json(result.payment),
        "invoice": serializers.invoice_to_json(result.invoice),
    }), 201


@bp.get("/<uuid:invoice_id>/credit-notes")
def list_credit_notes(invoice_id: UUID):
    notes = payables_service().list_credit_notes(invoice_id)
    return jsonify([serializers.credit_note_to_json(n) for n in notes])


@bp.post("/<uuid:invoice_id>/credit-notes")
def apply_credit_note(invoice_id: UUID):
    req = CreditNoteRequest.from_payload(json_body())
    result = payables_service().apply_credit_note(
        invoice_id,
        req.credit_note_number,
        req.amount,
        req.credit_note_date,
        reason=req.reason,
        actor_id=current_actor(),
    )
    return jsonify({
        "creditNote": serializers.credit_note_to_json(result.credit_note),
        "invoice": serializers.invoice_to_json(result.invoice),
    }), 201
