"""Inventory items, goods receipts and goods issues."""

from uuid import UUID

from flask import Blueprint, jsonify

from erp_api import serializers
from erp_api.context import current_actor, inventory_service, json_body, query_flag
from erp_modules.inventory.models import GoodsIssueRequest, GoodsReceiptRequest, NewItem

bp = Blueprint("inventory", __name__, url_prefix="/api")


@bp.get("/inventory")
def list_items():
    items = inventory_service().list_items(low_stock_only=query_flag("lowStock"))
    return jsonify([serializers.item_to_json(item) for item in items])


@bp.post("/inventory")
def create_item():
    new_item = NewItem.from_payload(json_body())
    item = inventory_service().create_item(new_item, actor_id=current_actor())
    return jsonify(serializers.item_to_json(item)), 201


@bp.get("/inventory/<uuid:item_id>")
def get_stock(item_id: UUID):
    return jsonify(serializers.stock_to_json(inventory_service().get_stock(item_id)))


@bp.get("/inventory/<uuid:item_id>/transactions")
def item_transactions(item_id: UUID):
    txs = inventory_service().item_transactions(item_id)
    return jsonify([serializers.transaction_to_json(tx) for tx in txs])


# Goods receipt


@bp.get("/goods-receipt")
def list_goods_receipts():
    receipts = inventory_service().list_goods_receipts()
    return jsonify([serializers.receipt_to_json(r) for r in receipts])


@bp.post("/goods-receipt")
def create_goods_receipt():
    req = GoodsReceiptRequest.from_payload(json_body())
    result = inventory_service().create_goods_receipt(
        req.reference, req.lines, actor_id=current_actor(),
    )
    return jsonify({
        "receipt": serializers.receipt_to_json(result.receipt),
        "stock": [serializers.stock_to_json(s) for s in result.stock],
    }), 201


@bp.get("/goods-receipt/<uuid:receipt_id>")
def get_goods_receipt(receipt_id: UUID):
    return jsonify(serializers.receipt_to_json(inventory_service().get_goods_receipt(receipt_id)))


# Goods issue


@bp.get("/goods-issue")
def list_goods_issues():
    issues = inventory_service().list_goods_issues()
    return jsonify([serializers.issue_to_json(i) for i in issues])


@bp.post("/goods-issue")
def create_goods_issue():
    req = GoodsIssueRequest.from_payload(json_body())
    result = inventory_service().create_goods_issue(
        req.reference, req.lines, actor_id=current_actor(), project_id=req.project_id,
    )
    return jsonify({
        "issue": serializers.issue_to_json(result.issue),
        "stock": [serializers.stock_to_json(s) for s in result.stock],
    }), 201


@bp.get("/goods-issue/<uuid:issue_id>")
def get_goods_issue(issue_id: UUID):
    return jsonify(serializers.issue_to_json(inventory_service().get_goods_issue(issue_id)))
