# Overview: Flask API routes for sales; parses input and returns JSON responses.

"""
Sales API routes.

Ledger errors are not caught here: they propagate to the single
LedgerError handler registered in create_app, which answers by kind.
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth
from ..pagination import parse_page_request
from ..services.registry import get_services
from ..services.sales_ledger import SalesFilters
from ..validation import parse_line_items, parse_int, reject_unknown_fields, require_payload


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")

RECORD_SALE_FIELDS = {
    "products",
    "amount_paid_cents",
    "payment_channel",
    "discount_cents",
    "customer",
    "outlet_id",
}


@sales_bp.post("")
@require_auth
def record_sale_route():
    """
    Record a completed sale and decrement stock.

    Request body:
    {
        "products": [{"product_id": int, "quantity": int}, ...],
        "amount_paid_cents": int,
        "payment_channel": "CASH" | "TRANSFER" | "CARD" | "OTHER" | "FLUTTER",
        "discount_cents": int (optional),
        "customer": {"name": str, "phone"?, "email"?, "address"?} (optional),
        "outlet_id": int (required for ADMIN/OWNER)
    }

    Returns:
        201: Sale recorded
        400: Invalid request or insufficient stock
        403: Role or outlet not permitted
        404: Outlet or product not found
    """
    data = require_payload(request.get_json(silent=True))
    reject_unknown_fields(data, RECORD_SALE_FIELDS)

    lines = parse_line_items(data.get("products"))
    outlet_id = parse_int(data.get("outlet_id"), "outlet_id", minimum=1, required=False)

    sale = get_services().sales.record_sale(
        g.actor,
        lines,
        amount_paid_cents=data.get("amount_paid_cents"),
        payment_channel=data.get("payment_channel"),
        discount_cents=data.get("discount_cents", 0),
        customer=data.get("customer"),
        outlet_id=outlet_id,
    )
    return jsonify({"message": "Sale recorded successfully", "sale": sale.to_dict()}), 201


@sales_bp.get("")
@require_auth
def list_sales_route():
    """
    List sales inside the caller's scope.

    Query params: outlet_id, business_id, sales_person_id, status,
    payment_channel, search, created_from, created_to, page, limit,
    sort_by, sort_order.
    """
    services = get_services()
    filters = SalesFilters.from_args(request.args)
    page = parse_page_request(
        request.args,
        default_limit=services.sales.default_page_size,
        max_limit=services.sales.max_page_size,
    )
    return jsonify(services.sales.list_sales(g.actor, filters, page)), 200


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    return jsonify({"sale": get_services().sales.get_sale(g.actor, sale_id)}), 200


@sales_bp.put("/<int:sale_id>/status")
@require_auth
def update_sale_status_route(sale_id: int):
    """
    Change a sale's status. Only RETURNED is accepted, from COMPLETED.

    Request body: {"status": "RETURNED"}

    Returns:
        200: Sale returned, stock restored
        400: Unsupported status
        403: Role not permitted
        404: Sale not found
        409: Sale already returned, or not COMPLETED
    """
    data = require_payload(request.get_json(silent=True))
    reject_unknown_fields(data, {"status"})

    sale = get_services().sales.update_sale_status(g.actor, sale_id, data.get("status"))
    return jsonify({"message": "Sale status updated", "sale": sale.to_dict()}), 200
