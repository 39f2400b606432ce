# Overview: Flask API routes for physical inventory counts and reconciliation.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth
from ..pagination import parse_page_request
from ..services.inventory_reconciliation import InventoryFilters
from ..services.registry import get_services
from ..validation import parse_line_items, reject_unknown_fields, require_payload


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventories")


@inventory_bp.post("/outlets/<int:outlet_id>")
@require_auth
def record_inventory_route(outlet_id: int):
    """
    Record a PENDING count for an outlet. Stock is not changed.

    Request body:
    {
        "products": [{"product_id": int, "counted": int}, ...],
        "note": str (optional)
    }
    """
    data = require_payload(request.get_json(silent=True))
    reject_unknown_fields(data, {"products", "note"})

    counts = parse_line_items(
        data.get("products"),
        quantity_field="counted",
        minimum=0,
        allow_duplicates=False,
    )

    inventory = get_services().inventory.record_inventory(g.actor, outlet_id, counts, note=data.get("note"))
    return jsonify({"message": "Inventory recorded successfully", "inventory": inventory.to_dict()}), 201


@inventory_bp.get("")
@require_auth
def list_inventories_route():
    services = get_services()
    filters = InventoryFilters.from_args(request.args)
    page = parse_page_request(
        request.args,
        default_limit=services.inventory.default_page_size,
        max_limit=services.inventory.max_page_size,
    )
    return jsonify(services.inventory.list_inventories(g.actor, filters, page)), 200


@inventory_bp.get("/<int:inventory_id>")
@require_auth
def get_inventory_route(inventory_id: int):
    return jsonify({"inventory": get_services().inventory.get_inventory(g.actor, inventory_id)}), 200


@inventory_bp.put("/<int:inventory_id>/complete")
@require_auth
def complete_inventory_route(inventory_id: int):
    inventory = get_services().inventory.complete_inventory(g.actor, inventory_id)
    return jsonify({"message": "Inventory completed", "inventory": inventory.to_dict()}), 200


@inventory_bp.put("/<int:inventory_id>/reconcile")
@require_auth
def reconcile_inventory_route(inventory_id: int):
    """
    Overwrite live stock with reconciled quantities.

    Request body:
    {
        "products": [{"product_id": int, "reconciled_quantity": int}, ...]
    }

    Returns:
        200: Inventory reconciled
        400: Invalid entries, or none of the products are on the inventory
        404: Inventory not found
        409: Inventory already reconciled
    """
    data = require_payload(request.get_json(silent=True))
    reject_unknown_fields(data, {"products"})

    counts = parse_line_items(
        data.get("products"),
        quantity_field="reconciled_quantity",
        minimum=0,
        allow_duplicates=False,
    )

    inventory = get_services().inventory.reconcile_inventory(g.actor, inventory_id, counts)
    return jsonify({"message": "Inventory reconciled", "inventory": inventory.to_dict()}), 200
