# Overview: Read-only product routes showing live stock inside the caller's scope.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth
from ..pagination import parse_page_request
from ..services.catalog import ProductFilters
from ..services.registry import get_services


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products_route():
    services = get_services()
    filters = ProductFilters.from_args(request.args)
    page = parse_page_request(
        request.args,
        default_limit=services.catalog.default_page_size,
        max_limit=services.catalog.max_page_size,
        default_sort="name",
    )
    return jsonify(services.catalog.list_products(g.actor, filters, page)), 200


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    return jsonify({"product": get_services().catalog.get_product(g.actor, product_id)}), 200
