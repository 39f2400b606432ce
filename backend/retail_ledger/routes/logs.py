# Overview: Flask API route for reading the audit trail inside the caller's scope.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth
from ..pagination import parse_page_request
from ..services.audit_service import LogFilters
from ..services.registry import get_services


logs_bp = Blueprint("logs", __name__, url_prefix="/api/logs")


@logs_bp.get("")
@require_auth
def list_logs_route():
    """
    List audit entries. Owners see their business, store executives their
    outlet, sales reps only what they did.

    Query params: actor_id, action, resource_type, resource_id, business_id,
    outlet_id, search (description or performer email/name), created_from,
    created_to, page, limit, sort_by (created_at|action), sort_order.
    """
    audit = get_services().audit
    filters = LogFilters.from_args(request.args)
    page = parse_page_request(
        request.args,
        default_limit=audit.default_page_size,
        max_limit=audit.max_page_size,
    )
    return jsonify(audit.list_logs(g.actor, filters, page)), 200
