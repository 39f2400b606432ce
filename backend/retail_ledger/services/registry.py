# Overview: Builds the ledger services once per app and hands them to routes.

from __future__ import annotations

from dataclasses import dataclass

from flask import Flask, current_app

from ..extensions import db
from .audit_service import AuditService
from .cache_service import CacheService
from .catalog import CatalogService
from .inventory_reconciliation import InventoryReconciliationService
from .sales_ledger import SalesLedgerService
from .stock_guard import StockGuard

EXTENSION_KEY = "retail_ledger"


@dataclass
class LedgerServices:
    cache: CacheService
    audit: AuditService
    guard: StockGuard
    sales: SalesLedgerService
    inventory: InventoryReconciliationService
    catalog: CatalogService


def build_services(app: Flask) -> LedgerServices:
    """
    Wire collaborators from app config.

    All services share db.session (scoped per app context), so a guard
    statement always joins the calling service's transaction.
    """
    config = app.config
    session = db.session

    cache = CacheService(
        enabled=config.get("CACHE_ENABLED", True),
        max_entries=config.get("CACHE_MAX_ENTRIES", 1000),
        default_ttl_seconds=config.get("CACHE_DEFAULT_TTL_SECONDS", 300),
    )
    paging = {
        "default_page_size": config.get("DEFAULT_PAGE_SIZE", 20),
        "max_page_size": config.get("MAX_PAGE_SIZE", 100),
    }
    audit = AuditService(session, enabled=config.get("AUDIT_ENABLED", True), **paging)
    guard = StockGuard(session)

    services = LedgerServices(
        cache=cache,
        audit=audit,
        guard=guard,
        sales=SalesLedgerService(session, guard, cache, audit, **paging),
        inventory=InventoryReconciliationService(session, guard, cache, audit, **paging),
        catalog=CatalogService(session, guard, cache, audit, **paging),
    )
    app.extensions[EXTENSION_KEY] = services
    return services


def get_services() -> LedgerServices:
    return current_app.extensions[EXTENSION_KEY]
