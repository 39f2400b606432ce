# Overview: Collaborator wiring and helpers shared by the ledger services.

from __future__ import annotations

import logging
from typing import Iterable

from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..models import Outlet, Product
from ..scope import Actor, ScopePredicate, ScopeResource, require_outlet_access, resolve_scope
from .audit_service import AuditService
from .cache_service import CacheService, scoped_tags
from .stock_guard import StockGuard, StockOutcome, StockResult

logger = logging.getLogger(__name__)


class LedgerService:
    """
    Base for services built once per app with injected collaborators.

    Subclasses get: the session, the stock guard bound to that session, the
    read cache and the audit sink. Nothing is looked up globally.
    """

    def __init__(
        self,
        session,
        guard: StockGuard,
        cache: CacheService,
        audit: AuditService,
        *,
        default_page_size: int = 20,
        max_page_size: int = 100,
    ):
        self._session = session
        self._guard = guard
        self._cache = cache
        self._audit = audit
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    def _resolve_outlet(self, actor: Actor, outlet_id: int | None) -> Outlet:
        """
        Outlet an operation targets.

        Outlet-bound actors default to (and may only name) their own outlet.
        Owners and admins must name one; an outlet outside their scope is
        reported as not found.
        """
        if outlet_id is None:
            if not actor.is_outlet_bound:
                raise ValidationError("outlet_id is required")
            outlet_id = actor.outlet_id

        require_outlet_access(actor, outlet_id)
        scope = resolve_scope(actor, ScopeResource.PRODUCTS)

        outlet = (
            self._session.query(Outlet)
            .filter(
                Outlet.id == outlet_id,
                scope.clause(business_col=Outlet.business_id, outlet_col=Outlet.id),
            )
            .first()
        )
        if outlet is None:
            raise NotFoundError("Outlet not found.", details={"outlet_id": outlet_id})
        return outlet

    def _load_products(self, outlet_id: int, scope: ScopePredicate, product_ids: Iterable[int]) -> dict[int, Product]:
        product_ids = set(product_ids)
        products = (
            self._session.query(Product)
            .filter(
                Product.id.in_(product_ids),
                Product.outlet_id == outlet_id,
                scope.clause(business_col=Product.business_id, outlet_col=Product.outlet_id),
            )
            .all()
        )
        found = {p.id: p for p in products}
        missing = sorted(product_ids - set(found))
        if missing:
            raise NotFoundError(
                f"Product with ID {missing[0]} not found in this outlet.",
                details={"product_ids": missing},
            )
        return found

    def _raise_for_stock(self, result: StockResult, product_name: str | None = None) -> None:
        if result.ok:
            return
        if result.outcome == StockOutcome.INSUFFICIENT_STOCK:
            logger.warning(
                "Insufficient stock for product %s: requested %s, available %s",
                result.product_id, result.requested, result.available,
            )
            raise InsufficientStockError(
                f"Insufficient stock for product {product_name or result.product_id}. "
                f"Available: {result.available}",
                details=result.to_dict(),
            )
        raise NotFoundError(
            f"Product with ID {result.product_id} not found.",
            details={"product_id": result.product_id},
        )

    def _invalidate(self, tags: Iterable[str], *, business_id: int | None, outlet_id: int | None) -> None:
        """Post-commit cache invalidation for every scope a write can appear in."""
        for tag in tags:
            self._cache.invalidate_tags(scoped_tags(tag, business_id=business_id, outlet_id=outlet_id))
