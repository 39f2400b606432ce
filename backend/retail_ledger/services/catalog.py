# Overview: Scoped, cached reads of products and their live stock.

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from sqlalchemy import or_

from ..errors import NotFoundError
from ..models import Product, ProductStatus
from ..pagination import PageRequest, like_pattern, paginate
from ..scope import READ_ROLES, Actor, ScopePredicate, ScopeResource, require_role, resolve_scope
from ..validation import parse_choice, parse_int
from .cache_service import CacheTag, read_tag
from .ledger_base import LedgerService

PRODUCT_SORTABLE = {
    "name": Product.name,
    "quantity": Product.quantity,
    "price_cents": Product.price_cents,
    "created_at": Product.created_at,
    "updated_at": Product.updated_at,
}


@dataclass(frozen=True)
class ProductFilters:
    outlet_id: Optional[int] = None
    business_id: Optional[int] = None
    status: Optional[str] = None
    category: Optional[str] = None
    search: Optional[str] = None

    @classmethod
    def from_args(cls, args: Mapping[str, Any]) -> "ProductFilters":
        search = args.get("search")
        category = args.get("category")
        return cls(
            outlet_id=parse_int(args.get("outlet_id"), "outlet_id", minimum=1, required=False),
            business_id=parse_int(args.get("business_id"), "business_id", minimum=1, required=False),
            status=parse_choice(args.get("status"), "status", ProductStatus.ALL, required=False),
            category=category.strip() if isinstance(category, str) and category.strip() else None,
            search=search.strip() if isinstance(search, str) and search.strip() else None,
        )

    def cache_token(self) -> str:
        return "|".join(f"{name}={value}" for name, value in self.__dict__.items())


class CatalogService(LedgerService):
    """Read-only product access. Stock is only ever changed by StockGuard."""

    def get_product(self, actor: Actor, product_id: int) -> dict:
        require_role(actor, READ_ROLES)
        scope = resolve_scope(actor, ScopeResource.PRODUCTS)

        key = f"products:detail:{product_id}:{scope.cache_token()}"
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        product = self._scoped_products(scope).filter(Product.id == product_id).first()
        if product is None:
            raise NotFoundError("Product not found.", details={"product_id": product_id})

        data = product.to_dict()
        self._cache.set(key, data, tags=[read_tag(CacheTag.PRODUCTS, outlet_id=product.outlet_id)])
        return data

    def list_products(self, actor: Actor, filters: ProductFilters, page: PageRequest) -> dict:
        require_role(actor, READ_ROLES)
        scope = resolve_scope(actor, ScopeResource.PRODUCTS)

        key = f"products:list:{scope.cache_token()}:{filters.cache_token()}:{page.cache_token()}"
        tag = read_tag(CacheTag.PRODUCTS, business_id=scope.business_id, outlet_id=scope.outlet_id)

        def load() -> dict:
            query = self._scoped_products(scope)
            if filters.outlet_id is not None:
                query = query.filter(Product.outlet_id == filters.outlet_id)
            if filters.business_id is not None:
                query = query.filter(Product.business_id == filters.business_id)
            if filters.status:
                query = query.filter(Product.status == filters.status)
            if filters.category:
                query = query.filter(Product.category == filters.category)
            if filters.search:
                pattern = like_pattern(filters.search)
                query = query.filter(
                    or_(Product.name.ilike(pattern, escape="\\"), Product.sku.ilike(pattern, escape="\\"))
                )
            return paginate(query, page, PRODUCT_SORTABLE, Product.to_dict, tiebreaker=Product.id)

        return self._cache.get_or_set(key, load, tags=[tag])

    def _scoped_products(self, scope: ScopePredicate):
        return self._session.query(Product).filter(
            scope.clause(business_col=Product.business_id, outlet_col=Product.outlet_id)
        )
