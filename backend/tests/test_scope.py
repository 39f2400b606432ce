# Overview: Pytest coverage for tenant scope resolution and role gates.

"""
Scope Resolver Tests

resolve_scope() is pure, so most of these run without a database. The
clause tests compile against the real models to prove the predicate
lands on the right columns.
"""

import pytest

from retail_ledger.errors import ErrorKind, ForbiddenError
from retail_ledger.models import Sale, UserRole
from retail_ledger.scope import (
    RECONCILE_INVENTORY_ROLES,
    UPDATE_SALE_STATUS_ROLES,
    Actor,
    ScopePredicate,
    ScopeResource,
    require_outlet_access,
    require_role,
    resolve_scope,
)


ADMIN = Actor(user_id=1, role=UserRole.ADMIN)
OWNER = Actor(user_id=2, role=UserRole.OWNER, business_id=10)
EXEC = Actor(user_id=3, role=UserRole.STORE_EXECUTIVE, business_id=10, outlet_id=100)
REP = Actor(user_id=4, role=UserRole.SALES_REP, business_id=10, outlet_id=100)


class TestResolveScope:
    def test_admin_is_unrestricted(self):
        scope = resolve_scope(ADMIN, ScopeResource.SALES)
        assert scope.is_unrestricted

    def test_owner_is_business_scoped(self):
        assert resolve_scope(OWNER, ScopeResource.PRODUCTS) == ScopePredicate(business_id=10)

    def test_store_executive_is_outlet_scoped(self):
        assert resolve_scope(EXEC, ScopeResource.SALES) == ScopePredicate(outlet_id=100)

    def test_sales_rep_sees_only_own_sales(self):
        assert resolve_scope(REP, ScopeResource.SALES) == ScopePredicate(outlet_id=100, owner_id=4)

    def test_sales_rep_products_and_inventory_are_outlet_scoped(self):
        assert resolve_scope(REP, ScopeResource.PRODUCTS) == ScopePredicate(outlet_id=100)
        assert resolve_scope(REP, ScopeResource.INVENTORY) == ScopePredicate(outlet_id=100)

    def test_audit_logs_scope(self):
        assert resolve_scope(REP, ScopeResource.LOGS) == ScopePredicate(owner_id=4)
        assert resolve_scope(EXEC, ScopeResource.LOGS) == ScopePredicate(outlet_id=100)
        assert resolve_scope(OWNER, ScopeResource.LOGS) == ScopePredicate(business_id=10)
        assert resolve_scope(ADMIN, ScopeResource.LOGS).is_unrestricted

    @pytest.mark.parametrize("actor", [
        Actor(user_id=5, role=UserRole.OWNER),
        Actor(user_id=6, role=UserRole.STORE_EXECUTIVE, business_id=10),
        Actor(user_id=7, role=UserRole.SALES_REP, business_id=10),
    ])
    def test_missing_tenant_context_is_forbidden(self, actor):
        with pytest.raises(ForbiddenError) as exc_info:
            resolve_scope(actor, ScopeResource.SALES)
        assert exc_info.value.kind == ErrorKind.FORBIDDEN

    def test_unknown_role_is_forbidden(self):
        with pytest.raises(ForbiddenError):
            resolve_scope(Actor(user_id=8, role="CASHIER", outlet_id=1))

    def test_unknown_resource_is_a_programming_error(self):
        with pytest.raises(ValueError):
            resolve_scope(ADMIN, "REPORTS")


class TestScopePredicate:
    def test_covers_checks_every_constraint(self):
        scope = ScopePredicate(outlet_id=100, owner_id=4)
        assert scope.covers(business_id=10, outlet_id=100, owner_id=4)
        assert not scope.covers(business_id=10, outlet_id=100, owner_id=5)
        assert not scope.covers(business_id=10, outlet_id=101, owner_id=4)

    def test_unrestricted_covers_everything(self):
        assert ScopePredicate().covers(business_id=1, outlet_id=2, owner_id=3)

    def test_clause_requires_columns_for_active_constraints(self):
        with pytest.raises(ValueError):
            ScopePredicate(owner_id=4).clause(business_col=Sale.business_id, outlet_col=Sale.outlet_id)

    def test_clause_targets_model_columns(self):
        clause = ScopePredicate(business_id=10, outlet_id=100).clause(
            business_col=Sale.business_id,
            outlet_col=Sale.outlet_id,
        )
        compiled = str(clause.compile(compile_kwargs={"literal_binds": True}))
        assert "sales.business_id = 10" in compiled
        assert "sales.outlet_id = 100" in compiled

    def test_cache_token_differs_per_scope(self):
        tokens = {
            resolve_scope(actor, ScopeResource.SALES).cache_token()
            for actor in (ADMIN, OWNER, EXEC, REP)
        }
        assert len(tokens) == 4


class TestRoleGates:
    def test_sales_rep_cannot_change_sale_status(self):
        with pytest.raises(ForbiddenError):
            require_role(REP, UPDATE_SALE_STATUS_ROLES)

    def test_store_executive_can_reconcile(self):
        require_role(EXEC, RECONCILE_INVENTORY_ROLES)

    def test_outlet_bound_actor_cannot_name_other_outlet(self):
        with pytest.raises(ForbiddenError):
            require_outlet_access(REP, 101)
        require_outlet_access(REP, 100)

    def test_owner_outlet_access_is_checked_by_lookup_not_here(self):
        require_outlet_access(OWNER, 999)
