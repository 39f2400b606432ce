# Overview: Tenant scope resolution for every ledger read and write.

"""
Scope Resolver: Actor -> ScopePredicate

WHY: One place decides which rows an actor may see or touch. Services AND
the predicate into every query before caller-supplied filters, so a filter
can only narrow what the scope already allows.

RULES:
- ADMIN: unrestricted
- OWNER: business_id == actor.business_id
- STORE_EXECUTIVE: outlet_id == actor.outlet_id
- SALES_REP: outlet_id == actor.outlet_id; for personal sales records also
  sales_person_id == actor.user_id, and for audit logs only the entries the
  rep performed (actor_id == actor.user_id)

NOT-FOUND POLICY:
A record outside scope is reported exactly like a missing record
(NotFoundError). ForbiddenError is reserved for what the actor alone
reveals: a role not allowed to perform the operation, missing tenant
context, or an outlet-bound actor naming another outlet.

resolve_scope() is pure: it reads only the Actor and touches no database.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy import and_, true

from .errors import ForbiddenError
from .models.auth import UserRole


class ScopeResource:
    PRODUCTS = "PRODUCTS"
    SALES = "SALES"
    INVENTORY = "INVENTORY"
    LOGS = "LOGS"

    ALL = (PRODUCTS, SALES, INVENTORY, LOGS)


@dataclass(frozen=True)
class Actor:
    """Authenticated caller, derived from the session for each request."""
    user_id: int
    role: str
    business_id: Optional[int] = None
    outlet_id: Optional[int] = None

    @classmethod
    def from_user(cls, user) -> "Actor":
        return cls(
            user_id=user.id,
            role=user.role,
            business_id=user.business_id,
            outlet_id=user.outlet_id,
        )

    @property
    def is_outlet_bound(self) -> bool:
        return self.role in (UserRole.STORE_EXECUTIVE, UserRole.SALES_REP)

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "role": self.role,
            "business_id": self.business_id,
            "outlet_id": self.outlet_id,
        }


@dataclass(frozen=True)
class ScopePredicate:
    """
    Row filter for one actor and resource. None means "not constrained".
    """
    business_id: Optional[int] = None
    outlet_id: Optional[int] = None
    owner_id: Optional[int] = None

    @property
    def is_unrestricted(self) -> bool:
        return self.business_id is None and self.outlet_id is None and self.owner_id is None

    def clause(self, *, business_col=None, outlet_col=None, owner_col=None):
        """
        Build the SQLAlchemy clause for a model's tenant columns.

        A constraint whose column the caller did not pass is a programming
        error, not a silent widening of scope.
        """
        conditions = []
        if self.business_id is not None:
            conditions.append(_required(business_col, "business_col") == self.business_id)
        if self.outlet_id is not None:
            conditions.append(_required(outlet_col, "outlet_col") == self.outlet_id)
        if self.owner_id is not None:
            conditions.append(_required(owner_col, "owner_col") == self.owner_id)
        return and_(true(), *conditions)

    def covers(self, *, business_id=None, outlet_id=None, owner_id=None) -> bool:
        """Check a concrete row's tenant values against the predicate."""
        if self.business_id is not None and business_id != self.business_id:
            return False
        if self.outlet_id is not None and outlet_id != self.outlet_id:
            return False
        if self.owner_id is not None and owner_id != self.owner_id:
            return False
        return True

    def cache_token(self) -> str:
        return f"b={self.business_id}|o={self.outlet_id}|u={self.owner_id}"


def _required(column, name: str):
    if column is None:
        raise ValueError(f"Scope requires {name} for this query")
    return column


def resolve_scope(actor: Actor, resource: str = ScopeResource.SALES) -> ScopePredicate:
    """
    Map an actor to the predicate every query for `resource` must include.

    Raises ForbiddenError for unknown roles or missing tenant context.
    """
    if resource not in ScopeResource.ALL:
        raise ValueError(f"Unknown scope resource: {resource}")

    if actor.role == UserRole.ADMIN:
        return ScopePredicate()

    if actor.role == UserRole.OWNER:
        if actor.business_id is None:
            raise ForbiddenError("Owner account is not linked to a business")
        return ScopePredicate(business_id=actor.business_id)

    if actor.role == UserRole.STORE_EXECUTIVE:
        if actor.outlet_id is None:
            raise ForbiddenError("Store executive account is not assigned to an outlet")
        return ScopePredicate(outlet_id=actor.outlet_id)

    if actor.role == UserRole.SALES_REP:
        if actor.outlet_id is None:
            raise ForbiddenError("Sales representative account is not assigned to an outlet")
        if resource == ScopeResource.SALES:
            return ScopePredicate(outlet_id=actor.outlet_id, owner_id=actor.user_id)
        if resource == ScopeResource.LOGS:
            return ScopePredicate(owner_id=actor.user_id)
        return ScopePredicate(outlet_id=actor.outlet_id)

    raise ForbiddenError(f"Unknown role: {actor.role}")


def require_role(actor: Actor, allowed: Iterable[str]) -> None:
    """Role gate for an operation."""
    allowed = tuple(allowed)
    if actor.role not in allowed:
        raise ForbiddenError(
            "You do not have permission to perform this action.",
            details={"role": actor.role, "allowed_roles": list(allowed)},
        )


def require_outlet_access(actor: Actor, outlet_id: int) -> None:
    """
    Outlet-bound actors may only name their own outlet.

    Owners and admins are checked against the store by the caller, since
    only a lookup can tell whether the outlet is in their business.
    """
    if actor.is_outlet_bound and outlet_id != actor.outlet_id:
        raise ForbiddenError(
            "You do not have access to this outlet.",
            details={"outlet_id": outlet_id},
        )


# Operation role gates
RECORD_SALE_ROLES = UserRole.ALL
UPDATE_SALE_STATUS_ROLES = (UserRole.ADMIN, UserRole.OWNER, UserRole.STORE_EXECUTIVE)
READ_ROLES = UserRole.ALL
RECORD_INVENTORY_ROLES = UserRole.ALL
RECONCILE_INVENTORY_ROLES = (UserRole.ADMIN, UserRole.OWNER, UserRole.STORE_EXECUTIVE)
