# Overview: Fire-and-forget audit sink for ledger operations, plus the scoped audit-log read.

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError

from ..models import AuditLog, User
from ..pagination import PageRequest, like_pattern, paginate
from ..scope import READ_ROLES, Actor, ScopeResource, require_role, resolve_scope
from ..validation import parse_datetime, parse_int
from .concurrency import write_transaction

logger = logging.getLogger(__name__)

LOG_SORTABLE = {
    "created_at": AuditLog.created_at,
    "action": AuditLog.action,
}


def _clean_text(value: Any) -> Optional[str]:
    return value.strip() if isinstance(value, str) and value.strip() else None


@dataclass(frozen=True)
class LogFilters:
    actor_id: Optional[int] = None
    action: Optional[str] = None
    resource_type: Optional[str] = None
    resource_id: Optional[int] = None
    business_id: Optional[int] = None
    outlet_id: Optional[int] = None
    search: Optional[str] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None

    @classmethod
    def from_args(cls, args: Mapping[str, Any]) -> "LogFilters":
        action = _clean_text(args.get("action"))
        return cls(
            actor_id=parse_int(args.get("actor_id"), "actor_id", minimum=1, required=False),
            action=action.upper() if action else None,
            resource_type=_clean_text(args.get("resource_type")),
            resource_id=parse_int(args.get("resource_id"), "resource_id", minimum=1, required=False),
            business_id=parse_int(args.get("business_id"), "business_id", minimum=1, required=False),
            outlet_id=parse_int(args.get("outlet_id"), "outlet_id", minimum=1, required=False),
            search=_clean_text(args.get("search")),
            created_from=parse_datetime(args.get("created_from"), "created_from"),
            created_to=parse_datetime(args.get("created_to"), "created_to", end_of_day=True),
        )


class AuditService:
    """
    Writes AuditLog rows after the audited operation has committed.

    A failed audit write is rolled back and logged; it never raises into
    the caller and never undoes the operation it describes.

    MULTI-TENANT: list_logs ANDs the LOGS scope into the query first, so an
    owner reads its business, a store executive its outlet and a sales rep
    only the entries it performed.
    """

    def __init__(
        self,
        session,
        enabled: bool = True,
        *,
        default_page_size: int = 20,
        max_page_size: int = 100,
    ):
        self._session = session
        self.enabled = enabled
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    def record(
        self,
        actor_id: int | None,
        action: str,
        description: str,
        resource_type: str | None = None,
        resource_id: int | None = None,
        business_id: int | None = None,
        outlet_id: int | None = None,
    ) -> AuditLog | None:
        if not self.enabled:
            return None

        entry = AuditLog(
            actor_id=actor_id,
            action=action,
            description=description,
            resource_type=resource_type,
            resource_id=resource_id,
            business_id=business_id,
            outlet_id=outlet_id,
        )
        try:
            with write_transaction(self._session):
                self._session.add(entry)
        except SQLAlchemyError:
            logger.warning("Audit write failed: %s %s#%s", action, resource_type, resource_id, exc_info=True)
            return None

        logger.info("Audit: %s by user %s - %s", action, actor_id, description)
        return entry

    def list_logs(self, actor: Actor, filters: LogFilters, page: PageRequest) -> dict:
        """
        Page through audit entries inside the caller's scope.

        Uncached: entries are appended on nearly every request, so a cached
        page would be stale almost immediately.
        """
        require_role(actor, READ_ROLES)
        scope = resolve_scope(actor, ScopeResource.LOGS)

        query = self._session.query(AuditLog).filter(
            scope.clause(
                business_col=AuditLog.business_id,
                outlet_col=AuditLog.outlet_id,
                owner_col=AuditLog.actor_id,
            )
        )
        query = self._apply_filters(query, filters)
        return paginate(query, page, LOG_SORTABLE, AuditLog.to_dict, tiebreaker=AuditLog.id)

    @staticmethod
    def _apply_filters(query, filters: LogFilters):
        if filters.actor_id is not None:
            query = query.filter(AuditLog.actor_id == filters.actor_id)
        if filters.action:
            query = query.filter(AuditLog.action == filters.action)
        if filters.resource_type:
            query = query.filter(AuditLog.resource_type == filters.resource_type)
        if filters.resource_id is not None:
            query = query.filter(AuditLog.resource_id == filters.resource_id)
        if filters.business_id is not None:
            query = query.filter(AuditLog.business_id == filters.business_id)
        if filters.outlet_id is not None:
            query = query.filter(AuditLog.outlet_id == filters.outlet_id)
        if filters.created_from is not None:
            query = query.filter(AuditLog.created_at >= filters.created_from)
        if filters.created_to is not None:
            query = query.filter(AuditLog.created_at <= filters.created_to)
        if filters.search:
            pattern = like_pattern(filters.search)
            performers = select(User.id).where(
                or_(User.email.ilike(pattern, escape="\\"), User.full_name.ilike(pattern, escape="\\"))
            )
            query = query.filter(
                or_(
                    AuditLog.description.ilike(pattern, escape="\\"),
                    AuditLog.actor_id.in_(performers),
                )
            )
        return query
