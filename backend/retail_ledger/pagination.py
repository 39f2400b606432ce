# Overview: Offset pagination and sorting shared by the ledger list reads.

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from .errors import ValidationError
from .validation import parse_int

SORT_ASC = "ASC"
SORT_DESC = "DESC"


@dataclass(frozen=True)
class PageRequest:
    page: int = 1
    limit: int = 20
    sort_by: str = "created_at"
    sort_order: str = SORT_DESC

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def cache_token(self) -> str:
        return f"p={self.page}|l={self.limit}|s={self.sort_by}|o={self.sort_order}"


def parse_page_request(
    args: Mapping[str, Any],
    *,
    default_limit: int = 20,
    max_limit: int = 100,
    default_sort: str = "created_at",
) -> PageRequest:
    """Build a PageRequest from query-string style arguments."""
    page = parse_int(args.get("page"), "page", minimum=1, required=False, default=1)
    limit = parse_int(
        args.get("limit"),
        "limit",
        minimum=1,
        maximum=max_limit,
        required=False,
        default=default_limit,
    )
    sort_by = (args.get("sort_by") or default_sort).strip()
    sort_order = (args.get("sort_order") or SORT_DESC).strip().upper()
    if sort_order not in (SORT_ASC, SORT_DESC):
        raise ValidationError("sort_order must be ASC or DESC")
    return PageRequest(page=page, limit=limit, sort_by=sort_by, sort_order=sort_order)


def paginate(
    query,
    page: PageRequest,
    sortable: Mapping[str, Any],
    serialize: Callable[[Any], dict],
    tiebreaker=None,
) -> dict:
    """
    Apply sort + offset/limit to an already-scoped query.

    sort_by is resolved through the `sortable` whitelist; unknown columns are
    rejected rather than interpolated into SQL.
    """
    column = sortable.get(page.sort_by)
    if column is None:
        raise ValidationError(
            f"Cannot sort by {page.sort_by}",
            details={"sortable": sorted(sortable.keys())},
        )

    total_items = query.order_by(None).count()

    ordering = [column.asc() if page.sort_order == SORT_ASC else column.desc()]
    if tiebreaker is not None:
        ordering.append(tiebreaker.asc() if page.sort_order == SORT_ASC else tiebreaker.desc())

    rows = query.order_by(*ordering).offset(page.offset).limit(page.limit).all()

    return {
        "data": [serialize(row) for row in rows],
        "total_items": total_items,
        "total_pages": math.ceil(total_items / page.limit) if total_items else 0,
        "current_page": page.page,
        "items_per_page": page.limit,
    }


def like_pattern(term: str) -> str:
    """Substring ILIKE pattern with %, _ and the escape char escaped (escape='\\')."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"
