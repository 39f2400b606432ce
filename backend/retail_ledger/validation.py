from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable

from .errors import ValidationError
from .time_utils import parse_iso_datetime


# Maximum money amount: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_AMOUNT_CENTS = 999_999_999

# Maximum quantity on a single line or count
MAX_QUANTITY = 1_000_000

CUSTOMER_FIELDS = ("name", "phone", "email", "address")


@dataclass(frozen=True)
class LineItem:
    """One {product_id, quantity} pair from a request."""
    product_id: int
    quantity: int


def require_payload(payload: Any) -> dict:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def reject_unknown_fields(payload: dict, allowed: Iterable[str]) -> None:
    allowed = set(allowed)
    for key in payload.keys():
        if key not in allowed:
            raise ValidationError(f"Field not allowed: {key}")


def parse_int(
    value: Any,
    field: str,
    *,
    minimum: int | None = None,
    maximum: int | None = None,
    required: bool = True,
    default: int | None = None,
) -> int | None:
    """
    Strict integer parsing: rejects bools, floats, decimals and scientific notation.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{field} is required")
        return default

    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str):
        stripped = value.strip()
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            parsed = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    elif isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    else:
        raise ValidationError(f"{field} must be an integer")

    if minimum is not None and parsed < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    if maximum is not None and parsed > maximum:
        raise ValidationError(f"{field} cannot exceed {maximum}")
    return parsed


def parse_choice(value: Any, field: str, choices: Iterable[str], *, required: bool = True) -> str | None:
    """Case-insensitive match against a closed set of upper-case constants."""
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{field} is required")
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    normalized = value.strip().upper()
    choices = tuple(choices)
    if normalized not in choices:
        raise ValidationError(
            f"Invalid {field}: {value}",
            details={"allowed": list(choices)},
        )
    return normalized


def parse_datetime(value: Any, field: str, end_of_day: bool = False) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be an ISO-8601 datetime")
    try:
        return parse_iso_datetime(value, end_of_day=end_of_day)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 datetime")


def parse_line_items(
    raw: Any,
    *,
    field: str = "products",
    quantity_field: str = "quantity",
    minimum: int = 1,
    allow_duplicates: bool = True,
) -> list[LineItem]:
    """
    Parse a non-empty list of {product_id, <quantity_field>} objects.
    """
    if not isinstance(raw, list) or not raw:
        raise ValidationError(f"{field} must be a non-empty list")

    items: list[LineItem] = []
    seen: set[int] = set()
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ValidationError(f"{field}[{index}] must be an object")
        reject_unknown_fields(entry, {"product_id", quantity_field})
        product_id = parse_int(entry.get("product_id"), f"{field}[{index}].product_id", minimum=1)
        quantity = parse_int(
            entry.get(quantity_field),
            f"{field}[{index}].{quantity_field}",
            minimum=minimum,
            maximum=MAX_QUANTITY,
        )
        if not allow_duplicates and product_id in seen:
            raise ValidationError(
                f"Product {product_id} appears more than once",
                details={"product_id": product_id},
            )
        seen.add(product_id)
        items.append(LineItem(product_id=product_id, quantity=quantity))
    return items


def parse_customer(raw: Any) -> dict | None:
    """Customer snapshot: name required, phone/email/address optional strings."""
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ValidationError("customer must be an object")
    reject_unknown_fields(raw, CUSTOMER_FIELDS)

    customer = {}
    for key in CUSTOMER_FIELDS:
        value = raw.get(key)
        if value is None:
            continue
        if not isinstance(value, str):
            raise ValidationError(f"customer.{key} must be a string")
        value = value.strip()
        if len(value) > 255:
            raise ValidationError(f"customer.{key} exceeds max length 255")
        if value:
            customer[key] = value

    if "name" not in customer:
        raise ValidationError("customer.name is required when a customer is given")
    return customer


def parse_note(raw: Any, field: str = "note") -> str | None:
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise ValidationError(f"{field} must be a string")
    return raw.strip() or None
