from __future__ import annotations

from datetime import datetime
from typing import Any

from pharmapos.time_utils import parse_iso_datetime
from .errors import InvalidRequestError


# Maximum amount: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical amounts
MAX_AMOUNT_CENTS = 999_999_999


def coerce_int(value: Any, field_name: str) -> int:
    """
    Strict integer coercion for request input.

    Accepts ints and plain digit strings. Rejects bools, floats, decimals
    and scientific notation.
    """
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise InvalidRequestError(f"{field_name} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise InvalidRequestError(f"{field_name} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise InvalidRequestError(f"{field_name} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise InvalidRequestError(f"{field_name} must be an integer")
    # Reject floats explicitly
    if isinstance(value, float):
        raise InvalidRequestError(f"{field_name} must be an integer, not a decimal")
    raise InvalidRequestError(f"{field_name} must be an integer")


def coerce_positive_int(value: Any, field_name: str) -> int:
    result = coerce_int(value, field_name)
    if result <= 0:
        raise InvalidRequestError(f"{field_name} must be greater than 0")
    return result


def coerce_amount_cents(value: Any, field_name: str = "amount_cents") -> int:
    result = coerce_positive_int(value, field_name)
    if result > MAX_AMOUNT_CENTS:
        raise InvalidRequestError(f"{field_name} exceeds maximum of {MAX_AMOUNT_CENTS}")
    return result


def coerce_optional_str(value: Any, field_name: str, max_len: int | None = None) -> str | None:
    """
    Optional free-text field: None or blank -> None, otherwise a stripped str.

    Non-string JSON values (numbers, objects, lists) are rejected here so they
    never reach a column.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidRequestError(f"{field_name} must be a string", details={"field": field_name})
    stripped = value.strip()
    if not stripped:
        return None
    if max_len is not None and len(stripped) > max_len:
        raise InvalidRequestError(
            f"{field_name} must be at most {max_len} characters",
            details={"field": field_name, "max_length": max_len},
        )
    return stripped


def require_fields(data: dict, *fields: str) -> None:
    missing = [name for name in fields if data.get(name) in (None, "")]
    if missing:
        raise InvalidRequestError(
            f"Missing required field(s): {', '.join(missing)}",
            details={"missing": missing},
        )


def parse_date_arg(value: str | None, field_name: str, *, end_of_day: bool = False) -> datetime | None:
    try:
        return parse_iso_datetime(value, end_of_day=end_of_day)
    except ValueError:
        raise InvalidRequestError(f"{field_name} must be an ISO-8601 datetime")
