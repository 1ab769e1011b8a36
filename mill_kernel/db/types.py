"""
Module: mill_kernel.db.types
Responsibility: Conversion helpers for quantity, meter and id values.
    Centralizes conversion so every model and service treats meters, stock
    quantities and costs identically.  Column precision comes from the
    ``type_annotation_map`` in ``mill_kernel.db.base``.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    No floats anywhere in the ledger.  Incoming numbers (JSON floats, ints,
    strings) are converted through ``to_decimal`` which goes via ``str`` so
    that 0.1 stays 0.1.
"""

from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

ZERO = Decimal("0")


def to_decimal(value: Any, default: Decimal | None = None) -> Decimal:
    """
    Convert a number-like value to Decimal.

    ``None`` returns ``default`` (or raises if no default is given).  Floats
    are converted through their string form.  NaN and infinities are
    rejected.

    Raises:
        ValueError: If value cannot be converted.
    """
    if value is None:
        if default is None:
            raise ValueError("Cannot convert None to Decimal")
        return default
    if isinstance(value, bool):
        raise ValueError(f"Cannot convert {value!r} to Decimal")
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"Cannot convert {value!r} to Decimal") from exc
    if not result.is_finite():
        raise ValueError(f"{value!r} is not a finite number")
    return result


def floor_zero(value: Decimal) -> Decimal:
    """Clamp a quantity at zero."""
    return value if value > ZERO else ZERO


def to_uuid(value: Any) -> UUID:
    """
    Convert an id (UUID or its string form) to UUID.

    Raises:
        ValueError: If value is not a well-formed UUID.
    """
    if isinstance(value, UUID):
        return value
    if value is None:
        raise ValueError("Cannot convert None to UUID")
    try:
        return UUID(str(value))
    except (TypeError, ValueError, AttributeError) as exc:
        raise ValueError(f"Invalid id: {value!r}") from exc
