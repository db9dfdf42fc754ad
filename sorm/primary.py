from __future__ import annotations

from typing import Any, Optional

from .entity import Entity
from .errors import InvalidPrimaryError
from .reflect import describe, must_be_entity

_UINT64_MASK = (1 << 64) - 1


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def primary_column(entity: Any) -> Optional[str]:
    """Return the primary key column name, or None if the entity has none."""
    primary = describe(entity).primary
    return primary.column if primary is not None else None


def primary_value(entity: Entity) -> Any:
    """Return the value of the primary field, or None if the entity has none."""
    primary = describe(entity).primary
    if primary is None:
        return None
    return getattr(entity, primary.name)


def is_valid(entity: Entity) -> bool:
    """
    Return True iff the primary field holds a non-zero integer.

    Entities without a primary field, or with a non-integer primary field,
    are never valid.
    """
    must_be_entity(entity, "is_valid")
    value = primary_value(entity)
    return _is_int(value) and value != 0


def set_primary(entity: Entity, value: int) -> None:
    """
    Write ``value`` into the primary field.

    Unsigned primary fields store negative values in their 64-bit unsigned
    form.

    Raises:
        InvalidPrimaryError: If there is no primary field, it is not an
            integer field, or ``value`` is not an integer
    """
    must_be_entity(entity, "set_primary")
    primary = describe(entity).primary
    if primary is None:
        raise InvalidPrimaryError(f"{type(entity).__name__} has no primary field")

    current = getattr(entity, primary.name)
    if not primary.is_integer and not (primary.python_type is None and _is_int(current)):
        raise InvalidPrimaryError(
            f"{type(entity).__name__}.{primary.name} is not an integer field"
        )
    if not _is_int(value):
        raise InvalidPrimaryError(f"primary value must be an integer, got {value!r}")

    if primary.unsigned:
        value &= _UINT64_MASK
    setattr(entity, primary.name, value)
