from __future__ import annotations

import copy
from typing import Any

from .entity import Entity, EntityState
from .errors import SnapshotError
from .reflect import ColumnInfo, describe, must_be_entity


def _snapshot_value(info: ColumnInfo, value: Any) -> Any:
    # Related entities are tracked by identity, plain values by a shallow copy
    if info.related is not None or isinstance(value, Entity):
        return value
    return copy.copy(value)


def _differs(info: ColumnInfo, saved: Any, current: Any) -> bool:
    if info.related is not None or isinstance(current, Entity) or isinstance(saved, Entity):
        return saved is not current
    return bool(saved != current)


def has_snapshot(entity: Entity) -> bool:
    return entity._sorm_snapshot is not None


def capture_snapshot(entity: Entity) -> None:
    """
    Record the current value of every persisted field, replacing any
    previous snapshot, and mark the entity as persisted.
    """
    must_be_entity(entity, "capture_snapshot")
    descriptor = describe(entity)
    values = {
        info.name: _snapshot_value(info, getattr(entity, info.name))
        for info in descriptor.columns
    }
    entity._sorm_snapshot = descriptor.snapshot_type(**values)
    entity._sorm_state = EntityState.PERSISTED


def clear_snapshot(entity: Entity, state: EntityState = EntityState.NEW) -> None:
    must_be_entity(entity, "clear_snapshot")
    entity._sorm_snapshot = None
    entity._sorm_state = state


def changed_fields(entity: Entity) -> list[str]:
    """
    Return the attribute names of persisted fields that differ from the
    snapshot, in declaration order.

    Raises:
        SnapshotError: If the entity has no snapshot or it was not produced
            for this entity class
    """
    must_be_entity(entity, "changed_fields")
    descriptor = describe(entity)
    snapshot = entity._sorm_snapshot
    if snapshot is None:
        raise SnapshotError(
            f"sorm: {type(entity).__name__} has no snapshot; load or save it first"
        )
    if not isinstance(snapshot, descriptor.snapshot_type):
        raise SnapshotError(
            f"sorm: snapshot of {type(entity).__name__} is not a valid "
            f"{descriptor.snapshot_type.__name__}"
        )

    return [
        info.name
        for info in descriptor.columns
        if _differs(info, getattr(snapshot, info.name), getattr(entity, info.name))
    ]
