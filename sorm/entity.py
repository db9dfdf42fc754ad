from __future__ import annotations

import dataclasses
from enum import Enum
from typing import Any, ClassVar, Optional


COLUMN_KEY = "db"
PRIMARY_KEY = "primary"
UNSIGNED_KEY = "unsigned"


class EntityState(str, Enum):
    NEW = "new"
    PERSISTED = "persisted"
    DELETED = "deleted"


class Entity:
    """
    Base class for dataclass entities mapped to a table.

    Subclasses must be dataclasses whose fields all have defaults. Fields
    declared with ``column()`` are persisted; everything else is ignored.

    Usage:
        @dataclass
        class PersonEntity(Entity):
            person_id: int = column("person_id", primary=True, default=0)
            name: str = column("name", default="")

    The table name is derived from the class name (``person`` above) unless
    ``__tablename__`` is set.
    """

    __tablename__: ClassVar[Optional[str]] = None

    # Persistence state; instance attributes shadow these once set
    _sorm_snapshot: Any = None
    _sorm_state: EntityState = EntityState.NEW


def column(
    name: str,
    primary: bool | str = False,
    *,
    unsigned: bool = False,
    default: Any = dataclasses.MISSING,
    default_factory: Any = dataclasses.MISSING,
    compare: bool = True,
    repr: bool = True,
) -> Any:
    """
    Declare a persisted dataclass field.

    Args:
        name: Column name in the table
        primary: Primary key marker; a bool or a string parsed as a bool
        unsigned: Store the primary key as a 64-bit unsigned value
        default / default_factory: Passed to ``dataclasses.field``
    """
    metadata = {COLUMN_KEY: name, PRIMARY_KEY: primary, UNSIGNED_KEY: unsigned}
    return dataclasses.field(
        default=default,
        default_factory=default_factory,
        compare=compare,
        repr=repr,
        metadata=metadata,
    )


def entity_state(entity: Entity) -> EntityState:
    return entity._sorm_state
