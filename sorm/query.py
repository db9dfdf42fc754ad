from __future__ import annotations

from typing import Any, Callable, Optional

from .config import DEFAULT_CONFIG, OrmConfig
from .entity import Entity
from .errors import InvalidPrimaryError
from .models import DbOperation, DbOperationType
from .primary import is_valid, primary_value
from .reflect import EntityDescriptor, describe, must_be_entity
from .snapshot import changed_fields

# Persists a related entity and returns the key to store in its place
PersistRelated = Callable[[Entity], Any]


def _argument(value: Any, persist_related: Optional[PersistRelated]) -> Any:
    if isinstance(value, Entity) and describe(value).primary is not None:
        if persist_related is None:
            return primary_value(value)
        return persist_related(value)
    return value


def _require_primary(descriptor: EntityDescriptor, operation: str):
    if descriptor.primary is None:
        raise InvalidPrimaryError(
            f"sorm: {operation} needs a primary field on {descriptor.entity_type.__name__}"
        )
    return descriptor.primary


def build_insert(
    entity: Entity,
    persist_related: Optional[PersistRelated] = None,
    config: Optional[OrmConfig] = None,
) -> DbOperation:
    """
    Build an INSERT of every persisted field except the primary key.

    Related entities that have a primary field are handed to
    ``persist_related`` first and replaced by the key it returns. Without a
    callback their current key is used as is.

    Shape: INSERT INTO `table` (`c1`,`c2`) VALUES (?,?)
    """
    must_be_entity(entity, "build_insert")
    config = config or DEFAULT_CONFIG
    descriptor = describe(entity)

    columns: list[str] = []
    params: list[Any] = []
    for info in descriptor.columns:
        if info.primary:
            continue
        columns.append(info.column)
        params.append(_argument(getattr(entity, info.name), persist_related))

    sql = ""
    if columns:
        col_names = ",".join(config.quote(c) for c in columns)
        placeholders = ",".join("?" for _ in columns)
        sql = f"INSERT INTO {config.quote(descriptor.table)} ({col_names}) VALUES ({placeholders})"

    return DbOperation(
        table=descriptor.table,
        op_type=DbOperationType.INSERT,
        sql=sql,
        params=params,
        columns=columns,
        id_value=primary_value(entity),
    )


def build_update(
    entity: Entity,
    persist_related: Optional[PersistRelated] = None,
    config: Optional[OrmConfig] = None,
) -> DbOperation:
    """
    Build an UPDATE of the fields that changed since the last snapshot.

    The primary key is bound as the last parameter, or embedded as an integer
    literal when ``config.inline_primary_literal`` is set. An operation with
    no columns has an empty statement and must not be executed.

    Raises:
        SnapshotError: If the entity has never been loaded or saved
        InvalidPrimaryError: If the entity has no primary field
    """
    must_be_entity(entity, "build_update")
    config = config or DEFAULT_CONFIG
    descriptor = describe(entity)
    primary = _require_primary(descriptor, "build_update")

    columns: list[str] = []
    set_clauses: list[str] = []
    params: list[Any] = []
    for name in changed_fields(entity):
        info = descriptor.by_name[name]
        columns.append(info.column)
        set_clauses.append(f"{config.quote(info.column)} = ?")
        params.append(_argument(getattr(entity, name), persist_related))

    id_value = primary_value(entity)
    sql = ""
    if columns:
        if config.inline_primary_literal:
            where = f"{config.quote(primary.column)} = {int(id_value)}"
        else:
            where = f"{config.quote(primary.column)} = ?"
            params.append(id_value)
        sql = (
            f"UPDATE {config.quote(descriptor.table)} SET {', '.join(set_clauses)} "
            f"WHERE {where}"
        )

    return DbOperation(
        table=descriptor.table,
        op_type=DbOperationType.UPDATE,
        sql=sql,
        params=params,
        columns=columns,
        id_value=id_value,
    )


def build_select(entity: Any, column: str, config: Optional[OrmConfig] = None) -> str:
    """Shape: SELECT * FROM `table` WHERE `column` = ?"""
    config = config or DEFAULT_CONFIG
    descriptor = describe(entity)
    column = descriptor.resolve_column(column)
    return f"SELECT * FROM {config.quote(descriptor.table)} WHERE {config.quote(column)} = ?"


def build_delete(entity: Entity, config: Optional[OrmConfig] = None) -> DbOperation:
    must_be_entity(entity, "build_delete")
    config = config or DEFAULT_CONFIG
    descriptor = describe(entity)
    primary = _require_primary(descriptor, "build_delete")

    id_value = primary_value(entity)
    if not is_valid(entity):
        return DbOperation(descriptor.table, DbOperationType.DELETE, "", id_value=id_value)

    sql = f"DELETE FROM {config.quote(descriptor.table)} WHERE {config.quote(primary.column)} = ?"
    return DbOperation(
        table=descriptor.table,
        op_type=DbOperationType.DELETE,
        sql=sql,
        params=[id_value],
        columns=[primary.column],
        id_value=id_value,
    )
