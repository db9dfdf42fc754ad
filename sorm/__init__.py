from .config import DEFAULT_CONFIG, OrmConfig
from .db.session import DbSession
from .entity import Entity, EntityState, column, entity_state
from .loader import get, load_entity
from .models import DbOperation, DbOperationType, WriteResult
from .primary import is_valid, primary_column, primary_value, set_primary
from .query import build_delete, build_insert, build_select, build_update
from .reflect import count_columns, describe, table_name
from .saver import delete, save
from .snapshot import capture_snapshot, changed_fields, has_snapshot

__all__ = [
    "Entity",
    "EntityState",
    "column",
    "entity_state",
    "OrmConfig",
    "DEFAULT_CONFIG",
    "DbSession",
    "DbOperation",
    "DbOperationType",
    "WriteResult",
    "describe",
    "table_name",
    "count_columns",
    "is_valid",
    "set_primary",
    "primary_value",
    "primary_column",
    "capture_snapshot",
    "changed_fields",
    "has_snapshot",
    "build_insert",
    "build_update",
    "build_select",
    "build_delete",
    "load_entity",
    "get",
    "save",
    "delete",
]
