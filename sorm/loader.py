from __future__ import annotations

import logging
import time
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional, Sequence

from .config import DEFAULT_CONFIG, OrmConfig
from .db.executor import SqlQuerier
from .db.metrics import observe_db_load
from .entity import Entity
from .errors import DbLoadError, EntityUsageError
from .primary import is_valid, primary_value
from .query import build_select
from .reflect import ColumnInfo, describe, must_be_entity
from .snapshot import capture_snapshot

logger = logging.getLogger(__name__)

# Entities loaded during one cascade, keyed by (class, primary key)
LoadedMap = dict[tuple[type, Any], Entity]

_MISMATCH = object()


def load_entity(
    querier: SqlQuerier,
    entity: Entity,
    column: str,
    value: Any,
    config: Optional[OrmConfig] = None,
) -> bool:
    """
    Populate ``entity`` from the first row where ``column`` equals ``value``.

    ``column`` may be a column name or a mapped attribute name. Related
    entities referenced by integer keys are loaded recursively; a relation
    cycle reuses the instances already loaded by this call.

    Returns:
        True if a row was mapped and its primary key is valid. False if the
        query failed, returned no row, or produced an invalid primary key.
        The snapshot is captured only on success.

    Raises:
        DbLoadError: If the query fails and ``config.raise_on_error`` is set
    """
    must_be_entity(entity, "load_entity")
    return _load(querier, entity, column, value, config or DEFAULT_CONFIG, {})


def get(
    querier: SqlQuerier,
    entity_type: type,
    column: str,
    value: Any,
    config: Optional[OrmConfig] = None,
) -> Optional[Entity]:
    """Build a blank ``entity_type`` and load it; None if the load fails."""
    if not isinstance(entity_type, type) or not issubclass(entity_type, Entity):
        raise EntityUsageError(f"sorm: get call using non-entity type {entity_type!r}")
    entity = entity_type()
    if not load_entity(querier, entity, column, value, config):
        return None
    return entity


def _fetch_first(querier: SqlQuerier, sql: str, value: Any) -> tuple[list[str], Optional[Sequence[Any]]]:
    rows = querier.query(sql, [value])
    try:
        columns = list(rows.keys())
        return columns, rows.fetchone()
    finally:
        rows.close()


def _load(
    querier: SqlQuerier,
    entity: Entity,
    column: str,
    value: Any,
    config: OrmConfig,
    loaded: LoadedMap,
) -> bool:
    descriptor = describe(entity)
    sql = build_select(entity, column, config)
    start_time = time.monotonic()
    status = "error"

    try:
        try:
            columns, row = _fetch_first(querier, sql, value)
        except Exception as exc:
            logger.warning("Load failed: %s %r: %s", sql, [value], exc)
            if config.raise_on_error:
                raise DbLoadError(str(exc)) from exc
            return False

        if row is None:
            status = "not_found"
            return False

        relations: list[tuple[ColumnInfo, Any]] = []
        for name, raw in zip(columns, row):
            info = descriptor.by_column.get(name)
            if info is None:
                logger.debug("Ignoring column %s.%s: no mapped field", descriptor.table, name)
                continue
            if raw is None:
                continue
            if info.related is not None:
                relations.append((info, raw))
                continue
            _assign(entity, info, raw)

        if not is_valid(entity):
            status = "invalid"
            return False

        loaded[(type(entity), primary_value(entity))] = entity
        for info, raw in relations:
            _assign_relation(querier, entity, info, raw, config, loaded)

        capture_snapshot(entity)
        status = "success"
        return True
    finally:
        if config.emit_metrics:
            observe_db_load(descriptor.table, status, time.monotonic() - start_time)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _coerce(info: ColumnInfo, raw: Any) -> Any:
    """Convert a raw driver value to the field's type, or return _MISMATCH."""
    target = info.python_type
    if target is None:
        return raw

    try:
        if issubclass(target, str) and isinstance(raw, (bytes, bytearray, memoryview)):
            return bytes(raw).decode("utf-8")
        if issubclass(target, bool) and _is_int(raw):
            return bool(raw)
        if issubclass(target, float) and (_is_int(raw) or isinstance(raw, Decimal)):
            return float(raw)
        if issubclass(target, datetime) and isinstance(raw, str):
            return datetime.fromisoformat(raw)
        if issubclass(target, date) and not issubclass(target, datetime) and isinstance(raw, str):
            return date.fromisoformat(raw)
    except ValueError:
        return _MISMATCH

    if isinstance(raw, target):
        return raw
    return _MISMATCH


def _assign(entity: Entity, info: ColumnInfo, raw: Any) -> None:
    value = _coerce(info, raw)
    if value is _MISMATCH:
        logger.debug(
            "Ignoring %s.%s: %s does not fit %s",
            type(entity).__name__, info.name, type(raw).__name__, info.python_type.__name__,
        )
        return
    setattr(entity, info.name, value)


def _assign_relation(
    querier: SqlQuerier,
    entity: Entity,
    info: ColumnInfo,
    raw: Any,
    config: OrmConfig,
    loaded: LoadedMap,
) -> None:
    related_type = info.related
    if isinstance(raw, related_type):
        setattr(entity, info.name, raw)
        return
    if not _is_int(raw):
        logger.debug("Ignoring %s.%s: non-integer key %r", type(entity).__name__, info.name, raw)
        return

    cached = loaded.get((related_type, raw))
    if cached is not None:
        setattr(entity, info.name, cached)
        return

    related_primary = describe(related_type).primary
    if related_primary is None:
        logger.debug("Ignoring %s.%s: %s has no primary field", type(entity).__name__, info.name, related_type.__name__)
        return

    related = related_type()
    if _load(querier, related, related_primary.column, raw, config, loaded):
        setattr(entity, info.name, related)
    else:
        logger.debug("Related %s %s=%r not found for %s.%s",
                     related_type.__name__, related_primary.column, raw, type(entity).__name__, info.name)
