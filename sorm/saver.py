from __future__ import annotations

import logging
import time
from typing import Any, Optional

from .config import DEFAULT_CONFIG, OrmConfig
from .db.executor import SqlExecutor
from .db.metrics import observe_db_write
from .entity import Entity, EntityState
from .errors import DbWriteError, EntityStateError, InvalidPrimaryError, RelationCycleError
from .models import DbOperation, DbOperationType, WriteResult
from .primary import is_valid, primary_value, set_primary
from .query import build_delete, build_insert, build_update
from .reflect import must_be_entity
from .snapshot import capture_snapshot, clear_snapshot, has_snapshot

logger = logging.getLogger(__name__)


class _RelatedSaveFailed(Exception):
    """A related entity could not be written; carries its result."""

    def __init__(self, result: WriteResult) -> None:
        super().__init__(str(result.error))
        self.result = result


class _Cascade:
    """Entities being saved by one top-level ``save`` call."""

    def __init__(self) -> None:
        self.in_progress: set[int] = set()


def save(executor: SqlExecutor, entity: Entity, config: Optional[OrmConfig] = None) -> WriteResult:
    """
    Insert or update ``entity``.

    An entity without a valid primary key or without a snapshot is inserted;
    otherwise only its changed fields are updated. Related entities are saved
    first and stored by key. Nothing is executed when there is nothing to
    write.

    Driver failures are logged and returned in ``WriteResult.error``; the
    entity keeps its previous snapshot. After a successful insert the
    generated id (if non-zero) is written to the primary field. Every
    successful statement refreshes the snapshot.

    Raises:
        EntityStateError: If the entity was deleted
        RelationCycleError: If a relation cycle reaches an unsaved entity
        DbWriteError: If the statement fails and ``config.raise_on_error`` is set
    """
    must_be_entity(entity, "save")
    return _save(executor, entity, config or DEFAULT_CONFIG, _Cascade())


def _save(executor: SqlExecutor, entity: Entity, config: OrmConfig, cascade: _Cascade) -> WriteResult:
    if entity._sorm_state is EntityState.DELETED:
        raise EntityStateError(f"sorm: cannot save deleted {type(entity).__name__}")

    key = id(entity)
    cascade.in_progress.add(key)
    try:
        def persist_related(related: Entity) -> Any:
            return _persist_related(executor, related, config, cascade)

        was_valid = is_valid(entity)
        inserting = not was_valid or not has_snapshot(entity)
        try:
            if inserting:
                op = build_insert(entity, persist_related, config)
            else:
                op = build_update(entity, persist_related, config)
        except _RelatedSaveFailed as failed:
            op_type = DbOperationType.INSERT if inserting else DbOperationType.UPDATE
            logger.warning(
                "Skipping %s of %s: a related entity was not written",
                op_type.value, type(entity).__name__,
            )
            return WriteResult(op_type, executed=False, error=failed.result.error)

        if not op.columns:
            logger.debug("Nothing to %s for %s", op.op_type.value, op.table)
            return WriteResult(op.op_type, executed=False)

        result, lastrowid = _execute(executor, op, config)
        if not result.executed:
            return result

        if not was_valid:
            _apply_generated_id(entity, lastrowid)

        capture_snapshot(entity)
        return result
    finally:
        cascade.in_progress.discard(key)


def _persist_related(executor: SqlExecutor, related: Entity, config: OrmConfig, cascade: _Cascade) -> Any:
    if id(related) in cascade.in_progress:
        if is_valid(related):
            return primary_value(related)
        raise RelationCycleError(
            f"sorm: relation cycle reaches unsaved {type(related).__name__}"
        )
    result = _save(executor, related, config, cascade)
    if result.error is not None:
        raise _RelatedSaveFailed(result)
    return primary_value(related)


def _apply_generated_id(entity: Entity, lastrowid: Optional[int]) -> None:
    if not lastrowid:
        return
    try:
        set_primary(entity, int(lastrowid))
    except InvalidPrimaryError as exc:
        logger.debug("Generated id %r not applied: %s", lastrowid, exc)


def _execute(executor: SqlExecutor, op: DbOperation, config: OrmConfig) -> tuple[WriteResult, Optional[int]]:
    start_time = time.monotonic()
    status = "success"
    try:
        res = executor.exec(op.sql, op.params)
    except Exception as exc:
        status = "error"
        logger.warning("%s %r failed: %s", op.sql, op.params, exc)
        if config.raise_on_error:
            raise DbWriteError(str(exc)) from exc
        return WriteResult(op.op_type, executed=False, error=exc), None
    finally:
        if config.emit_metrics:
            observe_db_write(op.table, op.op_type.value, status, time.monotonic() - start_time)

    written = WriteResult(op.op_type, executed=True, rowcount=getattr(res, "rowcount", None))
    return written, getattr(res, "lastrowid", None)


def delete(executor: SqlExecutor, entity: Entity, config: Optional[OrmConfig] = None) -> WriteResult:
    """
    Delete the row of ``entity`` by primary key and mark it deleted.

    An entity without a valid primary key is left alone. On failure the
    entity keeps its snapshot and state.
    """
    must_be_entity(entity, "delete")
    config = config or DEFAULT_CONFIG

    op = build_delete(entity, config)
    if not op.columns:
        logger.debug("Nothing to delete for %s", op.table)
        return WriteResult(op.op_type, executed=False)

    result, _ = _execute(executor, op, config)
    if result.executed:
        clear_snapshot(entity, EntityState.DELETED)
    return result
