from __future__ import annotations

import logging
from datetime import datetime

import pytest

from sorm import (
    DbOperationType,
    EntityState,
    OrmConfig,
    capture_snapshot,
    changed_fields,
    delete,
    entity_state,
    has_snapshot,
    save,
)
from sorm.errors import DbWriteError, EntityStateError, EntityUsageError, RelationCycleError
from sorm.metrics.registry import DB_WRITE_TOTAL

from ._fakes import FakeDb
from .entities import AuditLog, MembershipEntity, NodeEntity, PersonEntity


def test_new_entity_is_inserted_and_gets_generated_id() -> None:
    """Test INSERT of a new entity and assignment of the generated id."""
    db = FakeDb(next_id=1)
    person = PersonEntity(name="Jake", time_added=datetime(2024, 1, 1))

    result = save(db, person)

    assert result.op_type is DbOperationType.INSERT
    assert result.executed is True
    assert result.ok
    assert person.person_id == 1
    assert has_snapshot(person)
    assert changed_fields(person) == []
    assert db.statements[0][0].startswith("INSERT INTO `person`")


def test_immediate_resave_executes_nothing() -> None:
    """Test that saving an unchanged entity is a no-op."""
    db = FakeDb()
    person = PersonEntity(name="Jake")
    save(db, person)

    result = save(db, person)

    assert result.op_type is DbOperationType.UPDATE
    assert result.executed is False
    assert len(db.statements) == 1


def test_changed_fields_are_updated_and_then_cleared() -> None:
    """Test that an update writes changed fields and refreshes the snapshot."""
    db = FakeDb()
    person = PersonEntity(person_id=1, name="Jake")
    capture_snapshot(person)

    now = datetime.now()
    person.time_current = now
    assert changed_fields(person) == ["time_current"]

    result = save(db, person)

    assert result.op_type is DbOperationType.UPDATE
    assert db.statements == [
        ("UPDATE `person` SET `time_current` = ? WHERE `person_id` = ?", [now, 1])
    ]
    assert changed_fields(person) == []


def test_valid_entity_without_snapshot_is_inserted_and_keeps_its_id() -> None:
    """Test that a preset key without a snapshot still means INSERT."""
    db = FakeDb(next_id=99)
    person = PersonEntity(person_id=60, name="Majkl")

    save(db, person)

    assert db.statements[0][0].startswith("INSERT")
    assert person.person_id == 60


def test_zero_generated_id_leaves_primary_untouched() -> None:
    """Test that a zero lastrowid is not written to the entity."""
    db = FakeDb(next_id=0)
    person = PersonEntity(name="Jake")

    save(db, person)

    assert person.person_id == 0
    assert has_snapshot(person)


def test_entity_without_primary_is_always_inserted() -> None:
    """Test that keyless entities are inserted on every save."""
    db = FakeDb()
    log = AuditLog(message="hi")

    save(db, log)
    save(db, log)

    assert [sql for sql, _ in db.statements] == [
        "INSERT INTO `audit_log` (`message`) VALUES (?)",
        "INSERT INTO `audit_log` (`message`) VALUES (?)",
    ]


def test_exec_failure_is_logged_and_leaves_state_unchanged(caplog) -> None:
    """Test that a driver error is logged and returned without touching the entity."""
    db = FakeDb()
    db.fail_exec = RuntimeError("database unreachable")
    person = PersonEntity(name="Jake")

    with caplog.at_level(logging.WARNING):
        result = save(db, person)

    assert result.executed is False
    assert isinstance(result.error, RuntimeError)
    assert not result.ok
    assert person.person_id == 0
    assert has_snapshot(person) is False
    assert any("database unreachable" in record.getMessage() for record in caplog.records)


def test_exec_failure_on_update_keeps_previous_snapshot() -> None:
    """Test that a failed update keeps the pending changes."""
    db = FakeDb()
    person = PersonEntity(person_id=1, name="Jake")
    capture_snapshot(person)
    person.name = "Majkl"
    db.fail_exec = RuntimeError("boom")

    save(db, person)

    assert changed_fields(person) == ["name"]


def test_exec_failure_raises_when_configured() -> None:
    """Test that a driver error raises DbWriteError under raise_on_error."""
    db = FakeDb()
    db.fail_exec = RuntimeError("boom")

    with pytest.raises(DbWriteError, match="boom"):
        save(db, PersonEntity(name="Jake"), OrmConfig(raise_on_error=True))


def test_related_entity_is_saved_first_and_stored_by_key() -> None:
    """Test that a new related entity is inserted before its parent."""
    db = FakeDb(next_id=10)
    person = PersonEntity(name="Jake")
    membership = MembershipEntity(person=person, role="owner")

    save(db, membership)

    assert person.person_id == 10
    assert has_snapshot(person)
    assert membership.id == 11
    assert db.statements[0][0].startswith("INSERT INTO `person`")
    assert db.statements[1] == (
        "INSERT INTO `membership` (`person_id`,`role`) VALUES (?,?)",
        [10, "owner"],
    )


def test_failed_related_insert_aborts_the_parent_write(caplog) -> None:
    """Test that a related entity that cannot be written stops the parent statement."""
    db = FakeDb(next_id=10)
    db.fail_tables.add("person")
    person = PersonEntity(name="Jake")
    membership = MembershipEntity(person=person, role="owner")

    with caplog.at_level(logging.WARNING):
        result = save(db, membership)

    assert result.op_type is DbOperationType.INSERT
    assert result.executed is False
    assert isinstance(result.error, RuntimeError)
    assert not result.ok
    assert [sql for sql, _ in db.statements] == [
        "INSERT INTO `person` (`name`,`time_added`,`time_current`) VALUES (?,?,?)"
    ]
    assert membership.id == 0
    assert has_snapshot(membership) is False
    assert any("related entity was not written" in record.getMessage() for record in caplog.records)


def test_failed_related_insert_raises_when_configured() -> None:
    """Test that a related write failure surfaces as DbWriteError under raise_on_error."""
    db = FakeDb()
    db.fail_tables.add("person")
    membership = MembershipEntity(person=PersonEntity(name="Jake"))

    with pytest.raises(DbWriteError, match="write to person refused"):
        save(db, membership, OrmConfig(raise_on_error=True))

    assert len(db.statements) == 1
    assert has_snapshot(membership) is False


def test_already_persisted_related_entity_is_updated_through_the_cascade() -> None:
    """Test that an unchanged related entity is not written again."""
    db = FakeDb(next_id=5)
    person = PersonEntity(person_id=60, name="Majkl")
    capture_snapshot(person)
    membership = MembershipEntity(person=person)

    save(db, membership)

    # person had no changes, so only the membership row is written
    assert db.statements == [
        ("INSERT INTO `membership` (`person_id`,`role`) VALUES (?,?)", [60, "member"])
    ]


def test_changed_relation_is_written_on_update() -> None:
    """Test that pointing a relation at a new entity inserts it and updates the key."""
    db = FakeDb(next_id=20)
    membership = MembershipEntity(id=1, person=PersonEntity(person_id=3))
    capture_snapshot(membership)
    membership.person = PersonEntity(name="Jake")

    save(db, membership)

    assert db.statements[-1] == (
        "UPDATE `membership` SET `person_id` = ? WHERE `id` = ?",
        [20, 1],
    )


def test_unsaved_relation_cycle_raises() -> None:
    """Test that a cycle of unsaved entities cannot be saved."""
    db = FakeDb()
    a = NodeEntity(label="a")
    b = NodeEntity(label="b", parent=a)
    a.parent = b

    with pytest.raises(RelationCycleError):
        save(db, a)


def test_self_reference_of_persisted_entity_uses_its_key() -> None:
    """Test that a stored entity may reference itself."""
    db = FakeDb()
    node = NodeEntity(node_id=5, label="root")
    capture_snapshot(node)
    node.parent = node

    save(db, node)

    assert db.statements == [
        ("UPDATE `node` SET `parent_id` = ? WHERE `node_id` = ?", [5, 5])
    ]


def test_delete_marks_entity_deleted() -> None:
    """Test delete by key and the resulting state."""
    db = FakeDb()
    person = PersonEntity(name="Jake")
    save(db, person)

    result = delete(db, person)

    assert result.op_type is DbOperationType.DELETE
    assert result.executed is True
    assert db.statements[-1] == ("DELETE FROM `person` WHERE `person_id` = ?", [1])
    assert entity_state(person) is EntityState.DELETED
    assert has_snapshot(person) is False

    with pytest.raises(EntityStateError):
        save(db, person)


def test_delete_of_unsaved_entity_is_a_noop() -> None:
    """Test that deleting an entity without a key executes nothing."""
    db = FakeDb()
    result = delete(db, PersonEntity(name="Jake"))

    assert result.executed is False
    assert db.statements == []


def test_save_needs_an_entity_instance() -> None:
    """Test that save rejects entity classes."""
    with pytest.raises(EntityUsageError):
        save(FakeDb(), PersonEntity)


def test_save_emits_write_metrics() -> None:
    """Test that writes are counted per table and operation."""
    counter = DB_WRITE_TOTAL.labels(table="person", op_type="insert", status="success")
    before = counter._value.get()

    save(FakeDb(), PersonEntity(name="Jake"))

    assert counter._value.get() == before + 1


def test_metrics_can_be_disabled() -> None:
    """Test that emit_metrics=False records nothing."""
    counter = DB_WRITE_TOTAL.labels(table="person", op_type="insert", status="success")
    before = counter._value.get()

    save(FakeDb(), PersonEntity(name="Jake"), OrmConfig(emit_metrics=False))

    assert counter._value.get() == before
