"""AuditWriter: row building, order, atomic drain, clearing semantics."""

import json
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from entity_audit.application.exceptions import PersistenceError
from entity_audit.application.writer import AuditWriter, WriteResult
from entity_audit.config.settings import EntityAuditSettings
from entity_audit.domain.models.change import (
    ActionKind,
    EntityChange,
    EntitySummary,
    PendingChangeSet,
    RelationChange,
    RelationDiff,
)
from entity_audit.governance.audit_policy import ConfiguredAuditPolicy

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _insert(subject_id=1, schema=None):
    return EntityChange(
        action=ActionKind.INSERT,
        table_name="people",
        schema_name=schema,
        subject_id=subject_id,
        diff={"name": {"old": None, "new": "Alice"}},
        actor="alice",
        timestamp=NOW,
    )


def _associate():
    source = EntitySummary("Person#1", "tests.Person", "people", "id", 1)
    target = EntitySummary("Group#2", "tests.Group", "groups", "id", 2)
    return RelationChange(
        action=ActionKind.ASSOCIATE,
        table_name="people",
        schema_name=None,
        subject_id=1,
        diff=RelationDiff(source, target, table="person_groups"),
        actor=None,
        timestamp=NOW,
    )


@pytest.fixture
def store():
    s = MagicMock()
    s.write_rows = MagicMock(return_value=None)
    return s


@pytest.fixture
def policy():
    return ConfiguredAuditPolicy(
        {"Person": EntityAuditSettings()}, table_prefix="log_", table_suffix="_audit"
    )


@pytest.fixture
def writer(store, policy):
    return AuditWriter(store, policy)


def test_drain_writes_rows_in_order_and_clears(writer, store):
    pending = PendingChangeSet()
    pending.extend([_insert(), _associate()])

    result = writer.drain(pending)

    assert result == WriteResult(rows_written=2, tables=("log_people_audit",))
    assert len(pending) == 0
    store.write_rows.assert_called_once()
    insert_row, associate_row = store.write_rows.call_args[0][0]
    assert insert_row.type == "INS"
    assert associate_row.type == "CASC"
    assert insert_row.table_name == "log_people_audit"
    assert insert_row.object_id == "1"
    assert json.loads(insert_row.diff) == {"name": {"old": None, "new": "Alice"}}
    assert insert_row.changer == "alice"
    assert insert_row.created_at == NOW
    assert associate_row.changer is None
    assert json.loads(associate_row.diff) == {
        "source": {"label": "Person#1", "class": "tests.Person", "table": "people", "id": 1},
        "target": {"label": "Group#2", "class": "tests.Group", "table": "groups", "id": 2},
        "table": "person_groups",
    }


def test_schema_qualifies_audit_table(writer):
    row = writer.to_row(_insert(schema="crm"))
    assert row.schema_name == "crm"
    assert row.qualified_table_name == "crm.log_people_audit"


def test_object_id_is_stringified(writer):
    assert writer.to_row(_insert(subject_id="9223372036854775807")).object_id == "9223372036854775807"
    assert writer.to_row(_insert(subject_id=42)).object_id == "42"


def test_empty_pending_set_is_not_written(writer, store):
    assert writer.drain(PendingChangeSet()) == WriteResult(rows_written=0)
    store.write_rows.assert_not_called()


def test_failed_drain_keeps_pending_and_raises(writer, store):
    store.write_rows.side_effect = PersistenceError("disk full")
    pending = PendingChangeSet()
    pending.extend([_insert(), _associate()])

    with pytest.raises(PersistenceError) as exc_info:
        writer.drain(pending)

    assert exc_info.value.message == "disk full"
    assert len(pending) == 2


def test_unknown_record_type_is_rejected(writer):
    with pytest.raises(TypeError):
        writer.to_row(object())


def test_entity_change_rejects_relation_actions():
    with pytest.raises(ValueError):
        EntityChange(
            action=ActionKind.ASSOCIATE,
            table_name="people",
            schema_name=None,
            subject_id=1,
            diff={},
            actor=None,
            timestamp=NOW,
        )
