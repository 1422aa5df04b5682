"""DiffEngine: normalized field diffs, relation summaries, skipped fields."""

from decimal import Decimal

import pytest

from entity_audit.application.diff_engine import DiffEngine
from entity_audit.domain.models.mapping import EntityMetadata, FieldMapping


@pytest.fixture
def engine(policy, normalizer, summarizer):
    return DiffEngine(policy, normalizer, summarizer)


@pytest.fixture
def product_meta(entities):
    # reuse the audited Person class with a decimal field
    return EntityMetadata(
        entity_class=entities.Person,
        class_name="tests.Person",
        table_name="people",
        schema_name=None,
        primary_key="id",
        fields={
            "price": FieldMapping("price", "decimal", {"scale": 2}),
            "name": FieldMapping("name", "string", to_storable=str),
        },
    )


def test_changed_scalar_is_included(engine, uow, entities):
    meta = uow.metadata_for(entities.Person)
    diff = engine.diff(meta, {"name": ["Alice", "Alicia"], "age": [30, "31"]})
    assert diff == {
        "name": {"old": "Alice", "new": "Alicia"},
        "age": {"old": 30, "new": 31},
    }


def test_equal_after_normalization_is_dropped(engine, product_meta):
    diff = engine.diff(product_meta, {"price": [Decimal("10"), Decimal("10.00")]})
    assert diff == {}


def test_output_follows_changeset_order(engine, uow, entities):
    meta = uow.metadata_for(entities.Person)
    diff = engine.diff(meta, {"age": [1, 2], "name": ["a", "b"], "id": [None, 4]})
    assert list(diff) == ["age", "name", "id"]


def test_embedded_ignored_and_multi_valued_fields_are_skipped(engine, uow, entities):
    meta = uow.metadata_for(entities.Person)
    diff = engine.diff(
        meta,
        {
            "address": [{"city": "A"}, {"city": "B"}],
            "password": ["x", "y"],
            "groups": [[], [entities.Group(id=1)]],
            "name": ["a", "b"],
        },
    )
    assert list(diff) == ["name"]


def test_single_valued_relation_uses_summaries(engine, uow, entities):
    meta = uow.metadata_for(entities.Person)
    old, new = entities.Company(id=1, name="Old Co"), entities.Company(id=2, name="New Co")
    diff = engine.diff(meta, {"employer": [old, new]})
    assert diff["employer"]["old"] == {"label": "Old Co", "class": "tests.Company", "table": "companies", "id": "1"}
    assert diff["employer"]["new"]["id"] == "2"


def test_relation_to_equal_snapshot_is_dropped(engine, uow, entities):
    meta = uow.metadata_for(entities.Person)
    diff = engine.diff(
        meta,
        {"employer": [entities.Company(id=1, name="Acme"), entities.Company(id=1, name="Acme")]},
    )
    assert diff == {}


def test_relation_set_from_nothing(engine, uow, entities):
    meta = uow.metadata_for(entities.Person)
    diff = engine.diff(meta, {"employer": [None, entities.Company(id=4, name="Init")]})
    assert diff["employer"]["old"] is None
    assert diff["employer"]["new"]["label"] == "Init"
