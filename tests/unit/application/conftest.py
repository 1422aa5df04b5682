"""Fixtures for application tests: plain entities and an in-memory unit of work."""

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from entity_audit.application.normalizer import ValueNormalizer
from entity_audit.application.summarizer import EntitySummarizer
from entity_audit.config.settings import EntityAuditSettings
from entity_audit.domain.models.mapping import (
    CollectionChange,
    EntityMetadata,
    FieldMapping,
    RelationMapping,
)
from entity_audit.governance.audit_policy import ConfiguredAuditPolicy

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class Person:
    def __init__(self, id=None, name=None, age=None, employer=None):
        self.id = id
        self.name = name
        self.age = age
        self.employer = employer
        self.groups = []


class Company:
    def __init__(self, id=None, name=None):
        self.id = id
        self.name = name

    def __str__(self) -> str:
        return self.name


class Group:
    def __init__(self, id=None, title=None):
        self.id = id
        self.title = title


class Passport:
    """Identity through a foreign entity: the holder's id."""

    def __init__(self, holder=None, number=None):
        self.holder = holder
        self.number = number


class Ledger:
    """Audited but carries a field with an unknown type and no conversion."""

    def __init__(self, id=None, blob=None):
        self.id = id
        self.blob = blob


class Secret:
    """Never audited."""

    def __init__(self, id=None):
        self.id = id


class LazyPerson(Person):
    """Proxy whose fields are only populated once materialized."""

    def __init__(self, id, name, age):
        super().__init__()
        self._pending = {"id": id, "name": name, "age": age}

    def load(self):
        if self._pending is not None:
            for key, value in self._pending.items():
                setattr(self, key, value)
            self._pending = None


def _metadata():
    person_fields = {
        "id": FieldMapping("id", "integer"),
        "name": FieldMapping("name", "string", to_storable=str),
        "age": FieldMapping("age", "integer"),
    }
    person_relations = {
        "employer": RelationMapping("employer", Company, multi_valued=False),
        "groups": RelationMapping("groups", Group, multi_valued=True, join_table="person_groups"),
        "companies": RelationMapping("companies", Company, multi_valued=True),
    }
    person = EntityMetadata(
        entity_class=Person,
        class_name="tests.Person",
        table_name="people",
        schema_name=None,
        primary_key="id",
        fields=person_fields,
        relations=person_relations,
        embedded=frozenset({"address"}),
    )
    return {
        Person: person,
        LazyPerson: person,
        Company: EntityMetadata(
            entity_class=Company,
            class_name="tests.Company",
            table_name="companies",
            schema_name="crm",
            primary_key="id",
            fields={
                "id": FieldMapping("id", "bigint"),
                "name": FieldMapping("name", "string", to_storable=str),
            },
        ),
        Group: EntityMetadata(
            entity_class=Group,
            class_name="tests.Group",
            table_name="groups",
            schema_name=None,
            primary_key="id",
            fields={
                "id": FieldMapping("id", "integer"),
                "title": FieldMapping("title", "string", to_storable=str),
            },
        ),
        Passport: EntityMetadata(
            entity_class=Passport,
            class_name="tests.Passport",
            table_name="passports",
            schema_name=None,
            primary_key="holder",
            fields={"number": FieldMapping("number", "string", to_storable=str)},
            relations={"holder": RelationMapping("holder", Person, multi_valued=False)},
        ),
        Ledger: EntityMetadata(
            entity_class=Ledger,
            class_name="tests.Ledger",
            table_name="ledgers",
            schema_name=None,
            primary_key="id",
            fields={
                "id": FieldMapping("id", "integer"),
                "blob": FieldMapping("blob", "geometry"),
            },
        ),
        Secret: EntityMetadata(
            entity_class=Secret,
            class_name="tests.Secret",
            table_name="secrets",
            schema_name=None,
            primary_key="id",
            fields={"id": FieldMapping("id", "integer")},
        ),
    }


class FakeUnitOfWork:
    """In-memory UnitOfWork: lists are filled by the test."""

    def __init__(self):
        self.metadata = _metadata()
        self.insertions = []
        self.updates = []
        self.deletions = []
        self.collection_updates = []
        self.collection_deletions = []
        self.changesets = {}
        self.materialized = []

    def scheduled_insertions(self):
        return list(self.insertions)

    def scheduled_updates(self):
        return list(self.updates)

    def scheduled_deletions(self):
        return list(self.deletions)

    def scheduled_collection_updates(self):
        return list(self.collection_updates)

    def scheduled_collection_deletions(self):
        return list(self.collection_deletions)

    def changeset(self, entity):
        return self.changesets.get(id(entity), {})

    def metadata_for(self, entity_or_class):
        cls = entity_or_class if isinstance(entity_or_class, type) else type(entity_or_class)
        return self.metadata[cls]

    def materialize(self, entity):
        self.materialized.append(entity)
        if hasattr(entity, "load"):
            entity.load()

    def field_values(self, entity):
        meta = self.metadata_for(entity)
        for name in meta.fields:
            yield name, getattr(entity, name)
        for name, relation in meta.relations.items():
            if not relation.multi_valued:
                yield name, getattr(entity, name)

    # helpers for tests

    def update(self, entity, **changes):
        self.updates.append(entity)
        self.changesets[id(entity)] = {k: list(v) for k, v in changes.items()}

    def insert(self, entity, **changes):
        self.insertions.append(entity)
        self.changesets[id(entity)] = {k: list(v) for k, v in changes.items()}

    def relation(self, owner, name):
        return self.metadata_for(owner).relation_mapping(name)


@pytest.fixture
def entities():
    return SimpleNamespace(
        Person=Person,
        Company=Company,
        Group=Group,
        Passport=Passport,
        Ledger=Ledger,
        Secret=Secret,
        LazyPerson=LazyPerson,
        CollectionChange=CollectionChange,
    )


@pytest.fixture
def uow():
    return FakeUnitOfWork()


@pytest.fixture
def policy():
    return ConfiguredAuditPolicy(
        {
            "Person": EntityAuditSettings(ignored_columns=["password"]),
            "LazyPerson": EntityAuditSettings(),
            "Company": EntityAuditSettings(),
            "Group": EntityAuditSettings(),
            "Passport": EntityAuditSettings(),
            "Ledger": EntityAuditSettings(),
        },
        actor_provider=lambda: "alice",
    )


@pytest.fixture
def normalizer():
    return ValueNormalizer()


@pytest.fixture
def summarizer(uow, normalizer):
    return EntitySummarizer(uow, normalizer)


@pytest.fixture
def clock():
    return lambda: FIXED_NOW
