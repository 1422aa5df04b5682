"""Entity metadata supplied by the host persistence layer."""

from dataclasses import dataclass, field
from typing import Any, Callable, FrozenSet, Mapping, Optional, Sequence


@dataclass(frozen=True)
class FieldMapping:
    """A scalar column: its type kind, mapping options (e.g. ``scale``) and storable conversion."""

    name: str
    type_kind: str
    options: Mapping[str, Any] = field(default_factory=dict)
    to_storable: Optional[Callable[[Any], Any]] = None


@dataclass(frozen=True)
class RelationMapping:
    name: str
    target_class: type
    multi_valued: bool
    join_table: Optional[str] = None


@dataclass(frozen=True)
class EntityMetadata:
    """
    Mapping of one entity class.
    ``primary_key`` names either a field or a single-valued relation (foreign-derived identity).
    """

    entity_class: type
    class_name: str
    table_name: str
    schema_name: Optional[str]
    primary_key: Optional[str]
    fields: Mapping[str, FieldMapping] = field(default_factory=dict)
    relations: Mapping[str, RelationMapping] = field(default_factory=dict)
    embedded: FrozenSet[str] = frozenset()

    def field_mapping(self, name: str) -> Optional[FieldMapping]:
        return self.fields.get(name)

    def relation_mapping(self, name: str) -> Optional[RelationMapping]:
        return self.relations.get(name)

    def is_single_valued_relation(self, name: str) -> bool:
        relation = self.relations.get(name)
        return relation is not None and not relation.multi_valued

    def is_multi_valued_relation(self, name: str) -> bool:
        relation = self.relations.get(name)
        return relation is not None and relation.multi_valued


@dataclass(frozen=True)
class CollectionChange:
    """A relation collection scheduled for update (added/removed) or deletion (remaining)."""

    owner: Any
    relation: RelationMapping
    added: Sequence[Any] = ()
    removed: Sequence[Any] = ()
    remaining: Sequence[Any] = ()


Changeset = Mapping[str, Sequence[Any]]
