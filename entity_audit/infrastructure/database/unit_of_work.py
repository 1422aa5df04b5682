"""
SQLAlchemy adapter for the UnitOfWork protocol.

Built inside ``after_flush``: the session's ``new`` / ``dirty`` / ``deleted``
collections and attribute history still show the pre-flush state, while
primary keys of inserted rows are already assigned.
"""

from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import inspect
from sqlalchemy.engine import Dialect
from sqlalchemy.orm import Mapper, Session
from sqlalchemy.orm.state import InstanceState
from sqlalchemy.types import (
    BigInteger,
    Boolean,
    Float,
    Integer,
    LargeBinary,
    Numeric,
    SmallInteger,
    TypeDecorator,
    TypeEngine,
)

from entity_audit.application.normalizer import (
    BIGINT,
    BLOB,
    BOOLEAN,
    DECIMAL,
    FLOAT,
    INTEGER,
    SMALLINT,
)
from entity_audit.domain.models.mapping import (
    Changeset,
    CollectionChange,
    EntityMetadata,
    FieldMapping,
    RelationMapping,
)

IDENTITY_ATTRIBUTE = "__audit_identity__"

# subclasses before their bases: BigInteger/SmallInteger < Integer, Float < Numeric
_TYPE_KINDS = (
    (BigInteger, BIGINT),
    (SmallInteger, SMALLINT),
    (Integer, INTEGER),
    (Float, FLOAT),
    (Numeric, DECIMAL),
    (Boolean, BOOLEAN),
    (LargeBinary, BLOB),
)


def _identity(value: Any) -> Any:
    return value


def describe_type(type_: TypeEngine, dialect: Dialect) -> Tuple[str, Dict[str, Any], Any]:
    """(type kind, mapping options, storable conversion) for a column type."""
    options: Dict[str, Any] = {}
    if isinstance(type_, TypeDecorator):
        kind = type(type_).__name__
    else:
        kind = type_.__visit_name__
        for base, name in _TYPE_KINDS:
            if isinstance(type_, base):
                kind = name
                break
        if kind == DECIMAL and type_.scale is not None:
            options["scale"] = type_.scale
    processor = type_.dialect_impl(dialect).bind_processor(dialect)
    return kind, options, processor or _identity


def build_metadata(mapper: Mapper, dialect: Dialect) -> EntityMetadata:
    cls = mapper.class_
    fields: Dict[str, FieldMapping] = {}
    for prop in mapper.column_attrs:
        kind, options, to_storable = describe_type(prop.columns[0].type, dialect)
        fields[prop.key] = FieldMapping(
            name=prop.key, type_kind=kind, options=options, to_storable=to_storable
        )

    relations: Dict[str, RelationMapping] = {}
    for rel in mapper.relationships:
        if rel.viewonly:
            continue
        secondary = rel.secondary
        relations[rel.key] = RelationMapping(
            name=rel.key,
            target_class=rel.mapper.class_,
            multi_valued=bool(rel.uselist),
            join_table=getattr(secondary, "name", None) if secondary is not None else None,
        )

    # __audit_identity__ names a column attribute or a many-to-one relationship
    primary_key: Optional[str] = getattr(cls, IDENTITY_ATTRIBUTE, None)
    if primary_key is None and len(mapper.primary_key) == 1:
        primary_key = mapper.get_property_by_column(mapper.primary_key[0]).key

    table = mapper.local_table
    return EntityMetadata(
        entity_class=cls,
        class_name=f"{cls.__module__}.{cls.__qualname__}",
        table_name=table.name,
        schema_name=getattr(table, "schema", None),
        primary_key=primary_key,
        fields=fields,
        relations=relations,
        embedded=frozenset(mapper.composites.keys()),
    )


class SqlAlchemyUnitOfWork:
    """Pending mutations of a Session. Implements UnitOfWork protocol."""

    def __init__(self, session: Session) -> None:
        self._session = session
        self._metadata: Dict[type, EntityMetadata] = {}

    # --- pending mutation lists ---

    def scheduled_insertions(self) -> List[Any]:
        return sorted(self._session.new, key=lambda obj: inspect(obj).insert_order or 0)

    def _persistent_dirty(self) -> List[Any]:
        skip = self._session.new | self._session.deleted
        return [obj for obj in self._session.dirty if obj not in skip]

    def scheduled_updates(self) -> List[Any]:
        return [
            obj
            for obj in self._persistent_dirty()
            if self._session.is_modified(obj, include_collections=False)
        ]

    def scheduled_deletions(self) -> List[Any]:
        return list(self._session.deleted)

    def scheduled_collection_updates(self) -> List[CollectionChange]:
        changes: List[CollectionChange] = []
        owners = self.scheduled_insertions() + self._persistent_dirty()
        for owner in owners:
            state = inspect(owner)
            meta = self.metadata_for(owner)
            for relation in meta.relations.values():
                if not relation.multi_valued:
                    continue
                history = state.attrs[relation.name].history
                if history.added or history.deleted:
                    changes.append(
                        CollectionChange(
                            owner=owner,
                            relation=relation,
                            added=list(history.added or ()),
                            removed=list(history.deleted or ()),
                        )
                    )
        return changes

    def scheduled_collection_deletions(self) -> List[CollectionChange]:
        changes: List[CollectionChange] = []
        for owner in self._session.deleted:
            state = inspect(owner)
            meta = self.metadata_for(owner)
            for relation in meta.relations.values():
                if not relation.multi_valued:
                    continue
                collection = state.dict.get(relation.name)
                if collection:
                    changes.append(
                        CollectionChange(owner=owner, relation=relation, remaining=list(collection))
                    )
        return changes

    # --- per-entity access ---

    def changeset(self, entity: Any) -> Changeset:
        state: InstanceState = inspect(entity)
        meta = self.metadata_for(entity)
        keys = list(meta.fields) + [
            name for name, relation in meta.relations.items() if not relation.multi_valued
        ]
        changeset: Dict[str, List[Any]] = {}
        if entity in self._session.new:
            for key in keys:
                value = state.dict.get(key)
                if value is not None:
                    changeset[key] = [None, value]
            return changeset
        for key in keys:
            history = state.attrs[key].history
            if not history.has_changes():
                continue
            if history.deleted:
                old = history.deleted[0]
            elif meta.is_single_valued_relation(key):
                # lazy reference replaced without being loaded
                old = self._previous_target(state, key)
            else:
                old = None
            new = history.added[0] if history.added else None
            changeset[key] = [old, new]
        return changeset

    def _previous_target(self, state: InstanceState, key: str) -> Any:
        """Entity a many-to-one pointed to before this flush, found through its foreign key history."""
        relationship = state.mapper.relationships[key]
        target_mapper = relationship.mapper
        remote_to_local = {remote: local for local, remote in relationship.local_remote_pairs}
        identity = []
        for pk_column in target_mapper.primary_key:
            local = remote_to_local.get(pk_column)
            if local is None:
                return None
            history = state.attrs[state.mapper.get_property_by_column(local).key].history
            values = history.deleted or history.unchanged
            if not values or values[0] is None:
                return None
            identity.append(values[0])
        return self._session.get(target_mapper.class_, tuple(identity))

    def metadata_for(self, entity_or_class: Any) -> EntityMetadata:
        cls = entity_or_class if isinstance(entity_or_class, type) else type(entity_or_class)
        meta = self._metadata.get(cls)
        if meta is None:
            mapper = inspect(cls)
            dialect = self._session.get_bind(mapper=mapper).dialect
            meta = build_metadata(mapper, dialect)
            self._metadata[cls] = meta
        return meta

    def materialize(self, entity: Any, include_collections: bool = False) -> None:
        """Load unloaded (lazy or expired) attributes while the row is still readable."""
        state: InstanceState = inspect(entity)
        if not state.persistent:
            return
        unloaded = state.unloaded
        if not unloaded:
            return
        mapper = state.mapper
        keys = [prop.key for prop in mapper.column_attrs] + [
            rel.key for rel in mapper.relationships if include_collections or not rel.uselist
        ]
        for key in keys:
            if key in unloaded:
                getattr(entity, key)

    def field_values(self, entity: Any) -> Iterable[Tuple[str, Any]]:
        meta = self.metadata_for(entity)
        state: InstanceState = inspect(entity)
        for name in meta.fields:
            yield name, state.dict.get(name)
        for name, relation in meta.relations.items():
            if not relation.multi_valued:
                yield name, state.dict.get(name)
