from entity_audit.domain.models.change import (
    ActionKind,
    ChangeRecord,
    EntityChange,
    EntitySummary,
    FieldDiff,
    NormalizedValue,
    PendingChangeSet,
    RelationChange,
    RelationDiff,
)
from entity_audit.domain.models.mapping import (
    CollectionChange,
    EntityMetadata,
    FieldMapping,
    RelationMapping,
)

__all__ = [
    "ActionKind",
    "ChangeRecord",
    "CollectionChange",
    "EntityChange",
    "EntityMetadata",
    "EntitySummary",
    "FieldDiff",
    "FieldMapping",
    "NormalizedValue",
    "PendingChangeSet",
    "RelationChange",
    "RelationDiff",
    "RelationMapping",
]
