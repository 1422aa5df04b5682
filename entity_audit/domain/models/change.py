"""Change records produced during the prepare phase. Immutable once built."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Union

NormalizedValue = Union[None, int, float, bool, str, Dict[str, Any]]

# field name -> {"old": ..., "new": ...}; insertion order is changeset order
FieldDiff = Dict[str, Dict[str, NormalizedValue]]


class ActionKind(str, Enum):
    """Action codes as stored in the audit ``type`` column."""

    INSERT = "INS"
    UPDATE = "UPD"
    DELETE = "DEL"
    ASSOCIATE = "CASC"
    DISSOCIATE = "CDSC"


ENTITY_ACTIONS = frozenset({ActionKind.INSERT, ActionKind.UPDATE, ActionKind.DELETE})
RELATION_ACTIONS = frozenset({ActionKind.ASSOCIATE, ActionKind.DISSOCIATE})


@dataclass(frozen=True)
class EntitySummary:
    """Stable identity and label snapshot of an entity. Not a live reference."""

    label: str
    class_name: str
    table_name: str
    primary_key_field: str
    primary_key_value: NormalizedValue

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "class": self.class_name,
            "table": self.table_name,
            self.primary_key_field: self.primary_key_value,
        }


@dataclass(frozen=True)
class RelationDiff:
    source: EntitySummary
    target: EntitySummary
    table: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "source": self.source.to_dict(),
            "target": self.target.to_dict(),
        }
        if self.table is not None:
            payload["table"] = self.table
        return payload


@dataclass(frozen=True)
class EntityChange:
    """INSERT, UPDATE or DELETE of one entity with its field-level diff."""

    action: ActionKind
    table_name: str
    schema_name: Optional[str]
    subject_id: NormalizedValue
    diff: FieldDiff
    actor: Optional[str]
    timestamp: datetime

    def __post_init__(self) -> None:
        if self.action not in ENTITY_ACTIONS:
            raise ValueError(f"EntityChange cannot carry action {self.action.value}")


@dataclass(frozen=True)
class RelationChange:
    """ASSOCIATE or DISSOCIATE between an owner and one collection element."""

    action: ActionKind
    table_name: str
    schema_name: Optional[str]
    subject_id: NormalizedValue
    diff: RelationDiff
    actor: Optional[str]
    timestamp: datetime

    def __post_init__(self) -> None:
        if self.action not in RELATION_ACTIONS:
            raise ValueError(f"RelationChange cannot carry action {self.action.value}")


ChangeRecord = Union[EntityChange, RelationChange]


@dataclass
class PendingChangeSet:
    """Ordered change records of one commit cycle, owned by a single session."""

    _records: List[ChangeRecord] = field(default_factory=list)

    def extend(self, records: List[ChangeRecord]) -> None:
        self._records.extend(records)

    def clear(self) -> None:
        self._records.clear()

    def mark(self) -> int:
        """Position to return to with ``rollback_to``."""
        return len(self._records)

    def rollback_to(self, mark: int) -> None:
        """Drop every record added after ``mark``."""
        del self._records[mark:]

    def records(self) -> List[ChangeRecord]:
        return list(self._records)

    def __iter__(self) -> Iterator[ChangeRecord]:
        return iter(list(self._records))

    def __len__(self) -> int:
        return len(self._records)

    def __bool__(self) -> bool:
        return bool(self._records)
