"""Host unit-of-work protocol. Application layer depends on this; infrastructure implements it."""

from typing import Any, Iterable, Protocol, Sequence, Tuple

from entity_audit.domain.models.mapping import Changeset, CollectionChange, EntityMetadata


class UnitOfWork(Protocol):
    """Pending mutations of one commit cycle, as tracked by the host persistence layer."""

    def scheduled_insertions(self) -> Sequence[Any]:
        ...

    def scheduled_updates(self) -> Sequence[Any]:
        ...

    def scheduled_deletions(self) -> Sequence[Any]:
        ...

    def scheduled_collection_updates(self) -> Sequence[CollectionChange]:
        ...

    def scheduled_collection_deletions(self) -> Sequence[CollectionChange]:
        ...

    def changeset(self, entity: Any) -> Changeset:
        """Changed fields only: field name -> (old, new)."""
        ...

    def metadata_for(self, entity_or_class: Any) -> EntityMetadata:
        ...

    def materialize(self, entity: Any) -> None:
        """Load a lazy reference so its fields can be read."""
        ...

    def field_values(self, entity: Any) -> Iterable[Tuple[str, Any]]:
        """The entity's own declared fields and single-valued relations as (name, value) pairs."""
        ...
