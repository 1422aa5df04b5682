"""Entity summaries: stable identity and label descriptors of entities."""

from typing import Any, Optional

from entity_audit.application.normalizer import ValueNormalizer
from entity_audit.application.unit_of_work import UnitOfWork
from entity_audit.domain.exceptions import IdentityResolutionError
from entity_audit.domain.models.change import EntitySummary, NormalizedValue
from entity_audit.domain.models.mapping import EntityMetadata


def _has_own_str(entity: Any) -> bool:
    return type(entity).__str__ is not object.__str__


class EntitySummarizer:
    """Resolves identities and labels. Always materializes before reading."""

    def __init__(self, uow: UnitOfWork, normalizer: ValueNormalizer) -> None:
        self._uow = uow
        self._normalizer = normalizer

    def summarize(self, entity: Any) -> Optional[EntitySummary]:
        """Summary of ``entity``; None for a None reference."""
        if entity is None:
            return None
        self._uow.materialize(entity)
        meta = self._uow.metadata_for(entity)
        identity = self.identity(entity, meta)
        if _has_own_str(entity):
            label = str(entity)
        else:
            label = f"{type(entity).__name__}#{identity}"
        return EntitySummary(
            label=label,
            class_name=meta.class_name,
            table_name=meta.table_name,
            primary_key_field=meta.primary_key,
            primary_key_value=identity,
        )

    def identity(self, entity: Any, meta: Optional[EntityMetadata] = None) -> NormalizedValue:
        """
        Normalized primary key of ``entity``.
        Direct key field first; otherwise one level through the identity relation
        into the referenced entity's own key field.
        """
        self._uow.materialize(entity)
        if meta is None:
            meta = self._uow.metadata_for(entity)
        pk = meta.primary_key
        if pk is None:
            raise IdentityResolutionError(
                f"{meta.class_name} has no single identifier field"
            )

        mapping = meta.field_mapping(pk)
        if mapping is not None:
            value = self._normalizer.normalize_field(mapping, getattr(entity, pk, None))
            if value is None:
                raise IdentityResolutionError(
                    f"{meta.class_name}.{pk} has no value"
                )
            return value

        if not meta.is_single_valued_relation(pk):
            raise IdentityResolutionError(
                f"{meta.class_name}.{pk} is neither a field nor a single-valued relation"
            )
        target = getattr(entity, pk, None)
        if target is None:
            raise IdentityResolutionError(
                f"{meta.class_name}.{pk} references no entity"
            )
        self._uow.materialize(target)
        target_meta = self._uow.metadata_for(target)
        target_pk = target_meta.primary_key
        target_mapping = target_meta.field_mapping(target_pk) if target_pk else None
        if target_mapping is None:
            raise IdentityResolutionError(
                f"{meta.class_name}.{pk}: {target_meta.class_name} has no direct identifier field"
            )
        value = self._normalizer.normalize_field(target_mapping, getattr(target, target_pk, None))
        if value is None:
            raise IdentityResolutionError(
                f"{meta.class_name}.{pk}: {target_meta.class_name}.{target_pk} has no value"
            )
        return value
