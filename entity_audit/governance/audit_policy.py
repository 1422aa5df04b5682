"""Audit policy: which entity types and fields are audited, who the actor is, audit table naming."""

from typing import Callable, Dict, FrozenSet, Iterable, Mapping, Optional, Protocol

from entity_audit.config.settings import AuditSettings, EntityAuditSettings, get_settings
from entity_audit.core.context import actor_ctx


class AuditPolicy(Protocol):
    """Policy collaborator consulted by the collector, diff engine and writer."""

    def is_audited(self, entity_type: type) -> bool:
        ...

    def is_audited_field(self, entity_type: type, field_name: str) -> bool:
        ...

    def current_actor(self) -> Optional[str]:
        ...

    def table_prefix(self) -> str:
        ...

    def table_suffix(self) -> str:
        ...


def class_keys(entity_type: type) -> tuple[str, str]:
    """Names an entity class can be configured under: short name and dotted path."""
    return entity_type.__name__, f"{entity_type.__module__}.{entity_type.__qualname__}"


def _actor_from_context() -> Optional[str]:
    return actor_ctx.get()


class ConfiguredAuditPolicy:
    """
    Settings-driven policy. An entity is audited when it is listed (by class name or
    dotted path) and enabled. Fields are excluded globally or per entity.
    """

    def __init__(
        self,
        entities: Mapping[str, EntityAuditSettings],
        *,
        ignored_columns: Iterable[str] = (),
        table_prefix: str = "",
        table_suffix: str = "_audit",
        actor_provider: Callable[[], Optional[str]] = _actor_from_context,
    ) -> None:
        self._entities: Dict[str, EntityAuditSettings] = dict(entities)
        self._ignored: FrozenSet[str] = frozenset(ignored_columns)
        self._prefix = table_prefix
        self._suffix = table_suffix
        self._actor_provider = actor_provider

    @classmethod
    def from_settings(
        cls,
        settings: Optional[AuditSettings] = None,
        actor_provider: Callable[[], Optional[str]] = _actor_from_context,
    ) -> "ConfiguredAuditPolicy":
        settings = settings or get_settings()
        return cls(
            settings.entities,
            ignored_columns=settings.ignored_columns,
            table_prefix=settings.table_prefix,
            table_suffix=settings.table_suffix,
            actor_provider=actor_provider,
        )

    def _entity_settings(self, entity_type: type) -> Optional[EntityAuditSettings]:
        for key in class_keys(entity_type):
            if key in self._entities:
                return self._entities[key]
        return None

    def is_auditable(self, entity_type: type) -> bool:
        """Listed in configuration, enabled or not."""
        return self._entity_settings(entity_type) is not None

    def is_audited(self, entity_type: type) -> bool:
        entity = self._entity_settings(entity_type)
        return entity is not None and entity.enabled

    def is_audited_field(self, entity_type: type, field_name: str) -> bool:
        entity = self._entity_settings(entity_type)
        if entity is None or not entity.enabled:
            return False
        if field_name in self._ignored:
            return False
        return field_name not in entity.ignored_columns

    def current_actor(self) -> Optional[str]:
        return self._actor_provider()

    def table_prefix(self) -> str:
        return self._prefix

    def table_suffix(self) -> str:
        return self._suffix
