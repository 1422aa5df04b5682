"""Read side: ordered, filterable, paginated audit history per entity class. Read-only."""

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from sqlalchemy import MetaData, Table, func, inspect, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import registry as Registry
from sqlalchemy.sql import Select

from entity_audit.application.exceptions import InvalidPaginationError, UnknownEntityError
from entity_audit.config.settings import AuditSettings, get_settings
from entity_audit.domain.models.audit_row import audit_table_name
from entity_audit.domain.models.change import ActionKind
from entity_audit.governance.audit_policy import AuditPolicy, ConfiguredAuditPolicy, class_keys
from entity_audit.infrastructure.database.schema import audit_table
from entity_audit.infrastructure.database.session import get_async_session_factory

PAGE_SIZE = 50

TypeFilter = Union[ActionKind, str, None]


@dataclass(frozen=True)
class AuditEntry:
    id: int
    type: str
    object_id: str
    diff: Optional[Dict[str, Any]]
    changer: Optional[str]
    created_at: datetime


@dataclass(frozen=True)
class AuditPage:
    items: List[AuditEntry]
    total: int
    page: int
    page_size: int

    @property
    def pages(self) -> int:
        return max(1, -(-self.total // self.page_size))


@dataclass(frozen=True)
class AuditedEntity:
    name: str
    table: str
    audits_count: int


def _entry(row) -> AuditEntry:
    return AuditEntry(
        id=row.id,
        type=row.type,
        object_id=row.object_id,
        diff=json.loads(row.diff) if row.diff else None,
        changer=row.changer,
        created_at=row.created_at,
    )


def _type_value(type_filter: TypeFilter) -> Optional[str]:
    if isinstance(type_filter, ActionKind):
        return type_filter.value
    return type_filter


class AuditReader:
    """Queries ``[schema.]prefix + table + suffix`` for the mapped classes it knows about."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        policy: AuditPolicy,
        entity_classes: Iterable[type],
    ) -> None:
        self._session_factory = session_factory
        self._policy = policy
        self._tables: Dict[type, Tuple[str, Optional[str]]] = {}
        for cls in entity_classes:
            source = inspect(cls).local_table
            self._tables[cls] = (source.name, source.schema)
        self._metadata = MetaData()

    @classmethod
    def for_registry(
        cls,
        session_factory: async_sessionmaker[AsyncSession],
        policy: AuditPolicy,
        mapper_registry: Registry,
    ) -> "AuditReader":
        return cls(session_factory, policy, [m.class_ for m in mapper_registry.mappers])

    @classmethod
    def from_settings(
        cls,
        mapper_registry: Registry,
        settings: Optional[AuditSettings] = None,
    ) -> "AuditReader":
        settings = settings or get_settings()
        return cls.for_registry(
            get_async_session_factory(settings.async_database_url),
            ConfiguredAuditPolicy.from_settings(settings),
            mapper_registry,
        )

    def resolve_entity(self, name: str) -> type:
        """Audited class by short name or dotted path."""
        for cls in self._tables:
            if name in class_keys(cls) and self._policy.is_audited(cls):
                return cls
        raise UnknownEntityError(f"Entity is not audited: {name}")

    def _audit_table(self, entity: Union[type, object]) -> Table:
        cls = entity if isinstance(entity, type) else type(entity)
        if cls not in self._tables:
            raise UnknownEntityError(f"Entity is not mapped: {cls.__name__}")
        name, schema = self._tables[cls]
        return audit_table(
            audit_table_name(name, self._policy.table_prefix(), self._policy.table_suffix()),
            self._metadata,
            schema=schema,
        )

    def entity_table_name(self, entity: Union[type, object]) -> str:
        cls = entity if isinstance(entity, type) else type(entity)
        return self._tables[cls][0]

    def _filtered(
        self,
        stmt: Select,
        table: Table,
        object_id: Optional[Any],
        type_filter: TypeFilter,
    ) -> Select:
        if object_id is not None:
            stmt = stmt.where(table.c.object_id == str(object_id))
        type_value = _type_value(type_filter)
        if type_value is not None:
            stmt = stmt.where(table.c.type == type_value)
        return stmt

    async def get_entities(self) -> List[AuditedEntity]:
        """Audited classes with their table name and audit row count, sorted by class name."""
        entities = []
        for cls in sorted(self._tables, key=lambda c: c.__name__):
            if not self._policy.is_audited(cls):
                continue
            entities.append(
                AuditedEntity(
                    name=cls.__name__,
                    table=self.entity_table_name(cls),
                    audits_count=await self.get_audits_count(cls),
                )
            )
        return entities

    async def get_audits(
        self,
        entity: Union[type, object],
        object_id: Optional[Any] = None,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
        type_filter: TypeFilter = None,
    ) -> List[AuditEntry]:
        """Newest first (created_at DESC, id DESC). Paginated when ``page_size`` is given."""
        if page is not None and page < 1:
            raise InvalidPaginationError("page must be greater or equal than 1")
        if page_size is not None and page_size < 1:
            raise InvalidPaginationError("page_size must be greater or equal than 1")
        table = self._audit_table(entity)
        stmt = self._filtered(select(table), table, object_id, type_filter).order_by(
            table.c.created_at.desc(), table.c.id.desc()
        )
        if page_size is not None:
            stmt = stmt.offset(((page or 1) - 1) * page_size).limit(page_size)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [_entry(row) for row in result]

    async def get_audits_page(
        self,
        entity: Union[type, object],
        object_id: Optional[Any] = None,
        page: int = 1,
        page_size: int = PAGE_SIZE,
        type_filter: TypeFilter = None,
    ) -> AuditPage:
        items = await self.get_audits(entity, object_id, page, page_size, type_filter)
        total = await self.get_audits_count(entity, object_id, type_filter)
        return AuditPage(items=items, total=total, page=page, page_size=page_size)

    async def get_audits_count(
        self,
        entity: Union[type, object],
        object_id: Optional[Any] = None,
        type_filter: TypeFilter = None,
    ) -> int:
        table = self._audit_table(entity)
        stmt = self._filtered(
            select(func.count()).select_from(table), table, object_id, type_filter
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return int(result.scalar_one())

    async def get_audit(
        self,
        entity: Union[type, object],
        audit_id: int,
        type_filter: TypeFilter = None,
    ) -> Optional[AuditEntry]:
        table = self._audit_table(entity)
        stmt = self._filtered(select(table), table, None, type_filter).where(table.c.id == audit_id)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            row = result.first()
            return _entry(row) if row is not None else None
