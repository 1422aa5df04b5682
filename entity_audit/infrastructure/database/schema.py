# entity_audit/infrastructure/database/schema.py

import hashlib
from typing import List, Optional

from sqlalchemy import Column, DateTime, Index, Integer, MetaData, String, Table, Text
from sqlalchemy.orm import Mapper, registry as Registry

from entity_audit.domain.models.audit_row import audit_table_name
from entity_audit.governance.audit_policy import AuditPolicy
from entity_audit.governance.exceptions import ConfigurationError

TYPE_LENGTH = 10
CHANGER_LENGTH = 255
INDEXED_COLUMNS = ("type", "object_id", "changer", "created_at")


def audit_table(name: str, metadata: MetaData, schema: Optional[str] = None) -> Table:
    """AuditRow table definition. Returns the existing Table when already defined on ``metadata``."""
    key = f"{schema}.{name}" if schema else name
    if key in metadata.tables:
        return metadata.tables[key]
    digest = hashlib.md5(key.encode("utf-8")).hexdigest()
    return Table(
        name,
        metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("type", String(TYPE_LENGTH), nullable=False),
        Column("object_id", String(255), nullable=False),
        Column("diff", Text, nullable=True),
        Column("changer", String(CHANGER_LENGTH), nullable=True),
        Column("created_at", DateTime(timezone=True), nullable=False),
        *(Index(f"{column}_{digest}_idx", column) for column in INDEXED_COLUMNS),
        schema=schema,
    )


def _is_audited(mapper: Mapper, policy: AuditPolicy) -> bool:
    if policy.is_audited(mapper.class_):
        return True
    # an inheritance root holds the rows of its single-table / joined subclasses
    if mapper.inherits is None:
        return any(policy.is_audited(sub.class_) for sub in mapper.self_and_descendants)
    return False


def _check_inheritance(mapper: Mapper) -> None:
    if any(m.concrete for m in mapper.self_and_descendants):
        raise ConfigurationError(
            f"Inheritance type \"concrete\" is not supported for audited class {mapper.class_.__name__}"
        )


def provision_audit_tables(
    mapper_registry: Registry,
    policy: AuditPolicy,
    metadata: MetaData,
) -> List[Table]:
    """
    Add an audit table to ``metadata`` for every audited mapped table.
    Call ``metadata.create_all(engine)`` afterwards to create them.
    """
    created: List[Table] = []
    for mapper in sorted(mapper_registry.mappers, key=lambda m: m.class_.__name__):
        if not _is_audited(mapper, policy):
            continue
        _check_inheritance(mapper)
        source = mapper.local_table
        if not isinstance(source, Table):
            raise ConfigurationError(
                f"Audited class {mapper.class_.__name__} is not mapped to a table"
            )
        name = audit_table_name(source.name, policy.table_prefix(), policy.table_suffix())
        key = f"{source.schema}.{name}" if source.schema else name
        if key in metadata.tables:
            continue
        created.append(audit_table(name, metadata, schema=source.schema))
    return created
