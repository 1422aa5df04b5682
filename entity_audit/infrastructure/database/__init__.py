"""SQLAlchemy integration: unit-of-work adapter, session listener, audit store, schema, reader."""

from entity_audit.infrastructure.database.listener import AuditListener, pending_changes
from entity_audit.infrastructure.database.reader import AuditReader
from entity_audit.infrastructure.database.schema import audit_table, provision_audit_tables
from entity_audit.infrastructure.database.store import SqlAuditStore
from entity_audit.infrastructure.database.unit_of_work import SqlAlchemyUnitOfWork

__all__ = [
    "AuditListener",
    "AuditReader",
    "SqlAlchemyUnitOfWork",
    "SqlAuditStore",
    "audit_table",
    "pending_changes",
    "provision_audit_tables",
]
