"""Field-level audit trail for SQLAlchemy ORM sessions."""

from entity_audit.domain.models.change import ActionKind
from entity_audit.governance.audit_policy import ConfiguredAuditPolicy
from entity_audit.infrastructure.database.listener import AuditListener

__all__ = ["ActionKind", "AuditListener", "ConfiguredAuditPolicy"]
