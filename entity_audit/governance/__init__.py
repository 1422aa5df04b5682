"""Governance: audit policy and provisioning errors. No FastAPI."""

from entity_audit.governance.audit_policy import AuditPolicy, ConfiguredAuditPolicy
from entity_audit.governance.exceptions import ConfigurationError, GovernanceError

__all__ = [
    "AuditPolicy",
    "ConfiguredAuditPolicy",
    "ConfigurationError",
    "GovernanceError",
]
