"""Governance-layer exceptions. Typed, no HTTP."""

from entity_audit.domain.exceptions import AuditError


class GovernanceError(AuditError):
    """Base for all governance-layer errors."""


class ConfigurationError(GovernanceError):
    """Raised when an audited mapping cannot be provisioned (e.g. concrete-table inheritance)."""
