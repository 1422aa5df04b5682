"""Audit store protocol. Application layer depends on this; infrastructure implements it."""

from typing import Protocol, Sequence

from entity_audit.domain.models.audit_row import AuditRow


class AuditStore(Protocol):
    """Durable, append-only storage for audit rows."""

    def write_rows(self, rows: Sequence[AuditRow]) -> None:
        """Insert all rows in order inside one transaction: all committed or none. Raises PersistenceError."""
        ...
