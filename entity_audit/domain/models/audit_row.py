"""Persisted shape of one audit entry."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class AuditRow:
    """One row of ``[schema.]prefix + table + suffix``. Append-only."""

    table_name: str
    schema_name: Optional[str]
    type: str
    object_id: str
    diff: str
    changer: Optional[str]
    created_at: datetime

    @property
    def qualified_table_name(self) -> str:
        return f"{self.schema_name}.{self.table_name}" if self.schema_name else self.table_name


def audit_table_name(table_name: str, prefix: str, suffix: str) -> str:
    return f"{prefix}{table_name}{suffix}"
