"""Drain phase: persist a pending change set as audit rows, atomically and in order."""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from entity_audit.application.audit_store import AuditStore
from entity_audit.application.exceptions import PersistenceError
from entity_audit.domain.models.audit_row import AuditRow, audit_table_name
from entity_audit.domain.models.change import (
    ChangeRecord,
    EntityChange,
    PendingChangeSet,
    RelationChange,
)
from entity_audit.governance.audit_policy import AuditPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WriteResult:
    rows_written: int
    tables: Tuple[str, ...] = ()


def _payload(record: ChangeRecord) -> Dict[str, Any]:
    if isinstance(record, EntityChange):
        return record.diff
    if isinstance(record, RelationChange):
        return record.diff.to_dict()
    raise TypeError(f"Unknown change record: {type(record).__name__}")


class AuditWriter:
    """
    Runs after the host has committed its own transaction.
    The audit transaction is independent: a failed drain leaves domain data committed.
    """

    def __init__(self, store: AuditStore, policy: AuditPolicy) -> None:
        self._store = store
        self._policy = policy

    def to_row(self, record: ChangeRecord) -> AuditRow:
        return AuditRow(
            table_name=audit_table_name(
                record.table_name, self._policy.table_prefix(), self._policy.table_suffix()
            ),
            schema_name=record.schema_name,
            type=record.action.value,
            object_id=str(record.subject_id),
            diff=json.dumps(_payload(record)),
            changer=record.actor,
            created_at=record.timestamp,
        )

    def drain(self, pending: PendingChangeSet) -> WriteResult:
        """Write every pending record; clear ``pending`` only when the transaction committed."""
        if not pending:
            return WriteResult(rows_written=0)
        rows: List[AuditRow] = [self.to_row(record) for record in pending]
        try:
            self._store.write_rows(rows)
        except PersistenceError as e:
            logger.error(
                "audit_drain_failed",
                extra={"rows": len(rows), "error": e.message},
            )
            raise
        pending.clear()
        tables = tuple(dict.fromkeys(row.qualified_table_name for row in rows))
        logger.info(
            "audit_drain_committed",
            extra={"rows": len(rows), "tables": list(tables)},
        )
        return WriteResult(rows_written=len(rows), tables=tables)
