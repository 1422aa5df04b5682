"""Session event wiring: collect during flush, drain after commit, discard when the transaction ends otherwise."""

import logging
from typing import Any, Callable, Dict, Optional

from sqlalchemy import event
from sqlalchemy.orm import Session

from entity_audit.application.audit_store import AuditStore
from entity_audit.application.collector import ChangeCollector
from entity_audit.application.exceptions import PersistenceError
from entity_audit.application.normalizer import ValueNormalizer
from entity_audit.application.writer import AuditWriter, WriteResult
from entity_audit.config.settings import AuditSettings, get_settings
from entity_audit.domain.models.change import PendingChangeSet
from entity_audit.governance.audit_policy import AuditPolicy, ConfiguredAuditPolicy
from entity_audit.infrastructure.database.session import get_audit_engine
from entity_audit.infrastructure.database.store import SqlAuditStore
from entity_audit.infrastructure.database.unit_of_work import SqlAlchemyUnitOfWork

logger = logging.getLogger(__name__)

PENDING_KEY = "entity_audit.pending"
SAVEPOINTS_KEY = "entity_audit.savepoints"


def pending_changes(session: Session) -> PendingChangeSet:
    """The session's own pending change set, created on first use."""
    pending = session.info.get(PENDING_KEY)
    if pending is None:
        pending = PendingChangeSet()
        session.info[PENDING_KEY] = pending
    return pending


def _savepoint_marks(session: Session) -> Dict[Any, int]:
    """Pending-set position at the start of each open SAVEPOINT transaction."""
    return session.info.setdefault(SAVEPOINTS_KEY, {})


def _bound_store(session: Session) -> AuditStore:
    return SqlAuditStore(session.get_bind())


class AuditListener:
    """
    Two-phase audit cycle on a Session, sessionmaker or Session subclass.
    For AsyncSession, register on ``AsyncSession.sync_session_class`` (or a sessionmaker's
    ``sync_session_class``); the hooks then run inside SQLAlchemy's greenlet bridge.

    Known limitation: the audit transaction is separate from the host transaction. If the
    drain fails, the domain changes stay committed without audit rows; the failure is
    logged and raised to the caller of ``commit()``.
    """

    def __init__(
        self,
        policy: AuditPolicy,
        normalizer: Optional[ValueNormalizer] = None,
        store_factory: Callable[[Session], AuditStore] = _bound_store,
    ) -> None:
        self._policy = policy
        self._collector = ChangeCollector(policy, normalizer)
        self._store_factory = store_factory

    @classmethod
    def from_settings(
        cls,
        settings: Optional[AuditSettings] = None,
        normalizer: Optional[ValueNormalizer] = None,
    ) -> "AuditListener":
        """Policy from settings; audit rows go to ``database_url`` when set, else to the session's bind."""
        settings = settings or get_settings()
        policy = ConfiguredAuditPolicy.from_settings(settings)
        if settings.database_url is None:
            return cls(policy, normalizer)
        engine = get_audit_engine(settings.database_url)
        return cls(policy, normalizer, store_factory=lambda session: SqlAuditStore(engine))

    def _hooks(self):
        return (
            ("before_flush", self.before_flush),
            ("after_flush", self.after_flush),
            ("after_commit", self.after_commit),
            ("after_transaction_create", self.after_transaction_create),
            ("after_soft_rollback", self.after_soft_rollback),
            ("after_transaction_end", self.after_transaction_end),
        )

    def register(self, target: Any) -> "AuditListener":
        for name, hook in self._hooks():
            event.listen(target, name, hook)
        return self

    def unregister(self, target: Any) -> None:
        for name, hook in self._hooks():
            if event.contains(target, name, hook):
                event.remove(target, name, hook)

    def before_flush(self, session: Session, flush_context, instances) -> None:
        # rows of deleted entities are still readable only before the flush
        uow = SqlAlchemyUnitOfWork(session)
        for entity in list(session.deleted):
            if self._policy.is_audited(type(entity)):
                uow.materialize(entity, include_collections=True)

    def after_flush(self, session: Session, flush_context) -> None:
        self._collector.collect(SqlAlchemyUnitOfWork(session), pending_changes(session))

    def after_commit(self, session: Session) -> Optional[WriteResult]:
        pending = pending_changes(session)
        if not pending:
            return None
        writer = AuditWriter(self._store_factory(session), self._policy)
        try:
            return writer.drain(pending)
        except PersistenceError:
            logger.error(
                "audit_records_lost",
                extra={"records": len(pending)},
            )
            pending.clear()
            raise

    def after_transaction_create(self, session: Session, transaction) -> None:
        if transaction.nested:
            _savepoint_marks(session)[transaction] = pending_changes(session).mark()

    def after_soft_rollback(self, session: Session, previous_transaction) -> None:
        # records of a rolled back SAVEPOINT were never persisted; a released one stays with its parent
        mark = _savepoint_marks(session).pop(previous_transaction, None)
        if mark is None:
            return
        pending = pending_changes(session)
        dropped = len(pending) - mark
        if dropped > 0:
            pending.rollback_to(mark)
            logger.info("audit_savepoint_discarded", extra={"records": dropped})

    def after_transaction_end(self, session: Session, transaction) -> None:
        if transaction.parent is not None:
            return
        _savepoint_marks(session).clear()
        # root transaction ended without a successful drain: rollback or close
        pending = pending_changes(session)
        if pending:
            logger.info("audit_cycle_discarded", extra={"records": len(pending)})
            pending.clear()
