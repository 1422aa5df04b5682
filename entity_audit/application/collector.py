"""Change collection: walk the host's pending mutations and build ordered change records."""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional

from entity_audit.application.diff_engine import DiffEngine
from entity_audit.application.normalizer import ValueNormalizer
from entity_audit.application.summarizer import EntitySummarizer
from entity_audit.application.unit_of_work import UnitOfWork
from entity_audit.domain.models.change import (
    ActionKind,
    ChangeRecord,
    EntityChange,
    FieldDiff,
    PendingChangeSet,
    RelationChange,
    RelationDiff,
)
from entity_audit.domain.models.mapping import CollectionChange
from entity_audit.governance.audit_policy import AuditPolicy

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _Cycle:
    """State of one prepare pass: the unit of work, its collaborators and the records built so far."""

    def __init__(
        self,
        uow: UnitOfWork,
        policy: AuditPolicy,
        normalizer: ValueNormalizer,
        actor: Optional[str],
        timestamp: datetime,
    ) -> None:
        self.uow = uow
        self.policy = policy
        self.normalizer = normalizer
        self.summarizer = EntitySummarizer(uow, normalizer)
        self.diff_engine = DiffEngine(policy, normalizer, self.summarizer)
        self.actor = actor
        self.timestamp = timestamp
        self.records: List[ChangeRecord] = []

    def is_audited(self, entity: Any) -> bool:
        return self.policy.is_audited(type(entity))


class ChangeCollector:
    """
    Prepare phase of the audit cycle. Read-only, no I/O of its own.
    Order per cycle: updates, insertions, deletions, collection deletions, collection updates.
    A cycle either contributes all of its records to the pending set or none of them.
    """

    def __init__(
        self,
        policy: AuditPolicy,
        normalizer: Optional[ValueNormalizer] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._policy = policy
        self._normalizer = normalizer or ValueNormalizer()
        self._clock = clock

    def collect(self, uow: UnitOfWork, pending: PendingChangeSet) -> List[ChangeRecord]:
        """Append this cycle's records to ``pending`` and return them."""
        cycle = _Cycle(
            uow,
            self._policy,
            self._normalizer,
            actor=self._policy.current_actor(),
            timestamp=self._clock(),
        )
        try:
            self._collect_updates(cycle)
            self._collect_insertions(cycle)
            self._collect_deletions(cycle)
            self._collect_collection_deletions(cycle)
            self._collect_collection_updates(cycle)
        except Exception:
            discarded = len(pending)
            pending.clear()
            logger.error(
                "audit_cycle_aborted",
                extra={"collected": len(cycle.records), "discarded_pending": discarded},
            )
            raise

        pending.extend(cycle.records)
        logger.debug(
            "audit_cycle_collected",
            extra={"records": len(cycle.records), "pending": len(pending)},
        )
        return cycle.records

    def _entity_change(self, cycle: _Cycle, action: ActionKind, entity: Any, diff: FieldDiff) -> EntityChange:
        meta = cycle.uow.metadata_for(entity)
        return EntityChange(
            action=action,
            table_name=meta.table_name,
            schema_name=meta.schema_name,
            subject_id=cycle.summarizer.identity(entity, meta),
            diff=diff,
            actor=cycle.actor,
            timestamp=cycle.timestamp,
        )

    def _collect_updates(self, cycle: _Cycle) -> None:
        for entity in cycle.uow.scheduled_updates():
            if not cycle.is_audited(entity):
                continue
            meta = cycle.uow.metadata_for(entity)
            diff = cycle.diff_engine.diff(meta, cycle.uow.changeset(entity))
            if not diff:
                continue
            cycle.records.append(self._entity_change(cycle, ActionKind.UPDATE, entity, diff))

    def _collect_insertions(self, cycle: _Cycle) -> None:
        for entity in cycle.uow.scheduled_insertions():
            if not cycle.is_audited(entity):
                continue
            meta = cycle.uow.metadata_for(entity)
            diff = cycle.diff_engine.diff(meta, cycle.uow.changeset(entity))
            cycle.records.append(self._entity_change(cycle, ActionKind.INSERT, entity, diff))

    def _collect_deletions(self, cycle: _Cycle) -> None:
        for entity in cycle.uow.scheduled_deletions():
            if not cycle.is_audited(entity):
                continue
            cycle.uow.materialize(entity)
            cycle.records.append(
                self._entity_change(cycle, ActionKind.DELETE, entity, self._snapshot(cycle, entity))
            )

    def _snapshot(self, cycle: _Cycle, entity: Any) -> FieldDiff:
        """Every own field of a deleted entity as old=current value, new=None."""
        meta = cycle.uow.metadata_for(entity)
        diff: FieldDiff = {}
        for field_name, value in cycle.uow.field_values(entity):
            if field_name in meta.embedded or meta.is_multi_valued_relation(field_name):
                continue
            if not cycle.policy.is_audited_field(meta.entity_class, field_name):
                continue
            mapping = meta.field_mapping(field_name)
            if mapping is not None:
                old = cycle.normalizer.normalize_field(mapping, value)
            elif meta.is_single_valued_relation(field_name):
                summary = cycle.summarizer.summarize(value)
                old = summary.label if summary is not None else None
            else:
                old = None if value is None else str(value)
            diff[field_name] = {"old": old, "new": None}
        return diff

    def _relation_change(
        self, cycle: _Cycle, action: ActionKind, collection: CollectionChange, element: Any
    ) -> RelationChange:
        owner = collection.owner
        meta = cycle.uow.metadata_for(owner)
        return RelationChange(
            action=action,
            table_name=meta.table_name,
            schema_name=meta.schema_name,
            subject_id=cycle.summarizer.identity(owner, meta),
            diff=RelationDiff(
                source=cycle.summarizer.summarize(owner),
                target=cycle.summarizer.summarize(element),
                table=collection.relation.join_table,
            ),
            actor=cycle.actor,
            timestamp=cycle.timestamp,
        )

    def _collect_collection_deletions(self, cycle: _Cycle) -> None:
        for collection in cycle.uow.scheduled_collection_deletions():
            if not cycle.is_audited(collection.owner):
                continue
            for element in collection.remaining:
                if not cycle.is_audited(element):
                    continue
                cycle.records.append(
                    self._relation_change(cycle, ActionKind.DISSOCIATE, collection, element)
                )

    def _collect_collection_updates(self, cycle: _Cycle) -> None:
        for collection in cycle.uow.scheduled_collection_updates():
            if not cycle.is_audited(collection.owner):
                continue
            for element in collection.added:
                if cycle.is_audited(element):
                    cycle.records.append(
                        self._relation_change(cycle, ActionKind.ASSOCIATE, collection, element)
                    )
            for element in collection.removed:
                if cycle.is_audited(element):
                    cycle.records.append(
                        self._relation_change(cycle, ActionKind.DISSOCIATE, collection, element)
                    )
