"""Field-level diffs for a single entity mutation."""

from typing import Any, Optional

from entity_audit.application.normalizer import ValueNormalizer
from entity_audit.application.summarizer import EntitySummarizer
from entity_audit.domain.models.change import FieldDiff, NormalizedValue
from entity_audit.domain.models.mapping import Changeset, EntityMetadata
from entity_audit.governance.audit_policy import AuditPolicy


class DiffEngine:
    """
    Builds a FieldDiff from a host changeset.
    Embedded composite fields are not traversed. Multi-valued relations never appear;
    they are reported as relation changes by the collector.
    """

    def __init__(
        self,
        policy: AuditPolicy,
        normalizer: ValueNormalizer,
        summarizer: EntitySummarizer,
    ) -> None:
        self._policy = policy
        self._normalizer = normalizer
        self._summarizer = summarizer

    def diff(self, meta: EntityMetadata, changeset: Changeset) -> FieldDiff:
        diff: FieldDiff = {}
        for field_name, (old, new) in changeset.items():
            if field_name in meta.embedded:
                continue
            if not self._policy.is_audited_field(meta.entity_class, field_name):
                continue
            values = self._compare(meta, field_name, old, new)
            if values is None:
                continue
            o, n = values
            if o != n:
                diff[field_name] = {"old": o, "new": n}
        return diff

    def _compare(
        self, meta: EntityMetadata, field_name: str, old: Any, new: Any
    ) -> Optional[tuple[NormalizedValue, NormalizedValue]]:
        mapping = meta.field_mapping(field_name)
        if mapping is not None:
            return (
                self._normalizer.normalize_field(mapping, old),
                self._normalizer.normalize_field(mapping, new),
            )
        if meta.is_single_valued_relation(field_name):
            o = self._summarizer.summarize(old)
            n = self._summarizer.summarize(new)
            return (
                o.to_dict() if o is not None else None,
                n.to_dict() if n is not None else None,
            )
        return None
