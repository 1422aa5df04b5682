"""Audit application layer: collect changes during flush, drain them after commit."""

from entity_audit.application.collector import ChangeCollector
from entity_audit.application.normalizer import ValueNormalizer
from entity_audit.application.writer import AuditWriter, WriteResult

__all__ = ["AuditWriter", "ChangeCollector", "ValueNormalizer", "WriteResult"]
