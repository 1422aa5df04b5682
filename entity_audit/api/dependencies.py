"""FastAPI dependency injection: audit reader, correlation_id."""

from fastapi import Request

from entity_audit.infrastructure.database.reader import AuditReader

_reader: AuditReader | None = None


def configure_reader(reader: AuditReader) -> None:
    """Install the reader used by the audit routes. The host application knows its mapped classes."""
    global _reader
    _reader = reader


def get_audit_reader() -> AuditReader:
    if _reader is None:
        raise RuntimeError("Audit reader is not configured; call configure_reader() first")
    return _reader


def get_correlation_id(request: Request) -> str:
    """Extract correlation_id from request.state (set by middleware)."""
    return getattr(request.state, "correlation_id", "") or ""
