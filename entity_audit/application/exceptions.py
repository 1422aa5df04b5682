"""Application-layer exceptions. Do not reuse domain exceptions."""

from entity_audit.domain.exceptions import AuditError


class ApplicationError(AuditError):
    """Base for all application-layer errors."""


class PersistenceError(ApplicationError):
    """Raised when the audit drain transaction fails. Domain data already committed is unaffected."""


class InvalidPaginationError(ApplicationError):
    """Raised when page or page_size is below 1."""


class UnknownEntityError(ApplicationError):
    """Raised when the read side is asked about a class that is not audited."""
