"""Domain exceptions raised while preparing audit records. No infrastructure."""


class AuditError(Exception):
    """Base for all audit errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class UnsupportedTypeError(AuditError):
    """Raised when a field type has no normalization rule and no fallback conversion."""


class IdentityResolutionError(AuditError):
    """Raised when an entity's primary key cannot be resolved directly or through its identity relation."""
