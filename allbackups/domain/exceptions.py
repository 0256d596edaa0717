"""Domain-specific exceptions."""


class DomainError(Exception):
    """Base exception for domain errors."""

    pass


class NotAuthenticatedError(DomainError):
    """Raised when the request carries no valid host session."""

    pass


class AccessDeniedError(DomainError):
    """Raised when the user lacks a required capability."""

    def __init__(self, capability: str, context_id: int):
        self.capability = capability
        self.context_id = context_id
        super().__init__(
            f"Missing capability '{capability}' in context {context_id}"
        )


class FeatureDisabledError(DomainError):
    """Raised when the report is switched off in configuration."""

    pass


class ContextNotFoundError(DomainError):
    """Raised when a context id does not resolve to a usable scope."""

    pass


class BackupDestinationNotSetError(DomainError):
    """Raised when the automated backup listing is requested without a destination."""

    pass
