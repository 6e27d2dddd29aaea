"""
Custom exceptions for service layer.

Provides specific exception types for business logic errors
that can be translated to appropriate HTTP responses.
"""

from typing import Optional


class ServiceError(Exception):
    """Base exception for service layer errors."""
    pass


class NotFoundError(ServiceError):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: any):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} {identifier} not found")


class ConflictError(ServiceError):
    """Raised when an operation conflicts with existing state."""

    def __init__(
        self,
        message: str,
        existing_guid: Optional[str] = None,
    ):
        self.message = message
        self.existing_guid = existing_guid  # GUID format: rec_xxx
        super().__init__(message)


class ValidationError(ServiceError):
    """Raised when input validation fails."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.message = message
        self.field = field
        super().__init__(message)


class InvalidRuleError(ValidationError):
    """Raised when a recurrence rule is malformed or contradictory.

    Detected before any write, so a failed parse never leaves partial state.
    """

    def __init__(self, message: str, rule_text: Optional[str] = None):
        self.rule_text = rule_text
        super().__init__(
            f"Invalid recurrence rule: {message}",
            field="recurrence_rule",
        )


class TransactionFailureError(ServiceError):
    """Raised when the persistence layer fails during a multi-step mutation.

    The transaction has been rolled back when this is raised; stored state is
    unchanged from before the attempted mutation.
    """

    def __init__(self, operation: str, cause: Optional[Exception] = None):
        self.operation = operation
        self.cause = cause
        self.message = f"Transaction failed during {operation}"
        if cause is not None:
            self.message = f"{self.message}: {cause}"
        super().__init__(self.message)
