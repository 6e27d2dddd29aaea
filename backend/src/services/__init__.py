"""
Service layer for business logic.

Exports the pure scheduling engine (rule parsing, materialization, exception
overlay) and the service error types. Database-backed services
(RecurringSeriesService, SeriesStore, LocationService) are imported from
their own modules by the API layer.
"""

from backend.src.services.exceptions import (
    ServiceError,
    NotFoundError,
    ConflictError,
    ValidationError,
    InvalidRuleError,
    TransactionFailureError,
)
from backend.src.services.rule_parser import (
    DEFAULT_OCCURRENCE_COUNT,
    Count,
    Frequency,
    Rule,
    RuleParser,
    Until,
    Weekday,
)
from backend.src.services.materializer import Occurrence, build_occurrence, materialize
from backend.src.services.exception_overlay import (
    ExceptionOverlay,
    ResolvedOccurrence,
    TemplateDefaults,
)

__all__ = [
    "ServiceError",
    "NotFoundError",
    "ConflictError",
    "ValidationError",
    "InvalidRuleError",
    "TransactionFailureError",
    # Recurrence engine
    "DEFAULT_OCCURRENCE_COUNT",
    "Count",
    "Frequency",
    "Rule",
    "RuleParser",
    "Until",
    "Weekday",
    "Occurrence",
    "build_occurrence",
    "materialize",
    "ExceptionOverlay",
    "ResolvedOccurrence",
    "TemplateDefaults",
]
