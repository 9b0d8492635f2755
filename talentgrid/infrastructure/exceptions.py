"""
Exception hierarchy for the evaluation service.

Every error carries two messages: ``message`` for logs and ``user_message``
for API clients, plus the HTTP status the web layer answers with. Pure
scoring functions never raise these; the service and persistence layers do.
"""

from __future__ import annotations

from typing import Any


class TalentGridError(Exception):
    """Base exception for all application errors."""

    http_status = 400
    default_user_message = "An unexpected error occurred. Please try again."

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        user_message: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.user_message = user_message or self.default_user_message

    def __str__(self) -> str:
        return f"{self.__class__.__name__}: {self.message}"

    def response_detail(self) -> Any:
        """Body of the ``detail`` field in an HTTP error response."""
        return self.user_message


class ValidationError(TalentGridError):
    """A single invalid field."""

    def __init__(self, field: str, message: str, value: Any = None):
        self.field = field
        self.value = value
        super().__init__(
            message=f"Validation failed for field '{field}': {message}",
            details={"field": field, "value": value},
            user_message=f"Invalid {field.replace('_', ' ')}: {message}",
        )
        # Bare reason, without the field prefix
        self.reason = message

    def as_dict(self) -> dict[str, Any]:
        return {"field": self.field, "message": self.reason, "value": self.value}


class MultipleValidationError(TalentGridError):
    """Several fields failed validation at once."""

    default_user_message = "Please correct the following errors and try again."

    def __init__(self, errors: list[ValidationError]):
        self.validation_errors = list(errors)
        summary = "; ".join(f"{e.field}: {e.reason}" for e in self.validation_errors)
        super().__init__(
            message=f"Multiple validation errors: {summary}",
            details={"errors": [e.as_dict() for e in self.validation_errors]},
        )

    def response_detail(self) -> Any:
        return {"message": self.user_message, "errors": self.details["errors"]}


class BulkValidationError(TalentGridError):
    """A bulk upload rejected before anything was written."""

    http_status = 422
    default_user_message = "Some scores are invalid. Nothing was saved; fix them and resubmit."

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__(
            message=f"Bulk upload rejected with {len(self.errors)} validation error(s)",
            details={"errors": self.errors},
        )

    def response_detail(self) -> Any:
        return {"message": self.user_message, "errors": self.errors}


class DatabaseError(TalentGridError):
    """A failed database operation."""

    default_user_message = "A database error occurred. Please try again in a moment."

    def __init__(self, message: str, operation: str, details: dict[str, Any] | None = None):
        self.operation = operation
        super().__init__(
            message=f"Database error during {operation}: {message}",
            details=details or {"operation": operation},
        )


class ConnectionError(DatabaseError):
    """The database could not be reached."""

    http_status = 503
    default_user_message = "Unable to connect to the database. Please try again."

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, operation="connection", details=details)


INTEGRITY_MESSAGES = {
    "unique": "This record already exists.",
    "foreign_key": "Referenced record no longer exists. Please refresh and try again.",
}


class IntegrityError(DatabaseError):
    """A unique, foreign key or check constraint was violated."""

    default_user_message = "Data integrity error. Please check your input and try again."

    def __init__(
        self,
        message: str,
        constraint: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.constraint = constraint
        super().__init__(
            message, operation="integrity_check", details=details or {"constraint": constraint}
        )
        self.user_message = INTEGRITY_MESSAGES.get(constraint or "", self.default_user_message)


class NotFoundError(TalentGridError):
    """Base for lookups of a record that does not exist."""

    http_status = 404
    entity = "Record"

    def __init__(self, record_id: Any):
        self.record_id = record_id
        super().__init__(
            message=f"{self.entity} with ID {record_id} not found",
            details={"id": record_id},
            user_message=f"The selected {self.entity.lower()} could not be found.",
        )


class EmployeeNotFoundError(NotFoundError):
    entity = "Employee"


class CycleNotFoundError(NotFoundError):
    entity = "Cycle"


class EvaluationNotFoundError(NotFoundError):
    entity = "Evaluation"


class ConsensusMeetingNotFoundError(NotFoundError):
    entity = "Consensus meeting"


class DevelopmentPlanNotFoundError(NotFoundError):
    entity = "Development plan"


class CycleClosedError(TalentGridError):
    """Writing evaluations into a closed cycle."""

    default_user_message = "This evaluation cycle is closed and can no longer be edited."

    def __init__(self, cycle_id: int):
        self.cycle_id = cycle_id
        super().__init__(f"Cycle {cycle_id} is closed for editing", details={"cycle_id": cycle_id})


class ConfigurationError(TalentGridError):
    """Invalid settings, usually from the environment."""

    http_status = 500
    default_user_message = "Configuration error. Please check your settings."

    def __init__(self, message: str, config_key: str | None = None):
        self.config_key = config_key
        super().__init__(message, details={"config_key": config_key})


class BusinessLogicError(TalentGridError):
    """A rule of the evaluation workflow was broken; the message is shown as is."""

    def __init__(self, message: str, rule: str | None = None):
        self.rule = rule
        super().__init__(message, details={"rule": rule}, user_message=message)


# Substrings of driver messages, checked in order
_DATABASE_ERROR_PATTERNS: list[tuple[tuple[str, ...], Any]] = [
    (("unique constraint", "duplicate"), lambda e, op: IntegrityError(e, constraint="unique")),
    (("foreign key", "foreign_key"), lambda e, op: IntegrityError(e, constraint="foreign_key")),
    (("check constraint",), lambda e, op: IntegrityError(e, constraint="check")),
    (("connection", "timeout"), lambda e, op: ConnectionError(e)),
]


def handle_database_error(e: Exception, operation: str = "database operation") -> DatabaseError:
    """
    Translate a driver or SQLAlchemy exception into a ``DatabaseError``.

    Example:
        >>> try:
        ...     session.flush()
        ... except SQLAlchemyError as e:
        ...     raise handle_database_error(e, "evaluation.upsert") from e
    """
    text = str(e)
    lowered = text.lower()
    for needles, build in _DATABASE_ERROR_PATTERNS:
        if any(needle in lowered for needle in needles):
            return build(text, operation)
    return DatabaseError(text, operation)


_BUILTIN_MESSAGES: list[tuple[type[Exception], str]] = [
    (KeyError, "Required information is missing. Please check your input."),
    (TypeError, "Incorrect data type provided. Please check your input format."),
    (ValueError, "Invalid input provided. Please check your data and try again."),
]


def create_user_friendly_error_message(error: Exception) -> str:
    """
    Message suitable for an API client, for any exception.

    Example:
        >>> create_user_friendly_error_message(CycleNotFoundError(7))
        'The selected cycle could not be found.'
    """
    if isinstance(error, TalentGridError):
        return error.user_message
    for error_type, message in _BUILTIN_MESSAGES:
        if isinstance(error, error_type):
            return message
    return "An unexpected error occurred. Please try again or contact support."


def log_error_details(error: Exception, context: dict[str, Any] | None = None) -> dict[str, Any]:
    """``extra`` mapping for logging a failure with the structured formatter."""
    details: dict[str, Any] = {
        "error_type": type(error).__name__,
        "error_message": str(error),
        "context": context or {},
    }
    if isinstance(error, TalentGridError):
        details["user_message"] = error.user_message
        details["error_details"] = error.details
    return details
