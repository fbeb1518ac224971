"""
Application error hierarchy.

Services raise one of four kinds, which the API maps onto status codes:
``NotFoundError`` (404), ``ConflictError`` (409, with a machine-readable
``code``), ``ValidationError`` (400) and ``UnauthorizedError`` (403).
Storage failures surface as ``DatabaseError`` and are reported as 500s.

Every error carries a developer ``message``, structured ``details`` for the
log and the response body, and a ``user_message`` safe to show to staff.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import exc as sa_exc


class VolunteerEvaluationError(Exception):
    """Base class for errors raised by the service."""

    default_user_message = "Something went wrong. Please try again."

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
        return f"{type(self).__name__}: {self.message}"


# validation


class ValidationError(VolunteerEvaluationError):
    """
    Input rejected before anything was written.

    Example:
        >>> ValidationError("evaluation_month", "must be between 1 and 12", 13).user_message
        'Invalid evaluation month: must be between 1 and 12'
    """

    def __init__(
        self, field: str, message: str, value: Any = None, details: dict[str, Any] | None = None
    ):
        self.field = field
        self.value = value
        super().__init__(
            f"Validation failed for field '{field}': {message}",
            details=details or {"field": field, "value": value},
            user_message=f"Invalid {_label(field)}: {message}",
        )


class IncompleteFreezeDataError(ValidationError):
    """A freeze needs a reason, a start date and an end date."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(
            "freeze",
            f"Freeze data is incomplete, missing: {', '.join(missing)}",
            details={"missing": missing},
        )


class DuplicateCriterionScoreError(ValidationError):
    def __init__(self, criteria_ids: list[int]):
        self.criteria_ids = criteria_ids
        super().__init__(
            "criteria_scores", f"Criteria scored more than once: {criteria_ids}", criteria_ids
        )


# not found


class NotFoundError(VolunteerEvaluationError):
    entity = "record"

    def __init__(self, record_id: Any, details: dict[str, Any] | None = None):
        self.record_id = record_id
        super().__init__(
            f"{self.entity.capitalize()} with ID {record_id} not found",
            details=details or {"entity": self.entity, "id": record_id},
            user_message=f"This {self.entity} no longer exists. Refresh the page to see current data.",
        )


class VolunteerNotFoundError(NotFoundError):
    entity = "volunteer"


class CriterionNotFoundError(NotFoundError):
    entity = "criterion"


class EvaluationNotFoundError(NotFoundError):
    entity = "evaluation"


class AlertNotFoundError(NotFoundError):
    entity = "alert"


# conflict


class ConflictError(VolunteerEvaluationError):
    """The request is valid but clashes with what is already stored."""

    code = "CONFLICT"
    default_user_message = "This change clashes with existing data."

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, details=details)


class DuplicateEvaluationError(ConflictError):
    code = "EVALUATION_EXISTS"
    default_user_message = "This volunteer has already been evaluated for that month."

    def __init__(self, volunteer_id: int, month: int, year: int):
        super().__init__(
            f"Volunteer {volunteer_id} already has an evaluation for {month:02d}/{year}",
            details={"volunteer_id": volunteer_id, "month": month, "year": year},
        )


class FreezeLimitExceededError(ConflictError):
    code = "FREEZE_LIMIT_EXCEEDED"
    default_user_message = "This volunteer has no freezes left for the year."

    def __init__(self, volunteer_id: int, year: int, limit: int):
        super().__init__(
            f"Volunteer {volunteer_id} already used {limit} freezes in {year}",
            details={"volunteer_id": volunteer_id, "year": year, "limit": limit},
        )


class AlertAlreadyOpenError(ConflictError):
    code = "ALERT_ALREADY_OPEN"
    default_user_message = "An open alert of this type already exists for this volunteer."

    def __init__(self, volunteer_id: int, alert_type: str):
        super().__init__(
            f"Volunteer {volunteer_id} already has an unresolved '{alert_type}' alert",
            details={"volunteer_id": volunteer_id, "alert_type": alert_type},
        )


class AlertAlreadyResolvedError(ConflictError):
    code = "ALERT_ALREADY_RESOLVED"
    default_user_message = "This alert was already resolved."

    def __init__(self, alert_id: int):
        super().__init__(f"Alert {alert_id} is already resolved", details={"alert_id": alert_id})


class EvaluationApprovedError(ConflictError):
    code = "EVALUATION_APPROVED"
    default_user_message = "Approved evaluations can only be changed by an admin."

    def __init__(self, evaluation_id: int, message: str | None = None):
        super().__init__(
            message or f"Evaluation {evaluation_id} is already approved",
            details={"evaluation_id": evaluation_id},
        )


class CriterionInUseError(ConflictError):
    code = "CRITERION_IN_USE"
    default_user_message = "Evaluations already score this criterion; delete with force to remove them too."

    def __init__(self, criterion_id: int, usage_count: int):
        self.usage_count = usage_count
        super().__init__(
            f"Criterion {criterion_id} is used by {usage_count} evaluation details",
            details={"criterion_id": criterion_id, "usage_count": usage_count},
        )


class DuplicateRecordError(ConflictError):
    """A unique column such as a phone number or criterion name is already taken."""

    code = "DUPLICATE_RECORD"

    def __init__(self, field: str, value: Any):
        self.field = field
        super().__init__(
            f"A record with {field}={value!r} already exists",
            details={"field": field, "value": value},
        )
        self.user_message = f"This {_label(field)} is already in use."


# authorization


class UnauthorizedError(VolunteerEvaluationError):
    default_user_message = "Your role does not allow this action."

    def __init__(self, message: str, operation: str | None = None):
        self.operation = operation
        super().__init__(message, details={"operation": operation})


# storage


class DatabaseError(VolunteerEvaluationError):
    default_user_message = "The database could not complete the request. Please try again shortly."

    def __init__(self, message: str, operation: str, details: dict[str, Any] | None = None):
        self.operation = operation
        super().__init__(
            f"Database error during {operation}: {message}",
            details={"operation": operation, **(details or {})},
        )


class DatabaseUnavailableError(DatabaseError):
    default_user_message = "The database is unreachable right now. Please try again shortly."


class DataIntegrityError(DatabaseError):
    """A constraint the repositories did not translate into a conflict."""

    default_user_message = "The data refers to records that changed meanwhile. Refresh and retry."


def handle_database_error(e: Exception, operation: str = "database operation") -> DatabaseError:
    """
    Wrap a SQLAlchemy exception in the matching DatabaseError.

    Example:
        >>> try:
        ...     session.commit()
        ... except SQLAlchemyError as e:
        ...     raise handle_database_error(e, "approve_evaluation") from e
    """
    if isinstance(e, DatabaseError):
        return e
    if isinstance(e, sa_exc.IntegrityError):
        return DataIntegrityError(str(e.orig), operation)
    if isinstance(e, (sa_exc.OperationalError, sa_exc.InterfaceError, sa_exc.DisconnectionError)):
        return DatabaseUnavailableError(str(e), operation)
    return DatabaseError(str(e), operation, {"error_type": type(e).__name__})


def create_user_friendly_error_message(error: Exception) -> str:
    if isinstance(error, VolunteerEvaluationError):
        return error.user_message
    if isinstance(error, (ValueError, TypeError, KeyError)):
        return "Some of the submitted data could not be processed. Check the form and retry."
    return VolunteerEvaluationError.default_user_message


def log_error_details(error: Exception, context: dict[str, Any] | None = None) -> dict[str, Any]:
    """Fields attached to the log record when an operation fails."""
    details: dict[str, Any] = {
        "error_type": type(error).__name__,
        "error_message": str(error),
        "context": context or {},
    }
    if isinstance(error, VolunteerEvaluationError):
        details["user_message"] = error.user_message
        details["error_details"] = error.details
    return details


def _label(field: str) -> str:
    return field.replace("_", " ")
