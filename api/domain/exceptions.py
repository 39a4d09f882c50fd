# SPDX-License-Identifier: Apache-2.0

"""
Exception taxonomy for scheduling operations.

Each exception carries the error type and status code a transport layer
would use to render it.
"""

from typing import List, Optional


class SchedulingException(Exception):
    """Base class for scheduling engine exceptions."""

    def __init__(self, message: str, status_code: int = 500, error_type: str = "scheduling-error"):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_type = error_type


class InvalidCadence(SchedulingException):
    """Raised when a cadence tag is not recognized."""

    def __init__(self, cadence):
        super().__init__(
            f"Cannot generate schedule: unrecognized cadence '{cadence}'",
            400,
            "invalid-cadence"
        )
        self.cadence = cadence


class InvalidRange(SchedulingException):
    """Raised by callers when a recurrence plan ends before it starts."""

    def __init__(self, start_date, end_date):
        super().__init__(
            f"Recurrence end date {end_date} is before start date {start_date}",
            400,
            "invalid-range"
        )
        self.start_date = start_date
        self.end_date = end_date


class InvalidStatus(SchedulingException):
    """Raised when a status does not belong to the occurrence kind."""

    def __init__(self, kind, status):
        kind = getattr(kind, "value", kind)
        super().__init__(f"Invalid status '{status}' for {kind} occurrence", 400, "invalid-status")
        self.kind = kind
        self.status = status


class OccurrenceNotFound(SchedulingException):
    """Raised when an occurrence does not exist in the caller's organization."""

    def __init__(self, kind, occurrence_id: str):
        kind = getattr(kind, "value", kind)
        super().__init__(f"{kind} occurrence not found: {occurrence_id}", 404, "resource-not-found")
        self.occurrence_id = occurrence_id


class FinancialEditNotAllowed(SchedulingException):
    """Raised when a payment amount is touched without the financial edit privilege."""

    def __init__(self, message: str = "Financial edit privilege is required"):
        super().__init__(message, 403, "insufficient-permissions")


class PaidAmountImmutable(SchedulingException):
    """Raised when changing the amount of a paid payment."""

    def __init__(self, occurrence_id: str):
        super().__init__(f"Amount of paid payment {occurrence_id} cannot change", 409, "resource-conflict")
        self.occurrence_id = occurrence_id


class PartialWriteFailure(SchedulingException):
    """Raised when a batch write failed; nothing from the batch was kept."""

    def __init__(self, operation: str, cause: Optional[Exception] = None,
                 cleanup_errors: Optional[List[str]] = None):
        super().__init__("Nothing was saved, please retry", 503, "partial-write-failure")
        self.operation = operation
        self.cause = cause
        self.cleanup_errors = cleanup_errors or []
