"""
Error taxonomy shared by the scheduling and readiness services.

Services raise these; views translate them to DRF responses. Boolean
results (``check_availability``, ``validate_readiness``) are reserved for
expected domain outcomes, faults always surface as one of these types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Conflict:
    """A single reason a requested interval is not free."""
    type: str  # 'booking_conflict', 'calendar_conflict', 'outside_working_hours'
    resource_id: int | None = None
    booking_id: int | None = None
    start: str | None = None
    end: str | None = None
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result = {'type': self.type}
        if self.resource_id is not None:
            result['resource_id'] = self.resource_id
        if self.booking_id is not None:
            result['booking_id'] = self.booking_id
        if self.start:
            result['start'] = self.start
        if self.end:
            result['end'] = self.end
        if self.message:
            result['message'] = self.message
        return result


class PracticeError(Exception):
    """Base exception for all scheduling and readiness errors."""

    def __init__(self, message: str = ''):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {'detail': self.message or str(self)}


class NotFound(PracticeError):
    """Raised when a referenced entity does not exist."""

    def __init__(self, model: str, pk: Any):
        self.model = model
        self.pk = pk
        super().__init__(f'{model} {pk} not found')


class InvalidSchedulingData(PracticeError):
    """
    Raised for bad input: unknown event type, disallowed duration,
    malformed interval. Never retried.
    """

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        result = {'detail': str(self)}
        if self.field:
            result['field'] = self.field
        return result


class InvalidStatusTransition(InvalidSchedulingData):
    """Raised when a status change is not allowed by the state machine."""

    def __init__(self, *, model: str, current: str, requested: str):
        self.model = model
        self.current = current
        self.requested = requested
        super().__init__(
            f'{model} cannot move from {current} to {requested}',
            field='status',
        )


class AvailabilityConflictError(PracticeError):
    """
    The requested time cannot be booked. An expected outcome: callers may
    offer alternative slots.
    """

    def __init__(self, reason: str, conflicts: list[Conflict] | None = None):
        self.reason = reason
        self.conflicts = conflicts or []
        super().__init__(reason)

    def to_dict(self) -> dict[str, Any]:
        result = {'detail': self.reason, 'retryable': False}
        if self.conflicts:
            result['conflicts'] = [c.to_dict() for c in self.conflicts]
        return result


class DependencyNotMetError(PracticeError):
    """Raised when a task is completed before the tasks it depends on."""

    def __init__(self, *, task_id: int, missing: list[str]):
        self.task_id = task_id
        self.missing = missing
        super().__init__('dependencies not met')

    def to_dict(self) -> dict[str, Any]:
        return {
            'detail': str(self),
            'task_id': self.task_id,
            'missing': self.missing,
        }


class SurgeryNotReadyError(PracticeError):
    """Raised when READY is requested but the readiness gate fails."""

    def __init__(self, *, surgery_id: int, report: dict[str, bool]):
        self.surgery_id = surgery_id
        self.report = report
        super().__init__('Surgery is not ready - requirements not met')

    def to_dict(self) -> dict[str, Any]:
        return {
            'detail': str(self),
            'surgery_id': self.surgery_id,
            'readiness': self.report,
        }


class ExternalServiceError(PracticeError):
    """
    An external collaborator (calendar, equipment) failed or timed out.
    Retried by the caller at the transport layer, never silently here.
    """

    retryable = True

    def __init__(self, service: str, message: str):
        self.service = service
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            'detail': str(self),
            'service': self.service,
            'retryable': self.retryable,
        }


class ConsistencyError(PracticeError):
    """
    An invariant was found violated (e.g. overlapping accepted bookings).
    Fatal; must be surfaced loudly.
    """
