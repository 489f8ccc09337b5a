"""
Availability resolution.

A resource is free for ``[start, end)`` at a location when, in order:

1. the interval lies inside one of its active weekly template windows for
   that weekday, evaluated in the location's wall-clock time,
2. no non-cancelled booking of the resource (primary or secondary
   participant) at the location intersects the interval,
3. the external calendar reports no busy period in the interval.

The first failing check decides the reason. All intervals are half-open:
``a.start < b.end and b.start < a.end``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone as dt_timezone
from typing import Iterator

from django.conf import settings
from django.core.cache import cache
from django.db.models import Q
from django.utils import timezone

from surgiplan.appointments.models import AvailabilityTemplate, Booking
from surgiplan.core.exceptions import Conflict, InvalidSchedulingData
from surgiplan.integrations.calendar import CalendarOracle, get_calendar_oracle

logger = logging.getLogger(__name__)

REASON_OUTSIDE_HOURS = 'outside working hours'
REASON_CONFLICT = 'conflict'
REASON_CALENDAR = 'calendar conflict'


def iso_z(dt: datetime) -> str:
    return dt.astimezone(dt_timezone.utc).isoformat().replace('+00:00', 'Z')


# ---------------------------------------------------------------------------
# Template Store
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TemplateWindow:
    start: time
    end: time

    def contains(self, start: time, end: time) -> bool:
        return self.start <= start and end <= self.end


def _template_cache_key(resource_id: int, location_id: int) -> str:
    return f'surgiplan:templates:{resource_id}:{location_id}'


def _load_windows(resource_id: int, location_id: int) -> dict[int, list[TemplateWindow]]:
    windows: dict[int, list[TemplateWindow]] = {}
    rows = (
        AvailabilityTemplate.objects.filter(
            resource_id=resource_id,
            location_id=location_id,
            active=True,
        )
        .order_by('day_of_week', 'start_time', 'id')
        .values_list('day_of_week', 'start_time', 'end_time')
    )
    for weekday, start, end in rows:
        windows.setdefault(weekday, []).append(TemplateWindow(start=start, end=end))
    return windows


def get_template_windows(resource_id: int, location_id: int, weekday: int) -> list[TemplateWindow]:
    """Active template windows of a resource at a location for one weekday (0=Monday)."""
    ttl = getattr(settings, 'SURGIPLAN_TEMPLATE_CACHE_TTL', 60)
    if not ttl:
        return _load_windows(resource_id, location_id).get(weekday, [])

    key = _template_cache_key(resource_id, location_id)
    windows = cache.get(key)
    if windows is None:
        windows = _load_windows(resource_id, location_id)
        cache.set(key, windows, ttl)
    return windows.get(weekday, [])


def invalidate_template_cache(resource_id: int, location_id: int) -> None:
    cache.delete(_template_cache_key(resource_id, location_id))


# ---------------------------------------------------------------------------
# Booking Conflict Checker
# ---------------------------------------------------------------------------

class BookingConflictChecker:
    """Finds non-cancelled bookings of a resource that intersect an interval."""

    def overlapping(self, resource_id: int, location_id: int, start: datetime, end: datetime,
                    *, exclude_booking_id: int | None = None):
        qs = (
            Booking.objects.filter(
                Q(resource_id=resource_id) | Q(secondary_resource_id=resource_id),
                location_id=location_id,
                start_time__lt=end,
                end_time__gt=start,
            )
            .exclude(status=Booking.STATUS_CANCELLED)
            .order_by('start_time', 'id')
        )
        if exclude_booking_id is not None:
            qs = qs.exclude(id=exclude_booking_id)
        return qs

    def find_conflicts(
        self,
        resource_id: int,
        location_id: int,
        start: datetime,
        end: datetime,
        *,
        exclude_booking_id: int | None = None,
    ) -> list[Conflict]:
        conflicts: list[Conflict] = []
        for booking in self.overlapping(
            resource_id, location_id, start, end, exclude_booking_id=exclude_booking_id,
        ):
            conflicts.append(Conflict(
                type='booking_conflict',
                resource_id=resource_id,
                booking_id=booking.id,
                start=iso_z(booking.start_time),
                end=iso_z(booking.end_time),
                message=f'Resource has overlapping booking #{booking.id}',
            ))
        return conflicts

    def has_conflict(self, resource_id: int, location_id: int, start: datetime, end: datetime,
                     *, exclude_booking_id: int | None = None) -> bool:
        return self.overlapping(
            resource_id, location_id, start, end, exclude_booking_id=exclude_booking_id,
        ).exists()


# ---------------------------------------------------------------------------
# Availability Resolver
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Availability:
    available: bool
    reason: str | None = None
    conflicts: tuple[Conflict, ...] = ()

    def __bool__(self) -> bool:
        return self.available

    def to_dict(self) -> dict:
        result = {'available': self.available, 'reason': self.reason}
        if self.conflicts:
            result['conflicts'] = [c.to_dict() for c in self.conflicts]
        return result


@dataclass(frozen=True)
class TimeSlot:
    start: datetime
    end: datetime

    def to_dict(self) -> dict:
        return {'start': iso_z(self.start), 'end': iso_z(self.end)}


def validate_interval(start: datetime, end: datetime) -> None:
    if start is None or end is None:
        raise InvalidSchedulingData('start and end are required', field='start_time')
    if timezone.is_naive(start) or timezone.is_naive(end):
        raise InvalidSchedulingData('start and end must be timezone-aware', field='start_time')
    if end <= start:
        raise InvalidSchedulingData('end must be after start', field='end_time')


class AvailabilityResolver:
    def __init__(
        self,
        calendar: CalendarOracle | None = None,
        conflict_checker: BookingConflictChecker | None = None,
    ):
        self.calendar = calendar if calendar is not None else get_calendar_oracle()
        self.conflict_checker = conflict_checker or BookingConflictChecker()

    def within_template(self, resource, location, start: datetime, end: datetime) -> bool:
        tz = location.tzinfo
        local_start = start.astimezone(tz)
        local_end = end.astimezone(tz)
        if local_start.date() != local_end.date():
            return False
        windows = get_template_windows(resource.id, location.id, local_start.weekday())
        return any(w.contains(local_start.time(), local_end.time()) for w in windows)

    def check_availability(
        self,
        resource,
        location,
        start: datetime,
        end: datetime,
        event_type=None,
        *,
        exclude_booking_id: int | None = None,
    ) -> Availability:
        """Is ``resource`` free for ``[start, end)`` at ``location``?

        Returns a negative ``Availability`` for expected outcomes; calendar
        faults propagate as ``ExternalServiceError``.
        """
        validate_interval(start, end)

        if not self.within_template(resource, location, start, end):
            return Availability(False, REASON_OUTSIDE_HOURS, (
                Conflict(type='outside_working_hours', resource_id=resource.id,
                         start=iso_z(start), end=iso_z(end)),
            ))

        conflicts = self.conflict_checker.find_conflicts(
            resource.id, location.id, start, end, exclude_booking_id=exclude_booking_id,
        )
        if conflicts:
            return Availability(False, REASON_CONFLICT, tuple(conflicts))

        calendar_id = getattr(resource, 'calendar_id', '')
        if calendar_id:
            busy = [
                b for b in self.calendar.query_free_busy(calendar_id, start, end)
                if b.start < end and start < b.end
            ]
            if busy:
                return Availability(False, REASON_CALENDAR, tuple(
                    Conflict(type='calendar_conflict', resource_id=resource.id,
                             start=iso_z(b.start), end=iso_z(b.end),
                             message='Busy in external calendar')
                    for b in busy
                ))

        logger.debug(
            'Resource %s free at %s %s-%s (%s)',
            resource.id, location.code, iso_z(start), iso_z(end),
            getattr(event_type, 'code', event_type),
        )
        return Availability(True)

    def get_available_slots(
        self,
        resource,
        location,
        start_date: date,
        end_date: date,
        duration_minutes: int,
        event_type=None,
    ) -> SlotSequence:
        if duration_minutes <= 0:
            raise InvalidSchedulingData('duration_minutes must be positive', field='duration_minutes')
        if start_date > end_date:
            raise InvalidSchedulingData('start_date must be on or before end_date', field='start_date')
        if event_type is not None:
            event_type.validate_duration(duration_minutes)
        return SlotSequence(self, resource, location, start_date, end_date, duration_minutes, event_type)


@dataclass
class SlotSequence:
    """Free slots in ascending start order.

    Lazy and restartable: every iteration walks the template windows again
    and re-checks each candidate.
    """
    resolver: AvailabilityResolver
    resource: object
    location: object
    start_date: date
    end_date: date
    duration_minutes: int
    event_type: object = None
    _step: timedelta = field(init=False, repr=False)

    def __post_init__(self):
        self._step = timedelta(minutes=self.duration_minutes)

    def _candidates(self, day: date) -> list[tuple[datetime, datetime]]:
        tz = self.location.tzinfo
        candidates = set()
        for window in get_template_windows(self.resource.id, self.location.id, day.weekday()):
            slot_start = datetime.combine(day, window.start, tzinfo=tz).astimezone(dt_timezone.utc)
            window_end = datetime.combine(day, window.end, tzinfo=tz).astimezone(dt_timezone.utc)
            # UTC steps: slots keep their length across DST changes
            while slot_start + self._step <= window_end:
                candidates.add((slot_start, slot_start + self._step))
                slot_start += self._step
        return sorted(candidates)

    def __iter__(self) -> Iterator[TimeSlot]:
        day = self.start_date
        while day <= self.end_date:
            for start, end in self._candidates(day):
                availability = self.resolver.check_availability(
                    self.resource, self.location, start, end, self.event_type,
                )
                if availability.available:
                    yield TimeSlot(start=start, end=end)
            day += timedelta(days=1)
