"""
Booking orchestration.

Creates, moves, cancels and deletes bookings together with their mirrored
external calendar events. Per booking the unit is:

    lock (resource, location, local day) rows
    -> availability check (surgeon, then anesthesiologist if required)
    -> calendar event(s) -> booking row -> overlap re-check
    -> commit

Any failure after a calendar write runs the compensating calendar action
before the original error propagates; the database side is rolled back by
``transaction.atomic``.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Iterable

from django.db import transaction

from surgiplan.appointments.catalog import EventType, get_event_type
from surgiplan.appointments.models import Booking, ScheduleLock
from surgiplan.core.exceptions import (
    AvailabilityConflictError,
    ConsistencyError,
    InvalidSchedulingData,
    InvalidStatusTransition,
    NotFound,
)
from surgiplan.core.models import Location, User
from surgiplan.core.utils import log_patient_action
from surgiplan.integrations.calendar import CalendarOracle, get_calendar_oracle, new_event_id

from .anesthesiologists import AnesthesiologistMatcher, get_anesthesiologist_pool
from .availability import AvailabilityResolver, iso_z, validate_interval

logger = logging.getLogger(__name__)

SLOT_UNAVAILABLE = 'slot unavailable'
NO_ANESTHESIOLOGIST = 'no anesthesiologist available'


def load_resource(resource_id: int, field: str = 'resource_id') -> User:
    resource = User.objects.select_related('role').filter(id=resource_id, is_active=True).first()
    if resource is None:
        raise InvalidSchedulingData(f'Resource with ID {resource_id} not found or inactive', field=field)
    return resource


def load_location(location_id: int) -> Location:
    location = Location.objects.filter(id=location_id, active=True).first()
    if location is None:
        raise InvalidSchedulingData(f'Location with ID {location_id} not found or inactive', field='location_id')
    return location


def _local_days(location: Location, start: datetime, end: datetime) -> list[date]:
    tz = location.tzinfo
    first = start.astimezone(tz).date()
    last = (end - timedelta(microseconds=1)).astimezone(tz).date()
    days = [first]
    while days[-1] < last:
        days.append(days[-1] + timedelta(days=1))
    return days


class BookingOrchestrator:
    def __init__(
        self,
        calendar: CalendarOracle | None = None,
        resolver: AvailabilityResolver | None = None,
        matcher: AnesthesiologistMatcher | None = None,
    ):
        self.calendar = calendar if calendar is not None else get_calendar_oracle()
        self.resolver = resolver or AvailabilityResolver(calendar=self.calendar)
        self.matcher = matcher or AnesthesiologistMatcher(self.resolver)

    # -----------------------------------------------------------------------
    # Locking
    # -----------------------------------------------------------------------

    def _lock(self, resource_ids: Iterable[int], location: Location, start: datetime, end: datetime) -> None:
        """Serialize bookings touching the same resources on the same local days.

        Must run inside ``transaction.atomic``. Rows are taken in (resource, day)
        order so two orchestrators never wait on each other crosswise.
        """
        resource_ids = sorted(set(resource_ids))
        days = _local_days(location, start, end)
        for resource_id in resource_ids:
            for day in days:
                ScheduleLock.objects.get_or_create(resource_id=resource_id, location=location, day=day)
        list(
            ScheduleLock.objects.select_for_update()
            .filter(resource_id__in=resource_ids, location=location, day__in=days)
            .order_by('resource_id', 'day')
        )

    def _verify_no_overlap(self, booking: Booking) -> None:
        checker = self.resolver.conflict_checker
        for resource_id in filter(None, (booking.resource_id, booking.secondary_resource_id)):
            if checker.has_conflict(
                resource_id, booking.location_id, booking.start_time, booking.end_time,
                exclude_booking_id=booking.id,
            ):
                logger.critical(
                    'Overlapping bookings for resource %s after insert of booking %s (%s-%s)',
                    resource_id, booking.id, iso_z(booking.start_time), iso_z(booking.end_time),
                )
                raise ConsistencyError(
                    f'Booking {booking.id} overlaps an accepted booking of resource {resource_id}'
                )

    # -----------------------------------------------------------------------
    # Calendar mirroring
    # -----------------------------------------------------------------------

    def _mirror(
        self,
        created: list[tuple[str, str]],
        resource: User,
        summary: str,
        start: datetime,
        end: datetime,
        metadata: dict,
    ) -> str:
        if not resource.calendar_id:
            return ''
        event_id = new_event_id()
        # recorded before the call: a timed-out create must still be compensated
        created.append((resource.calendar_id, event_id))
        return self.calendar.create_event(
            resource.calendar_id, summary, start, end, metadata, event_id=event_id,
        )

    def _compensate_created(self, created: list[tuple[str, str]]) -> None:
        for calendar_id, event_id in reversed(created):
            try:
                self.calendar.delete_event(calendar_id, event_id)
                logger.warning('Compensating delete of calendar event %s on %s', event_id, calendar_id)
            except Exception:
                logger.exception('Compensating delete of calendar event %s on %s failed', event_id, calendar_id)

    def _mirrors(self, booking: Booking) -> list[tuple[str, str]]:
        mirrors = []
        if booking.external_event_ref and booking.resource.calendar_id:
            mirrors.append((booking.resource.calendar_id, booking.external_event_ref))
        secondary = booking.secondary_resource
        if booking.secondary_external_event_ref and secondary is not None and secondary.calendar_id:
            mirrors.append((secondary.calendar_id, booking.secondary_external_event_ref))
        return mirrors

    # -----------------------------------------------------------------------
    # Operations
    # -----------------------------------------------------------------------

    def create_booking(
        self,
        resource_id: int,
        location_id: int,
        start: datetime,
        duration_minutes: int,
        event_type_code: str,
        notes: str = '',
        *,
        patient_id: int | None = None,
        user=None,
        candidate_pool: Iterable[User] | None = None,
    ) -> Booking:
        """Book ``resource_id`` at ``location_id`` and mirror it to the calendar(s).

        Raises ``InvalidSchedulingData`` for bad input,
        ``AvailabilityConflictError`` when the surgeon or every anesthesiologist
        is busy, ``ExternalServiceError`` when the calendar fails (after
        compensation).
        """
        event_type = get_event_type(event_type_code)
        event_type.validate_duration(duration_minutes)
        end = start + timedelta(minutes=duration_minutes) if start is not None else None
        validate_interval(start, end)

        surgeon = load_resource(resource_id)
        location = load_location(location_id)

        pool: list[User] = []
        if event_type.requires_anesthesiologist:
            pool = self.matcher.eligible(
                candidate_pool if candidate_pool is not None else get_anesthesiologist_pool(),
                location,
            )
            # a surgeon who is also in the pool cannot double as anesthesiologist
            pool = [candidate for candidate in pool if candidate.id != surgeon.id]

        created: list[tuple[str, str]] = []
        try:
            with transaction.atomic():
                self._lock([surgeon.id, *(c.id for c in pool)], location, start, end)

                availability = self.resolver.check_availability(surgeon, location, start, end, event_type)
                if not availability.available:
                    logger.info('Booking rejected for resource %s: %s', surgeon.id, availability.reason)
                    raise AvailabilityConflictError(SLOT_UNAVAILABLE, list(availability.conflicts))

                anesthesiologist = None
                if event_type.requires_anesthesiologist:
                    anesthesiologist = self.matcher.find_available(pool, location, start, duration_minutes)
                    if anesthesiologist is None:
                        raise AvailabilityConflictError(NO_ANESTHESIOLOGIST)

                booking = self._insert(
                    created, event_type, surgeon, anesthesiologist, location,
                    start, end, notes, patient_id,
                )
        except Exception:
            if created:
                self._compensate_created(created)
            raise

        logger.info(
            'Booking %s created: %s resource=%s secondary=%s %s-%s',
            booking.id, event_type.code.value, surgeon.id,
            booking.secondary_resource_id, iso_z(start), iso_z(end),
        )
        log_patient_action(user, 'booking_create', patient_id, meta={
            'booking_id': booking.id,
            'event_type': event_type.code.value,
        })
        return booking

    def _insert(
        self,
        created: list[tuple[str, str]],
        event_type: EventType,
        surgeon: User,
        anesthesiologist: User | None,
        location: Location,
        start: datetime,
        end: datetime,
        notes: str,
        patient_id: int | None,
    ) -> Booking:
        metadata = {
            'event_type': event_type.code.value,
            'location': location.name,
            'description': notes,
        }
        external_ref = self._mirror(created, surgeon, event_type.name, start, end, metadata)
        secondary_ref = ''
        if anesthesiologist is not None:
            secondary_ref = self._mirror(
                created, anesthesiologist, f'{event_type.name} (anesthesia)', start, end, metadata,
            )

        booking = Booking.objects.create(
            resource=surgeon,
            secondary_resource=anesthesiologist,
            location=location,
            patient_id=patient_id,
            event_type_code=event_type.code.value,
            start_time=start,
            end_time=end,
            notes=notes or '',
            external_event_ref=external_ref,
            secondary_external_event_ref=secondary_ref,
        )
        self._verify_no_overlap(booking)
        return booking

    def _get_for_update(self, booking_id: int) -> Booking:
        booking = (
            Booking.objects.select_for_update()
            .select_related('resource', 'secondary_resource', 'location')
            .filter(id=booking_id)
            .first()
        )
        if booking is None:
            raise NotFound('Booking', booking_id)
        return booking

    def cancel_booking(self, booking_id: int, *, user=None) -> Booking:
        """Delete the mirrored calendar event(s), then flip status to cancelled.

        If a calendar delete fails the booking is left untouched and the
        ``ExternalServiceError`` propagates; the call is safe to retry.
        """
        with transaction.atomic():
            booking = self._get_for_update(booking_id)
            if booking.status == Booking.STATUS_CANCELLED:
                return booking
            if booking.status == Booking.STATUS_COMPLETED:
                raise InvalidStatusTransition(
                    model='Booking', current=booking.status, requested=Booking.STATUS_CANCELLED,
                )

            for calendar_id, event_id in self._mirrors(booking):
                self.calendar.delete_event(calendar_id, event_id)

            booking.status = Booking.STATUS_CANCELLED
            booking.save(update_fields=['status', 'updated_at'])

        logger.info('Booking %s cancelled', booking.id)
        log_patient_action(user, 'booking_cancel', booking.patient_id, meta={'booking_id': booking.id})
        return booking

    def reschedule_booking(
        self,
        booking_id: int,
        start: datetime,
        duration_minutes: int | None = None,
        *,
        user=None,
    ) -> Booking:
        """Move a booking, keeping its surgeon and anesthesiologist.

        Calendar events are patched first; if anything fails afterwards the
        patches are reverted before the error propagates.
        """
        patched: list[tuple[str, str]] = []
        previous: dict = {}
        try:
            with transaction.atomic():
                booking = self._get_for_update(booking_id)
                if booking.status in (Booking.STATUS_CANCELLED, Booking.STATUS_COMPLETED):
                    raise InvalidStatusTransition(
                        model='Booking', current=booking.status, requested='rescheduled',
                    )

                event_type = get_event_type(booking.event_type_code)
                if duration_minutes is None:
                    duration_minutes = booking.duration_minutes
                event_type.validate_duration(duration_minutes)
                end = start + timedelta(minutes=duration_minutes) if start is not None else None
                validate_interval(start, end)

                participants = [booking.resource]
                if booking.secondary_resource is not None:
                    participants.append(booking.secondary_resource)
                self._lock([p.id for p in participants], booking.location, start, end)

                for participant in participants:
                    availability = self.resolver.check_availability(
                        participant, booking.location, start, end, event_type,
                        exclude_booking_id=booking.id,
                    )
                    if not availability.available:
                        reason = SLOT_UNAVAILABLE if participant.id == booking.resource_id else NO_ANESTHESIOLOGIST
                        logger.info('Reschedule of booking %s rejected: %s', booking.id, availability.reason)
                        raise AvailabilityConflictError(reason, list(availability.conflicts))

                previous = {'start': booking.start_time, 'end': booking.end_time}
                for calendar_id, event_id in self._mirrors(booking):
                    patched.append((calendar_id, event_id))
                    self.calendar.update_event(calendar_id, event_id, {'start': start, 'end': end})

                booking.start_time = start
                booking.end_time = end
                booking.save(update_fields=['start_time', 'end_time', 'updated_at'])
                self._verify_no_overlap(booking)
        except Exception:
            for calendar_id, event_id in reversed(patched):
                try:
                    self.calendar.update_event(calendar_id, event_id, previous)
                    logger.warning('Reverted calendar event %s on %s', event_id, calendar_id)
                except Exception:
                    logger.exception('Reverting calendar event %s on %s failed', event_id, calendar_id)
            raise

        logger.info('Booking %s rescheduled to %s-%s', booking.id, iso_z(start), iso_z(end))
        log_patient_action(user, 'booking_reschedule', booking.patient_id, meta={
            'booking_id': booking.id,
            'start_time': iso_z(start),
        })
        return booking

    def delete_booking(self, booking_id: int, *, user=None) -> None:
        """Hard delete, mirrored to the calendar first.

        The booking row stays if a calendar delete fails.
        """
        with transaction.atomic():
            booking = self._get_for_update(booking_id)
            for calendar_id, event_id in self._mirrors(booking):
                self.calendar.delete_event(calendar_id, event_id)
            patient_id = booking.patient_id
            booking.delete()

        logger.info('Booking %s deleted', booking_id)
        log_patient_action(user, 'booking_delete', patient_id, meta={'booking_id': booking_id})
