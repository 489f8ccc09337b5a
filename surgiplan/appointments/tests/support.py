"""Shared fixtures for scheduling tests: fake calendar and a setup mixin."""

from __future__ import annotations

from datetime import datetime, time
from zoneinfo import ZoneInfo

from surgiplan.appointments.models import AvailabilityTemplate, Booking
from surgiplan.core.exceptions import ExternalServiceError
from surgiplan.core.models import Location, Role, User
from surgiplan.integrations.calendar import BusyInterval, new_event_id

VIENNA = ZoneInfo('Europe/Vienna')

# 2030-01-07 is a Monday
MONDAY = datetime(2030, 1, 7).date()


def vienna(hour: int, minute: int = 0, day=MONDAY) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=VIENNA)


class FakeCalendar:
    """In-memory calendar oracle recording every call."""

    service_name = 'fake_calendar'

    def __init__(self):
        self.busy: dict[str, list[BusyInterval]] = {}
        self.events: dict[tuple[str, str], dict] = {}
        self.deleted: list[tuple[str, str]] = []
        self.updated: list[tuple[str, str, dict]] = []
        self.fail_create = False
        self.fail_create_after_write = False
        self.fail_update = False
        self.fail_delete = False
        self.fail_free_busy = False

    def set_busy(self, calendar_id: str, start: datetime, end: datetime) -> None:
        self.busy.setdefault(calendar_id, []).append(BusyInterval(start=start, end=end))

    def query_free_busy(self, calendar_id, start, end):
        if self.fail_free_busy:
            raise ExternalServiceError(self.service_name, 'free/busy timed out')
        return [b for b in self.busy.get(calendar_id, []) if b.start < end and start < b.end]

    def create_event(self, calendar_id, summary, start, end, metadata=None, *, event_id=None):
        if self.fail_create:
            raise ExternalServiceError(self.service_name, 'create failed')
        event_id = event_id or new_event_id()
        self.events[(calendar_id, event_id)] = {
            'summary': summary,
            'start': start,
            'end': end,
            'metadata': metadata or {},
        }
        if self.fail_create_after_write:
            raise ExternalServiceError(self.service_name, 'create timed out')
        return event_id

    def update_event(self, calendar_id, event_id, patch):
        if self.fail_update:
            raise ExternalServiceError(self.service_name, 'update failed')
        self.updated.append((calendar_id, event_id, dict(patch)))
        event = self.events.get((calendar_id, event_id))
        if event is not None:
            event.update(patch)

    def delete_event(self, calendar_id, event_id):
        if self.fail_delete:
            raise ExternalServiceError(self.service_name, 'delete failed')
        self.deleted.append((calendar_id, event_id))
        self.events.pop((calendar_id, event_id), None)


class SchedulingTestMixin:
    """Roles, a Vienna location, one surgeon and two anesthesiologists."""

    def setUp(self):
        super().setUp()
        self.role_admin, _ = Role.objects.get_or_create(name=Role.ADMIN, defaults={'label': 'Administrator'})
        self.role_surgeon, _ = Role.objects.get_or_create(name=Role.SURGEON, defaults={'label': 'Surgeon'})
        self.role_anesthesiologist, _ = Role.objects.get_or_create(
            name=Role.ANESTHESIOLOGIST, defaults={'label': 'Anesthesiologist'},
        )

        self.location = Location.objects.create(code='VIE', name='Vienna Clinic', time_zone='Europe/Vienna')
        self.other_location = Location.objects.create(code='GRZ', name='Graz Clinic', time_zone='Europe/Vienna')

        self.admin = User.objects.create_user(
            username='admin_sched',
            password='admin123',
            email='admin_sched@test.local',
            role=self.role_admin,
        )
        self.surgeon = self.make_user('surgeon1', self.role_surgeon, calendar_id='surgeon1@calendar')
        self.anesthesiologist1 = self.make_user('anest1', self.role_anesthesiologist, calendar_id='anest1@calendar')
        self.anesthesiologist2 = self.make_user('anest2', self.role_anesthesiologist, calendar_id='anest2@calendar')

        self.calendar = FakeCalendar()

    def make_user(self, username, role, *, calendar_id='', location=None, is_active=True):
        return User.objects.create_user(
            username=username,
            password='pass1234',
            email=f'{username}@test.local',
            role=role,
            calendar_id=calendar_id,
            default_location=location or self.location,
            is_active=is_active,
        )

    def add_template(self, resource, day_of_week=0, start=time(8, 0), end=time(12, 0), location=None, active=True):
        return AvailabilityTemplate.objects.create(
            resource=resource,
            location=location or self.location,
            day_of_week=day_of_week,
            start_time=start,
            end_time=end,
            active=active,
        )

    def add_booking(self, resource, start, end, *, secondary=None, status=Booking.STATUS_SCHEDULED,
                    location=None, event_type_code='AESTHETIC_CONSULT'):
        return Booking.objects.create(
            resource=resource,
            secondary_resource=secondary,
            location=location or self.location,
            event_type_code=event_type_code,
            start_time=start,
            end_time=end,
            status=status,
        )
