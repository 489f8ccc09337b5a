from __future__ import annotations

from unittest import mock

from django.test import TestCase

from surgiplan.core.exceptions import (
    AvailabilityConflictError,
    Conflict,
    ConsistencyError,
    DependencyNotMetError,
    ExternalServiceError,
    InvalidSchedulingData,
    InvalidStatusTransition,
    NotFound,
)
from surgiplan.core.models import AuditLog, Location, Role, User
from surgiplan.core.utils import log_patient_action
from surgiplan.core.views import practice_error_response


class HealthTests(TestCase):
    def test_health_needs_no_authentication(self):
        r = self.client.get('/api/health/', HTTP_HOST='localhost')
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json(), {'status': 'ok'})


class ErrorResponseTests(TestCase):
    def test_status_codes(self):
        cases = [
            (NotFound('Booking', 1), 404),
            (InvalidSchedulingData('bad', field='start_time'), 400),
            (InvalidStatusTransition(model='Task', current='COMPLETED', requested='PENDING'), 400),
            (AvailabilityConflictError('slot unavailable'), 409),
            (DependencyNotMetError(task_id=3, missing=['CONSULTATION']), 409),
            (ExternalServiceError('google_calendar', 'timed out'), 503),
            (ConsistencyError('overlap'), 500),
        ]
        for exc, expected in cases:
            with self.subTest(exc=type(exc).__name__):
                self.assertEqual(practice_error_response(exc).status_code, expected)

    def test_conflict_payload(self):
        exc = AvailabilityConflictError('slot unavailable', [
            Conflict(type='booking_conflict', resource_id=2, booking_id=5, start='2030-01-07T08:00:00Z'),
        ])
        self.assertEqual(practice_error_response(exc).data, {
            'detail': 'slot unavailable',
            'retryable': False,
            'conflicts': [{
                'type': 'booking_conflict',
                'resource_id': 2,
                'booking_id': 5,
                'start': '2030-01-07T08:00:00Z',
            }],
        })

    def test_consistency_error_hides_details(self):
        r = practice_error_response(ConsistencyError('Booking 3 overlaps booking 4'))
        self.assertEqual(r.data, {'detail': 'internal consistency error'})


class AuthTests(TestCase):
    def setUp(self):
        User.objects.create_user(username='doc', password='pass1234')

    def test_login_returns_token_pair_and_token_authenticates(self):
        r = self.client.post(
            '/api/auth/login/',
            {'username': 'doc', 'password': 'pass1234'},
            content_type='application/json',
            HTTP_HOST='localhost',
        )
        self.assertEqual(r.status_code, 200)
        self.assertIn('refresh', r.json())

        access = r.json()['access']
        r = self.client.get(
            '/api/surgeries/1/readiness/',
            HTTP_HOST='localhost',
            HTTP_AUTHORIZATION=f'Bearer {access}',
        )
        self.assertEqual(r.status_code, 404)

    def test_access_token_carries_user_id(self):
        import jwt
        from django.conf import settings

        r = self.client.post(
            '/api/auth/login/',
            {'username': 'doc', 'password': 'pass1234'},
            content_type='application/json',
            HTTP_HOST='localhost',
        )
        decoded = jwt.decode(
            r.json()['access'],
            settings.SIMPLE_JWT['SIGNING_KEY'],
            algorithms=[settings.SIMPLE_JWT['ALGORITHM']],
        )
        # numeric claims may come back as strings
        self.assertEqual(int(decoded['user_id']), User.objects.get(username='doc').id)

    def test_api_requires_authentication(self):
        r = self.client.get('/api/surgeries/1/readiness/', HTTP_HOST='localhost')
        self.assertEqual(r.status_code, 401)


class AuditLogTests(TestCase):
    def setUp(self):
        role = Role.objects.create(name=Role.SURGEON, label='Surgeon')
        self.user = User.objects.create_user(username='doc', password='pass1234', role=role)

    def test_writes_entry_with_role(self):
        log_patient_action(self.user, 'booking_create', 42, meta={'booking_id': 1})

        entry = AuditLog.objects.get()
        self.assertEqual(entry.user, self.user)
        self.assertEqual(entry.role_name, 'surgeon')
        self.assertEqual(entry.patient_id, 42)
        self.assertEqual(entry.meta, {'booking_id': 1})

    def test_system_actions_have_no_user(self):
        log_patient_action(None, 'surgery_auto_block', 42)
        entry = AuditLog.objects.get()
        self.assertIsNone(entry.user)
        self.assertEqual(entry.role_name, '')

    def test_write_failure_does_not_raise(self):
        with mock.patch.object(AuditLog.objects, 'create', side_effect=RuntimeError('db down')):
            log_patient_action(self.user, 'booking_create', 42)
        self.assertFalse(AuditLog.objects.exists())


class LocationTests(TestCase):
    def test_tzinfo(self):
        location = Location.objects.create(code='VIE', name='Vienna', time_zone='Europe/Vienna')
        self.assertEqual(location.tzinfo.key, 'Europe/Vienna')
