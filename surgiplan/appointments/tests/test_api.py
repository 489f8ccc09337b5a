from __future__ import annotations

from datetime import time
from unittest import mock

from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient

from surgiplan.appointments.models import Booking

from .support import SchedulingTestMixin, vienna


class AppointmentsApiTests(SchedulingTestMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.add_template(self.surgeon, day_of_week=0, start=time(9, 0), end=time(12, 0))
        self.client = APIClient()
        self.client.defaults['HTTP_HOST'] = 'localhost'
        self.client.force_authenticate(user=self.admin)

    def create(self, **overrides):
        payload = {
            'resource_id': self.surgeon.id,
            'location_id': self.location.id,
            'start_time': vienna(9, 0).isoformat(),
            'duration_minutes': 30,
            'event_type': 'AESTHETIC_CONSULT',
            'patient_id': 99999,
        }
        payload.update(overrides)
        return self.client.post('/api/bookings/', payload, format='json')

    def test_requires_authentication(self):
        anonymous = APIClient()
        r = anonymous.get('/api/availability/check/')
        self.assertIn(r.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))

    def test_availability_check(self):
        r = self.client.get('/api/availability/check/', {
            'resource_id': self.surgeon.id,
            'location_id': self.location.id,
            'start': vienna(11, 45).isoformat(),
            'end': vienna(12, 15).isoformat(),
        })
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertFalse(r.data['available'])
        self.assertEqual(r.data['reason'], 'outside working hours')

    def test_available_slots(self):
        r = self.client.get('/api/availability/slots/', {
            'resource_id': self.surgeon.id,
            'location_id': self.location.id,
            'start_date': '2030-01-07',
            'end_date': '2030-01-07',
            'duration_minutes': 60,
        })
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual([s['start'] for s in r.data['slots']], [
            '2030-01-07T08:00:00Z', '2030-01-07T09:00:00Z', '2030-01-07T10:00:00Z',
        ])

    def test_create_then_conflict_then_cancel(self):
        r = self.create()
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        booking_id = r.data['id']

        r = self.create(start_time=vienna(9, 15).isoformat())
        self.assertEqual(r.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(r.data['detail'], 'slot unavailable')
        self.assertFalse(r.data['retryable'])

        r = self.client.post(f'/api/bookings/{booking_id}/cancel/')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['status'], Booking.STATUS_CANCELLED)

    def test_invalid_duration_is_bad_request(self):
        r = self.create(duration_minutes=20)
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(r.data['field'], 'duration_minutes')

    def test_calendar_outage_is_service_unavailable(self):
        self.calendar.fail_free_busy = True
        with mock.patch('surgiplan.appointments.services.booking.get_calendar_oracle', return_value=self.calendar):
            r = self.create()
        self.assertEqual(r.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertTrue(r.data['retryable'])
        self.assertEqual(Booking.objects.count(), 0)

    def test_reschedule_and_unknown_booking(self):
        booking_id = self.create().data['id']
        r = self.client.post(f'/api/bookings/{booking_id}/reschedule/', {
            'start_time': vienna(10, 0).isoformat(),
        }, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)

        r = self.client.post('/api/bookings/999999/cancel/')
        self.assertEqual(r.status_code, status.HTTP_404_NOT_FOUND)
