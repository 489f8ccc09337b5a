from __future__ import annotations

import json
from datetime import datetime, timezone as dt_timezone

import httpx
from django.test import SimpleTestCase, override_settings

from surgiplan.core.exceptions import ExternalServiceError
from surgiplan.integrations.calendar import NullCalendarOracle, build_calendar_oracle
from surgiplan.integrations.google_calendar import GoogleCalendarOracle

START = datetime(2030, 1, 7, 8, 0, tzinfo=dt_timezone.utc)
END = datetime(2030, 1, 7, 11, 0, tzinfo=dt_timezone.utc)


class GoogleCalendarOracleTests(SimpleTestCase):
    def oracle(self, handler):
        self.requests = []

        def record(request):
            self.requests.append(request)
            return handler(request)

        return GoogleCalendarOracle(access_token='token-1', transport=httpx.MockTransport(record))

    def test_free_busy_returns_busy_intervals(self):
        oracle = self.oracle(lambda request: httpx.Response(200, json={
            'calendars': {'dr@example.com': {'busy': [
                {'start': '2030-01-07T09:00:00Z', 'end': '2030-01-07T09:30:00Z'},
            ]}},
        }))
        busy = oracle.query_free_busy('dr@example.com', START, END)

        self.assertEqual(len(busy), 1)
        self.assertEqual(busy[0].start, datetime(2030, 1, 7, 9, 0, tzinfo=dt_timezone.utc))
        request = self.requests[0]
        self.assertEqual(request.url.path, '/calendar/v3/freeBusy')
        self.assertEqual(request.headers['Authorization'], 'Bearer token-1')
        body = json.loads(request.content)
        self.assertEqual(body['timeMin'], '2030-01-07T08:00:00Z')
        self.assertEqual(body['items'], [{'id': 'dr@example.com'}])

    def test_free_busy_calendar_errors_raise(self):
        oracle = self.oracle(lambda request: httpx.Response(200, json={
            'calendars': {'dr@example.com': {'errors': [{'reason': 'notFound'}]}},
        }))
        with self.assertRaises(ExternalServiceError):
            oracle.query_free_busy('dr@example.com', START, END)

    def test_create_event_sends_client_side_id(self):
        oracle = self.oracle(lambda request: httpx.Response(200, json={'id': json.loads(request.content)['id']}))
        event_id = oracle.create_event(
            'dr@example.com', 'Facelift Surgery', START, END,
            {'event_type': 'FACELIFT', 'description': 'note'}, event_id='abc123',
        )

        self.assertEqual(event_id, 'abc123')
        body = json.loads(self.requests[0].content)
        self.assertEqual(body['id'], 'abc123')
        self.assertEqual(body['description'], 'note')
        self.assertEqual(body['extendedProperties']['private']['event_type'], 'FACELIFT')

    def test_update_event_converts_datetimes(self):
        oracle = self.oracle(lambda request: httpx.Response(200, json={}))
        oracle.update_event('dr@example.com', 'abc123', {'start': START, 'end': END})

        request = self.requests[0]
        self.assertEqual(request.method, 'PATCH')
        self.assertEqual(json.loads(request.content)['start'], {'dateTime': '2030-01-07T08:00:00Z', 'timeZone': 'UTC'})

    def test_delete_tolerates_missing_event(self):
        oracle = self.oracle(lambda request: httpx.Response(410))
        oracle.delete_event('dr@example.com', 'abc123')
        self.assertEqual(self.requests[0].method, 'DELETE')

    def test_http_error_and_timeout_become_external_service_errors(self):
        oracle = self.oracle(lambda request: httpx.Response(500, text='backend error'))
        with self.assertRaises(ExternalServiceError):
            oracle.delete_event('dr@example.com', 'abc123')

        def timeout(request):
            raise httpx.ReadTimeout('timed out', request=request)

        oracle = self.oracle(timeout)
        with self.assertRaises(ExternalServiceError) as ctx:
            oracle.create_event('dr@example.com', 'x', START, END)
        self.assertTrue(ctx.exception.retryable)


class CalendarFactoryTests(SimpleTestCase):
    def test_builds_backend_from_settings(self):
        oracle = build_calendar_oracle({
            'BACKEND': 'surgiplan.integrations.google_calendar.GoogleCalendarOracle',
            'OPTIONS': {'access_token': 't', 'timeout': 2.0},
        })
        self.assertIsInstance(oracle, GoogleCalendarOracle)

    @override_settings(SURGIPLAN_CALENDAR={'BACKEND': 'surgiplan.integrations.calendar.NullCalendarOracle'})
    def test_null_backend_is_always_free(self):
        oracle = build_calendar_oracle()
        self.assertIsInstance(oracle, NullCalendarOracle)
        self.assertEqual(oracle.query_free_busy('x', START, END), [])
        self.assertTrue(oracle.create_event('x', 'summary', START, END))
