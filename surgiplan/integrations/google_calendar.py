"""
Google Calendar v3 adapter for the calendar oracle.

Every request carries a bounded timeout; transport errors, timeouts and
non-2xx responses surface as ``ExternalServiceError``. Obtaining and
refreshing the OAuth access token is handled outside this service; the
adapter is given a token (or a callable returning one).
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone as dt_timezone
from typing import Any, Callable
from urllib.parse import quote

import httpx

from surgiplan.core.exceptions import ExternalServiceError
from surgiplan.integrations.calendar import BusyInterval, new_event_id

logger = logging.getLogger(__name__)

GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"


def _rfc3339(dt: datetime) -> str:
    return dt.astimezone(dt_timezone.utc).isoformat().replace('+00:00', 'Z')


def _parse_rfc3339(value: str) -> datetime:
    return datetime.fromisoformat(value.replace('Z', '+00:00'))


class GoogleCalendarOracle:
    service_name = 'google_calendar'

    def __init__(
        self,
        access_token: str | Callable[[], str] = '',
        timeout: float = 10.0,
        base_url: str = GOOGLE_CALENDAR_API,
        transport: httpx.BaseTransport | None = None,
    ):
        self._access_token = access_token
        self._client = httpx.Client(
            base_url=base_url,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    def _headers(self) -> dict[str, str]:
        token = self._access_token() if callable(self._access_token) else self._access_token
        return {"Authorization": f"Bearer {token}"}

    def _request(self, method: str, url: str, *, allow: tuple[int, ...] = (), **kwargs) -> httpx.Response:
        try:
            response = self._client.request(method, url, headers=self._headers(), **kwargs)
        except httpx.TimeoutException as exc:
            raise ExternalServiceError(self.service_name, f'{method} {url} timed out') from exc
        except httpx.HTTPError as exc:
            raise ExternalServiceError(self.service_name, f'{method} {url} failed: {exc}') from exc

        if response.status_code >= 400 and response.status_code not in allow:
            logger.error('Google Calendar %s %s -> %s: %s', method, url, response.status_code, response.text)
            raise ExternalServiceError(
                self.service_name,
                f'{method} {url} returned HTTP {response.status_code}',
            )
        return response

    def query_free_busy(self, calendar_id: str, start: datetime, end: datetime) -> list[BusyInterval]:
        response = self._request(
            'POST',
            '/freeBusy',
            json={
                "timeMin": _rfc3339(start),
                "timeMax": _rfc3339(end),
                "items": [{"id": calendar_id}],
            },
        )
        calendar = response.json().get("calendars", {}).get(calendar_id, {})
        if calendar.get("errors"):
            raise ExternalServiceError(
                self.service_name,
                f'free/busy unavailable for {calendar_id}: {calendar["errors"]}',
            )
        return [
            BusyInterval(start=_parse_rfc3339(b["start"]), end=_parse_rfc3339(b["end"]))
            for b in calendar.get("busy", [])
        ]

    def create_event(
        self,
        calendar_id: str,
        summary: str,
        start: datetime,
        end: datetime,
        metadata: dict[str, Any] | None = None,
        *,
        event_id: str | None = None,
    ) -> str:
        metadata = metadata or {}
        event_id = event_id or new_event_id()
        body = {
            "id": event_id,
            "summary": summary,
            "start": {"dateTime": _rfc3339(start), "timeZone": "UTC"},
            "end": {"dateTime": _rfc3339(end), "timeZone": "UTC"},
            "reminders": {"useDefault": True},
            "extendedProperties": {
                "private": {key: str(value) for key, value in metadata.items()},
            },
        }
        if metadata.get("description"):
            body["description"] = metadata["description"]
        if metadata.get("location"):
            body["location"] = metadata["location"]

        response = self._request('POST', f'/calendars/{quote(calendar_id)}/events', json=body)
        created_id = response.json().get("id") or event_id
        logger.info('Google Calendar event created: %s', created_id)
        return created_id

    def update_event(self, calendar_id: str, event_id: str, patch: dict[str, Any]) -> None:
        body = dict(patch)
        for key in ("start", "end"):
            if isinstance(body.get(key), datetime):
                body[key] = {"dateTime": _rfc3339(body[key]), "timeZone": "UTC"}
        self._request('PATCH', f'/calendars/{quote(calendar_id)}/events/{quote(event_id)}', json=body)

    def delete_event(self, calendar_id: str, event_id: str) -> None:
        # 404/410: never created or already deleted, both count as deleted
        response = self._request(
            'DELETE',
            f'/calendars/{quote(calendar_id)}/events/{quote(event_id)}',
            allow=(404, 410),
        )
        logger.info('Google Calendar event deleted: %s (HTTP %s)', event_id, response.status_code)
