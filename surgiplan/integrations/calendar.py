"""
External calendar collaborator.

The core talks to a third-party calendar only through ``CalendarOracle``:
free/busy queries plus event CRUD mirroring bookings. The concrete backend
is selected by ``settings.SURGIPLAN_CALENDAR`` and built once per process;
services receive it explicitly.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from typing import Any, Protocol

from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BusyInterval:
    start: datetime
    end: datetime


class CalendarOracle(Protocol):
    """Free/busy oracle plus event CRUD.

    Implementations raise ``ExternalServiceError`` on failure or timeout.
    ``create_event`` accepts a caller-chosen ``event_id`` so that a create
    whose outcome is unknown (timeout) can still be compensated by a delete.
    """

    def query_free_busy(self, calendar_id: str, start: datetime, end: datetime) -> list[BusyInterval]:
        ...

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
        ...

    def update_event(self, calendar_id: str, event_id: str, patch: dict[str, Any]) -> None:
        ...

    def delete_event(self, calendar_id: str, event_id: str) -> None:
        ...


def new_event_id() -> str:
    # Google accepts base32hex ids (0-9, a-v); a uuid4 hex string qualifies.
    return uuid.uuid4().hex


class NullCalendarOracle:
    """Backend used when no external calendar is connected.

    Reports every calendar as free and accepts event writes without
    mirroring them anywhere.
    """

    def __init__(self, **options):
        self.options = options

    def query_free_busy(self, calendar_id, start, end):
        return []

    def create_event(self, calendar_id, summary, start, end, metadata=None, *, event_id=None):
        event_id = event_id or new_event_id()
        logger.debug('Calendar disabled, not mirroring event %s (%s)', event_id, summary)
        return event_id

    def update_event(self, calendar_id, event_id, patch):
        return None

    def delete_event(self, calendar_id, event_id):
        return None


def build_calendar_oracle(config: dict[str, Any] | None = None) -> CalendarOracle:
    config = config or settings.SURGIPLAN_CALENDAR
    backend = import_string(config['BACKEND'])
    return backend(**config.get('OPTIONS', {}))


@lru_cache(maxsize=None)
def get_calendar_oracle() -> CalendarOracle:
    """Process-wide calendar oracle built from settings."""
    oracle = build_calendar_oracle()
    logger.info('Calendar oracle: %s', type(oracle).__name__)
    return oracle
