"""
Anesthesiologist matching for surgical event types.

Candidates are filtered to active users whose default location is the
requested one and tried in input order; the first one the resolver
reports free wins. No load balancing or preference weighting is applied.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterable

from surgiplan.core.models import Role, User

from .availability import AvailabilityResolver

logger = logging.getLogger(__name__)


def get_anesthesiologist_pool() -> list[User]:
    return list(
        User.objects.filter(is_active=True, role__name=Role.ANESTHESIOLOGIST)
        .select_related('role', 'default_location')
        .order_by('id')
    )


class AnesthesiologistMatcher:
    def __init__(self, resolver: AvailabilityResolver):
        self.resolver = resolver

    def eligible(self, candidate_pool: Iterable[User], location) -> list[User]:
        return [
            candidate for candidate in candidate_pool
            if candidate.is_active and candidate.default_location_id == location.id
        ]

    def find_available(
        self,
        candidate_pool: Iterable[User] | None,
        location,
        start: datetime,
        duration_minutes: int,
        *,
        exclude_booking_id: int | None = None,
    ) -> User | None:
        """First free candidate at ``location`` for the interval, or None.

        None means the booking cannot proceed; it is not a transient state.
        """
        if candidate_pool is None:
            candidate_pool = get_anesthesiologist_pool()
        end = start + timedelta(minutes=duration_minutes)

        for candidate in self.eligible(candidate_pool, location):
            availability = self.resolver.check_availability(
                candidate, location, start, end, exclude_booking_id=exclude_booking_id,
            )
            if availability.available:
                return candidate
            logger.debug('Anesthesiologist %s unavailable: %s', candidate.id, availability.reason)

        logger.info('No anesthesiologist available at %s from %s (%s min)', location.code, start, duration_minutes)
        return None
