"""
Event type catalog.

A closed, typed catalog: every bookable procedure is an ``EventType`` keyed
by ``EventTypeCode``. Unknown codes and durations outside an entry's
allowed set are rejected at the boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from surgiplan.core.exceptions import InvalidSchedulingData


class EventCategory(str, Enum):
    CONSULTATION = 'CONSULTATION'
    MINIMAL_INVASIVE = 'MINIMAL_INVASIVE'
    SURGICAL = 'SURGICAL'


class EventTypeCode(str, Enum):
    TELE_CONSULT = 'TELE_CONSULT'
    AESTHETIC_CONSULT = 'AESTHETIC_CONSULT'
    INJECTABLE = 'INJECTABLE'
    FACELIFT = 'FACELIFT'
    RHINOPLASTY = 'RHINOPLASTY'
    BLEPHAROPLASTY = 'BLEPHAROPLASTY'


@dataclass(frozen=True)
class EventType:
    code: EventTypeCode
    name: str
    category: EventCategory
    allowed_durations: frozenset[int]
    anesthesiologist_flag: bool = False
    equipment: tuple[str, ...] = ()
    color: str = '#039BE5'

    @property
    def requires_anesthesiologist(self) -> bool:
        # the surgical category is authoritative over the per-entry flag
        return self.category is EventCategory.SURGICAL or self.anesthesiologist_flag

    @property
    def is_surgical(self) -> bool:
        return self.category is EventCategory.SURGICAL

    def validate_duration(self, minutes: int) -> int:
        if minutes not in self.allowed_durations:
            allowed = ', '.join(str(d) for d in sorted(self.allowed_durations))
            raise InvalidSchedulingData(
                f'Duration {minutes} min is not allowed for {self.code.value} (allowed: {allowed})',
                field='duration_minutes',
            )
        return minutes


EVENT_TYPES: dict[EventTypeCode, EventType] = {
    EventTypeCode.TELE_CONSULT: EventType(
        code=EventTypeCode.TELE_CONSULT,
        name='Telephone Consultation',
        category=EventCategory.CONSULTATION,
        allowed_durations=frozenset({15, 30}),
        color='#039BE5',
    ),
    EventTypeCode.AESTHETIC_CONSULT: EventType(
        code=EventTypeCode.AESTHETIC_CONSULT,
        name='Aesthetic Medicine Consultation',
        category=EventCategory.CONSULTATION,
        allowed_durations=frozenset({30, 45}),
        color='#7986CB',
    ),
    EventTypeCode.INJECTABLE: EventType(
        code=EventTypeCode.INJECTABLE,
        name='Injectable Treatment',
        category=EventCategory.MINIMAL_INVASIVE,
        allowed_durations=frozenset({15, 30}),
        equipment=('Botox Kit',),
        color='#33B679',
    ),
    EventTypeCode.FACELIFT: EventType(
        code=EventTypeCode.FACELIFT,
        name='Facelift Surgery',
        category=EventCategory.SURGICAL,
        allowed_durations=frozenset({180, 240}),
        anesthesiologist_flag=True,
        equipment=('PTL Kit', 'Standard Surgery Set'),
        color='#D50000',
    ),
    EventTypeCode.RHINOPLASTY: EventType(
        code=EventTypeCode.RHINOPLASTY,
        name='Rhinoplasty',
        category=EventCategory.SURGICAL,
        allowed_durations=frozenset({120, 180}),
        anesthesiologist_flag=True,
        equipment=('Standard Surgery Set',),
        color='#E67C73',
    ),
    EventTypeCode.BLEPHAROPLASTY: EventType(
        code=EventTypeCode.BLEPHAROPLASTY,
        name='Blepharoplasty',
        category=EventCategory.SURGICAL,
        allowed_durations=frozenset({90, 120}),
        anesthesiologist_flag=True,
        equipment=('Standard Surgery Set',),
        color='#F4511E',
    ),
}

EVENT_TYPE_CHOICES = [(code.value, event_type.name) for code, event_type in EVENT_TYPES.items()]


def get_event_type(code: str | EventTypeCode) -> EventType:
    try:
        return EVENT_TYPES[EventTypeCode(code)]
    except ValueError:
        raise InvalidSchedulingData(f'Unknown event type {code!r}', field='event_type') from None
