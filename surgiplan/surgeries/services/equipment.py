"""
Equipment collaborator.

``ReservationEquipmentService`` keeps reservations in the local database:
each kit named by the surgery's event type is matched to an active item at
the surgery's location that is neither under unresolved maintenance nor
reserved by another surgery that day.
"""

from __future__ import annotations

import logging
from datetime import date
from functools import lru_cache
from typing import Protocol

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils.module_loading import import_string

from surgiplan.appointments.catalog import get_event_type
from surgiplan.core.exceptions import NotFound
from surgiplan.surgeries.models import Equipment, EquipmentMaintenance, EquipmentReservation, Surgery

logger = logging.getLogger(__name__)


class EquipmentService(Protocol):
    def reserve(self, surgery_id: int, date: date, location) -> list[EquipmentReservation]:
        ...

    def check_readiness(self, surgery_id: int) -> bool:
        ...

    def start_preparation(self, surgery_id: int) -> None:
        ...

    def verify(self, surgery_id: int) -> None:
        ...

    def release(self, surgery_id: int) -> None:
        ...


def surgery_day(surgery: Surgery) -> date:
    return surgery.surgery_date.astimezone(surgery.location.tzinfo).date()


def _under_maintenance(equipment_id: int, day: date) -> bool:
    return EquipmentMaintenance.objects.filter(
        equipment_id=equipment_id,
        resolved=False,
        start_date__lte=day,
        end_date__gte=day,
    ).exists()


class ReservationEquipmentService:
    def _surgery(self, surgery_id: int) -> Surgery:
        surgery = Surgery.objects.select_related('location').filter(id=surgery_id).first()
        if surgery is None:
            raise NotFound('Surgery', surgery_id)
        return surgery

    def _active(self, surgery_id: int):
        return EquipmentReservation.objects.filter(surgery_id=surgery_id).exclude(
            status=EquipmentReservation.STATUS_RELEASED,
        )

    def required_kits(self, surgery: Surgery) -> tuple[str, ...]:
        return get_event_type(surgery.event_type_code).equipment

    def reserve(self, surgery_id, date, location):
        """Reserve every missing kit; kits with no free item stay unreserved.

        Candidate items are row-locked; an item reserved concurrently for the
        same day fails the active-reservation constraint and the next item is
        tried.
        """
        surgery = self._surgery(surgery_id)
        held = set(self._active(surgery_id).values_list('equipment__name', flat=True))
        reservations = []
        with transaction.atomic():
            for kit in self.required_kits(surgery):
                if kit in held:
                    continue
                reservation = self._reserve_item(surgery, kit, date, location)
                if reservation is None:
                    logger.warning('No %s available at %s on %s for surgery %s', kit, location, date, surgery_id)
                    continue
                reservations.append(reservation)
                held.add(kit)
        return reservations

    def _reserve_item(self, surgery: Surgery, kit: str, date: date, location) -> EquipmentReservation | None:
        taken = EquipmentReservation.objects.filter(date=date).exclude(
            status=EquipmentReservation.STATUS_RELEASED,
        ).values_list('equipment_id', flat=True)
        candidates = (
            Equipment.objects.select_for_update()
            .filter(name=kit, location=location, active=True)
            .exclude(id__in=taken)
            .order_by('id')
        )
        for item in candidates:
            if _under_maintenance(item.id, date):
                continue
            try:
                with transaction.atomic():
                    return EquipmentReservation.objects.create(surgery=surgery, equipment=item, date=date)
            except IntegrityError:
                # reserved concurrently by another surgery
                logger.info('%s #%s already reserved on %s, trying the next one', kit, item.id, date)
        return None

    def check_readiness(self, surgery_id):
        surgery = self._surgery(surgery_id)
        day = surgery_day(surgery)
        ready = {
            r.equipment.name
            for r in self._active(surgery_id).select_related('equipment')
            if r.equipment.active and r.date == day and not _under_maintenance(r.equipment_id, day)
        }
        return all(kit in ready for kit in self.required_kits(surgery))

    def _set_status(self, surgery_id: int, new_status: str) -> int:
        updated = self._active(surgery_id).update(status=new_status)
        logger.info('Surgery %s: %s reservation(s) -> %s', surgery_id, updated, new_status)
        return updated

    def start_preparation(self, surgery_id):
        self._set_status(surgery_id, EquipmentReservation.STATUS_PREPARING)

    def verify(self, surgery_id):
        self._set_status(surgery_id, EquipmentReservation.STATUS_VERIFIED)

    def release(self, surgery_id):
        self._set_status(surgery_id, EquipmentReservation.STATUS_RELEASED)


@lru_cache(maxsize=None)
def _equipment_backend(dotted_path: str):
    return import_string(dotted_path)


def get_equipment_service() -> EquipmentService:
    return _equipment_backend(settings.SURGIPLAN_EQUIPMENT_BACKEND)()
