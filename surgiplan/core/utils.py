import logging

from django.db import transaction

from .models import AuditLog

logger = logging.getLogger(__name__)


def log_patient_action(user, action, patient_id=None, meta=None):
    """Write a patient-related action to the audit trail.

    An audit write failure is logged and never aborts the calling action.
    """

    role_name = ''
    if user is not None:
        role_name = getattr(getattr(user, 'role', None), 'name', '') or ''

    try:
        # savepoint so a failed insert does not poison an enclosing transaction
        with transaction.atomic():
            AuditLog.objects.create(
                user=user if getattr(user, 'is_authenticated', False) else None,
                role_name=role_name,
                action=action,
                patient_id=patient_id,
                meta=meta,
            )
    except Exception:
        logger.exception('AuditLog write failed (action=%s, patient_id=%s)', action, patient_id)
