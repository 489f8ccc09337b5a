"""
Channel senders used by ``dispatch_pending``.

A sender's ``send(notification)`` returns on success and raises on
failure; the outbox records the attempt either way.
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.core.mail import send_mail
from django.template.loader import select_template

from surgiplan.core.models import User

from .models import Notification

logger = logging.getLogger(__name__)

SUBJECTS = {
    'surgery_scheduled': 'Surgery scheduled',
    'surgery_blocked': 'SURGERY BLOCKED: consultation requirements not met',
    'surgery_ready': 'Your surgery is confirmed',
    'surgery_preparation_started': 'Surgery preparation started',
    'surgery_cancelled': 'Surgery cancelled',
    'consultation_not_scheduled': 'Schedule pre-surgery consultation',
    'consultation_not_scheduled_urgent': 'URGENT: consultation not scheduled',
    'patient_instructions': 'Your pre-operative instructions',
}


class NotificationDeliveryError(Exception):
    pass


def render(notification: Notification) -> tuple[str, str]:
    context = dict(notification.data or {})
    context.setdefault('template_key', notification.template_key)
    template = select_template([
        f'notifications/{notification.template_key}.txt',
        'notifications/generic.txt',
    ])
    subject = SUBJECTS.get(notification.template_key, notification.template_key.replace('_', ' ').capitalize())
    if notification.priority == Notification.PRIORITY_URGENT and not subject.startswith(('URGENT', 'SURGERY')):
        subject = f'URGENT: {subject}'
    return subject, template.render(context).strip()


def recipient_users(notification: Notification) -> list[User]:
    if notification.recipient_id:
        return [notification.recipient]
    return list(
        User.objects.filter(is_active=True, role__name=notification.recipient_role).order_by('id')
    )


class EmailSender:
    def addresses(self, notification: Notification) -> list[str]:
        if notification.recipient_role == 'patient' and not notification.recipient_id:
            email = (notification.data or {}).get('patient_email')
            return [email] if email else []
        return [user.email for user in recipient_users(notification) if user.email]

    def send(self, notification: Notification) -> None:
        addresses = self.addresses(notification)
        if not addresses:
            raise NotificationDeliveryError(
                f'no e-mail address for {notification.recipient_id or notification.recipient_role}'
            )
        subject, body = render(notification)
        send_mail(subject, body, settings.DEFAULT_FROM_EMAIL, addresses, fail_silently=False)
        logger.info('E-mail %s sent to %s recipient(s)', notification.template_key, len(addresses))


class LoggingSender:
    """Stand-in for a channel without a connected gateway (SMS by default)."""

    def send(self, notification: Notification) -> None:
        subject, body = render(notification)
        logger.info(
            'Notification %s via %s to %s: %s',
            notification.id, notification.channel,
            notification.recipient_id or notification.recipient_role, subject,
        )


class DashboardSender:
    """Dashboard notifications are read straight from the outbox."""

    def send(self, notification: Notification) -> None:
        logger.debug('Dashboard notification %s published', notification.id)
