"""
Notification outbox.

Scheduling and readiness code only *emits* structured notification
requests; delivery happens later in ``dispatch_pending`` (periodic task)
through the sender configured for the channel. Delivery outcomes only
affect this bookkeeping, never a scheduling or readiness decision.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone
from django.utils.module_loading import import_string

from surgiplan.core.exceptions import InvalidSchedulingData, NotFound

from .models import Notification

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationRequest:
    """Either ``recipient`` (a user) or ``recipient_role`` must be set."""
    channel: str
    template_key: str
    priority: str = Notification.PRIORITY_NORMAL
    recipient: Any = None
    recipient_role: str = ''
    data: dict = field(default_factory=dict)
    surgery: Any = None


def emit(request: NotificationRequest, dedupe_key: str) -> Notification | None:
    """Store a notification once per ``dedupe_key``.

    Returns the new row, or None when the key was already emitted.
    """
    if request.recipient is None and not request.recipient_role:
        raise InvalidSchedulingData('notification needs a recipient or a recipient role', field='recipient')
    if request.channel not in dict(Notification.CHANNEL_CHOICES):
        raise InvalidSchedulingData(f'unknown channel {request.channel!r}', field='channel')

    if Notification.objects.filter(dedupe_key=dedupe_key).exists():
        return None
    try:
        with transaction.atomic():
            notification = Notification.objects.create(
                recipient=request.recipient,
                recipient_role=request.recipient_role,
                channel=request.channel,
                priority=request.priority,
                template_key=request.template_key,
                data=request.data,
                surgery=request.surgery,
                dedupe_key=dedupe_key,
            )
    except IntegrityError:
        # emitted concurrently by another worker
        return None

    logger.info(
        'Notification %s emitted: %s via %s (%s)',
        notification.id, request.template_key, request.channel, request.priority,
    )
    return notification


@lru_cache(maxsize=None)
def _sender_class(dotted_path: str):
    return import_string(dotted_path)


def get_sender(channel: str):
    senders = getattr(settings, 'SURGIPLAN_NOTIFICATION_SENDERS', {})
    try:
        return _sender_class(senders[channel])()
    except KeyError:
        raise InvalidSchedulingData(f'no sender configured for channel {channel!r}', field='channel') from None


def _max_attempts() -> int:
    return getattr(settings, 'SURGIPLAN_NOTIFICATION_MAX_ATTEMPTS', 3)


def _record_failure(notification: Notification, error: str) -> None:
    notification.attempts += 1
    notification.last_error = error[:2000]
    if notification.attempts >= _max_attempts():
        notification.status = Notification.STATUS_FAILED
        logger.error(
            'Notification %s failed permanently after %s attempts: %s',
            notification.id, notification.attempts, error,
        )
    else:
        logger.warning(
            'Notification %s delivery failed (attempt %s), will retry: %s',
            notification.id, notification.attempts, error,
        )
    notification.save(update_fields=['attempts', 'last_error', 'status', 'updated_at'])


def _record_success(notification: Notification, now=None) -> None:
    notification.status = Notification.STATUS_SENT
    notification.sent_at = now or timezone.now()
    notification.attempts += 1
    notification.last_error = ''
    notification.save(update_fields=['status', 'sent_at', 'attempts', 'last_error', 'updated_at'])


def dispatch_pending(now=None, limit: int = 200) -> dict[str, int]:
    """Deliver pending notifications; safe to run concurrently and repeatedly."""
    now = now or timezone.now()
    result = {'sent': 0, 'retrying': 0, 'failed': 0}

    pending_ids = list(
        Notification.objects.filter(status=Notification.STATUS_PENDING)
        .order_by('created_at', 'id')
        .values_list('id', flat=True)[:limit]
    )
    for notification_id in pending_ids:
        with transaction.atomic():
            notification = (
                Notification.objects.select_for_update(skip_locked=True)
                .select_related('recipient', 'surgery')
                .filter(id=notification_id, status=Notification.STATUS_PENDING)
                .first()
            )
            if notification is None:
                continue
            try:
                get_sender(notification.channel).send(notification)
            except Exception as exc:
                _record_failure(notification, str(exc) or type(exc).__name__)
                key = 'failed' if notification.status == Notification.STATUS_FAILED else 'retrying'
                result[key] += 1
                continue
            _record_success(notification, now)
            result['sent'] += 1

    if any(result.values()):
        logger.info('Notification dispatch: %s', result)
    return result


def record_delivery(notification_id: int, delivered: bool, error: str | None = None) -> Notification:
    """Asynchronous delivery report from a sender (e.g. SMS gateway callback)."""
    with transaction.atomic():
        notification = Notification.objects.select_for_update().filter(id=notification_id).first()
        if notification is None:
            raise NotFound('Notification', notification_id)
        if delivered:
            notification.status = Notification.STATUS_SENT
            notification.sent_at = notification.sent_at or timezone.now()
            notification.last_error = ''
            notification.save(update_fields=['status', 'sent_at', 'last_error', 'updated_at'])
        else:
            # the attempt was counted at dispatch time
            notification.last_error = (error or 'delivery failed')[:2000]
            if notification.attempts >= _max_attempts():
                notification.status = Notification.STATUS_FAILED
            else:
                notification.status = Notification.STATUS_PENDING
            notification.save(update_fields=['status', 'last_error', 'updated_at'])
            logger.warning('Notification %s reported undelivered: %s', notification.id, notification.last_error)
    return notification
