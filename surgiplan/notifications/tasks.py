from celery import shared_task

from .services import dispatch_pending


@shared_task(name='surgiplan.notifications.tasks.dispatch_notifications')
def dispatch_notifications(limit=200):
    return dispatch_pending(limit=limit)
