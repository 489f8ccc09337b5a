"""
Management Command: send_task_reminders

Queues task reminders whose trigger day has been reached.

Usage:
    python manage.py send_task_reminders
"""

from django.core.management.base import BaseCommand

from surgiplan.surgeries.services.escalation import EscalationRules


class Command(BaseCommand):
    help = "Queue due task reminders."

    def handle(self, *args, **options):
        queued = EscalationRules().send_task_reminders()
        self.stdout.write(self.style.SUCCESS(f"queued={queued}"))
