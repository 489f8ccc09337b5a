"""
Management Command: dispatch_notifications

Delivers pending outbox notifications through the configured senders.

Usage:
    python manage.py dispatch_notifications
    python manage.py dispatch_notifications --limit 50
"""

from django.core.management.base import BaseCommand

from surgiplan.notifications.services import dispatch_pending


class Command(BaseCommand):
    help = "Deliver pending notifications."

    def add_arguments(self, parser):
        parser.add_argument(
            "--limit",
            type=int,
            default=200,
            help="Maximum number of notifications to process (default: 200)",
        )

    def handle(self, *args, **options):
        result = dispatch_pending(limit=options["limit"])
        self.stdout.write(self.style.SUCCESS(
            f"sent={result['sent']} retrying={result['retrying']} failed={result['failed']}"
        ))
