"""
Management Command: readiness_sweep

Blocks surgeries whose consultation missed the deadline and sends the
consultation escalations. Safe to run repeatedly.

Usage:
    python manage.py readiness_sweep
"""

from django.core.management.base import BaseCommand

from surgiplan.surgeries.services.escalation import EscalationRules


class Command(BaseCommand):
    help = "Run the surgery readiness / escalation sweep."

    def handle(self, *args, **options):
        result = EscalationRules().sweep()
        self.stdout.write(self.style.SUCCESS(
            f"evaluated={result['evaluated']} blocked={result['blocked']} escalated={result['escalated']}"
        ))
