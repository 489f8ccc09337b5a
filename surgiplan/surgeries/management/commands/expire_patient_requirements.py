"""
Management Command: expire_patient_requirements

Usage:
    python manage.py expire_patient_requirements
"""

from django.core.management.base import BaseCommand

from surgiplan.surgeries.services.requirements import PatientRequirementTracker


class Command(BaseCommand):
    help = "Expire pending bloodwork/ECG submissions past their due date."

    def handle(self, *args, **options):
        expired = PatientRequirementTracker().expire_overdue()
        self.stdout.write(self.style.SUCCESS(f"expired={expired}"))
