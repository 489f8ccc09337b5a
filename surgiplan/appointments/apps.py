"""
Appointments App Configuration
"""

from django.apps import AppConfig


class AppointmentsConfig(AppConfig):
    """Availability templates, bookings and the booking orchestrator."""
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'surgiplan.appointments'
    verbose_name = 'Appointments (availability & bookings)'

    def ready(self):
        from . import signals  # noqa: F401
