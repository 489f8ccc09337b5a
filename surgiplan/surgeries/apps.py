"""
Surgeries App Configuration
"""

from django.apps import AppConfig


class SurgeriesConfig(AppConfig):
    """Surgery readiness: task chains, patient requirements, equipment."""
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'surgiplan.surgeries'
    verbose_name = 'Surgeries (readiness & tasks)'
