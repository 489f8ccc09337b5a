"""
Core App Configuration
"""

from django.apps import AppConfig


class CoreConfig(AppConfig):
    """Users, roles, practice locations and the audit trail."""
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'surgiplan.core'
    verbose_name = 'Core (users, roles & locations)'
