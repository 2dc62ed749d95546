"""
Common app configuration for the Marketplace Platform.
"""

from django.apps import AppConfig


class CommonConfig(AppConfig):
    """Shared infrastructure: request logging context, errors, retry helpers."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.common"
    verbose_name = "Common"
