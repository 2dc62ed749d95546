"""
Wallets app configuration for the Marketplace Platform.
"""

from django.apps import AppConfig


class WalletsConfig(AppConfig):
    """Configuration for the Shop Wallets app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.wallets"
    verbose_name = "Shop Wallets"
