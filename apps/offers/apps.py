"""
Offers app configuration for the Marketplace Platform.
"""

from django.apps import AppConfig


class OffersConfig(AppConfig):
    """Configuration for the Offers app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.offers"
    verbose_name = "Offers & Discounts"
