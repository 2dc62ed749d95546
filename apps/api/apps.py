# ===============================================================================
# MARKETPLACE API APP CONFIGURATION 🛠️
# ===============================================================================

from django.apps import AppConfig


class ApiConfig(AppConfig):
    """
    Configuration for the centralized API app.

    REST endpoints for the marketplace domains:
    - Offers & discounts
    - Shop wallets
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.api"
    label = "platform_api"
    verbose_name = "Marketplace Platform API"
