"""
URL configuration for the Marketplace Platform
"""

from django.contrib import admin
from django.urls import include, path

# ===============================================================================
# MAIN URL PATTERNS
# ===============================================================================

urlpatterns = [
    path("admin/", admin.site.urls),
    # REST API (offers & wallets)
    path("api/", include("apps.api.urls")),
]
