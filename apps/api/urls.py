# ===============================================================================
# MARKETPLACE API MAIN URLS 🚀
# ===============================================================================
#
# URL Structure:
#   /api/offers/   → Offer listing, administration and validation
#   /api/wallets/  → Shop wallet balance, history and adjustments
#

from django.urls import include, path

from .offers import urls as offer_urls
from .wallets import urls as wallet_urls

app_name = "api"

urlpatterns = [
    path("offers/", include((offer_urls, "offers"))),
    path("wallets/", include((wallet_urls, "wallets"))),
]
