"""
Wallet API URLs for the Marketplace Platform
"""

from django.urls import path

from . import views

app_name = "wallets"

urlpatterns = [
    path("<str:shop_id>/", views.wallet_summary, name="wallet_summary"),
    path("<str:shop_id>/transactions/", views.wallet_transactions, name="wallet_transactions"),
    path("<str:shop_id>/adjust/", views.wallet_adjust, name="wallet_adjust"),
    path("<str:shop_id>/status/", views.wallet_status, name="wallet_status"),
]
