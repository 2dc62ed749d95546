"""
Offer API URLs for the Marketplace Platform
"""

from django.urls import path

from . import views

app_name = "offers"

urlpatterns = [
    path("", views.offer_list, name="offer_list"),
    path("applicable/", views.applicable_offers, name="applicable_offers"),
    path("<uuid:offer_id>/", views.offer_detail, name="offer_detail"),
    path("<uuid:offer_id>/disable/", views.offer_disable, name="offer_disable"),
    path("<uuid:offer_id>/validate/", views.offer_validate, name="offer_validate"),
]
