"""
Django Admin configuration for the Offers app.
"""

from django import forms
from django.contrib import admin

from .models import Offer, OfferUsage
from .services import EDITABLE_FIELDS, OfferService, OfferStateError

# ===============================================================================
# Forms
# ===============================================================================


class OfferAdminForm(forms.ModelForm):
    """Surfaces the service rules the model cannot check on its own as form errors."""

    class Meta:
        model = Offer
        fields = "__all__"

    def clean(self):
        cleaned_data = super().clean()

        code = cleaned_data.get("code")
        if code:
            code = OfferService.normalize_code(code)
            if Offer.objects.filter(code=code).exclude(pk=self.instance.pk).exists():
                self.add_error("code", "Offer code already exists")

        if not self.instance._state.adding:
            to_date = cleaned_data.get("to_date") or self.instance.to_date
            try:
                OfferService().check_activation(self.instance, cleaned_data.get("status"), to_date)
            except OfferStateError as e:
                self.add_error("status", str(e))
        return cleaned_data


# ===============================================================================
# Inline Admin Classes
# ===============================================================================


class OfferUsageInline(admin.TabularInline):
    """Read-only redemption trail within an offer."""

    model = OfferUsage
    extra = 0
    readonly_fields = ("user_id", "order_id", "discount_applied", "used_at")
    fields = ("user_id", "order_id", "discount_applied", "used_at")
    can_delete = False
    max_num = 0


# ===============================================================================
# Model Admin Classes
# ===============================================================================


@admin.register(Offer)
class OfferAdmin(admin.ModelAdmin):
    """Admin for offers."""

    form = OfferAdminForm
    list_display = (
        "name",
        "code",
        "offer_type",
        "status",
        "is_visible",
        "priority",
        "from_date",
        "to_date",
        "total_uses",
    )
    list_filter = ("status", "offer_type", "applicable_to", "is_visible", "stackable")
    search_fields = ("name", "code", "description")
    readonly_fields = ("total_uses", "total_discount", "created_at", "updated_at", "created_by", "updated_by")
    date_hierarchy = "from_date"
    inlines = [OfferUsageInline]

    fieldsets = (
        (None, {
            "fields": ("name", "code", "description", "offer_type", "status", "is_visible", "priority", "stackable")
        }),
        ("Discount", {
            "fields": ("discount_value", "max_discount")
        }),
        ("Applicability", {
            "fields": ("applicable_to", "products", "categories")
        }),
        ("Conditions", {
            "fields": (
                "min_order_amount",
                "min_quantity",
                "max_uses",
                "max_uses_per_user",
                "buy_quantity",
                "get_quantity",
                "bundle_products",
                "bundle_price",
            )
        }),
        ("Schedule", {
            "fields": ("from_date", "to_date")
        }),
        ("Usage", {
            "fields": ("total_uses", "total_discount"),
        }),
        ("Audit", {
            "fields": ("created_by", "updated_by", "created_at", "updated_at"),
            "classes": ("collapse",)
        }),
    )

    def save_model(self, request, obj, form, change):
        if not change:
            obj.created_by = request.user
            obj.updated_by = request.user
            super().save_model(request, obj, form, change)
            return

        # Edited columns only; usage counters belong to the redemption path
        changes = {name: form.cleaned_data[name] for name in form.changed_data if name in EDITABLE_FIELDS}
        OfferService().update_offer(obj.pk, changes, updated_by=request.user)
        obj.refresh_from_db()
