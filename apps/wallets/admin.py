"""
Django Admin configuration for the Wallets app.
Balances are read-only here; changes go through WalletService.
"""

from django.contrib import admin

from .models import ShopWallet, WalletTransaction
from .services import WalletService


class WalletTransactionInline(admin.TabularInline):
    model = WalletTransaction
    extra = 0
    fields = ("timestamp", "transaction_type", "amount", "previous_balance", "new_balance", "source", "description")
    readonly_fields = fields
    can_delete = False
    max_num = 0
    ordering = ("-timestamp", "-id")


@admin.register(ShopWallet)
class ShopWalletAdmin(admin.ModelAdmin):
    """Admin for shop wallets."""

    list_display = ("shop_id", "balance", "total_credits", "total_debits", "status", "updated_at")
    list_filter = ("status",)
    search_fields = ("shop_id",)
    readonly_fields = ("balance", "total_credits", "total_debits", "version", "created_at", "updated_at")
    inlines = [WalletTransactionInline]

    def get_readonly_fields(self, request, obj=None):
        if obj is None:
            return self.readonly_fields
        return ("shop_id", *self.readonly_fields)

    def save_model(self, request, obj, form, change):
        # Status only; balance columns are written by WalletService alone
        if not change:
            super().save_model(request, obj, form, change)
            return
        if "status" in form.changed_data:
            current = ShopWallet.objects.get(pk=obj.pk)
            WalletService().set_status(current, form.cleaned_data["status"], performed_by=request.user.pk)
        obj.refresh_from_db()


@admin.register(WalletTransaction)
class WalletTransactionAdmin(admin.ModelAdmin):
    """Read-only audit trail."""

    list_display = ("wallet", "transaction_type", "amount", "new_balance", "source", "timestamp")
    list_filter = ("transaction_type", "source")
    search_fields = ("wallet__shop_id", "related_transaction", "description")
    date_hierarchy = "timestamp"

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
