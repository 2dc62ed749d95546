"""
Shop wallet models for the Marketplace Platform.
One non-negative balance per shop with an append-only transaction log.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, ClassVar

from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from . import ledger

# ===============================================================================
# Shop Wallet
# ===============================================================================


class ShopWallet(models.Model):
    """
    A shop's accumulated credit balance.

    Mutated only through ``WalletService``; every change bumps ``version``
    so concurrent writers can detect that the row moved under them.
    """

    shop_id = models.CharField(max_length=64, unique=True, help_text=_("One wallet per shop"))
    balance = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0"), validators=[MinValueValidator(0)]
    )
    total_credits = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0"))
    total_debits = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0"))

    STATUS_CHOICES: ClassVar[tuple[tuple[str, Any], ...]] = (
        (ledger.WALLET_ACTIVE, _("Active")),
        (ledger.WALLET_SUSPENDED, _("Suspended")),
        (ledger.WALLET_FROZEN, _("Frozen")),
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=ledger.WALLET_ACTIVE, db_index=True)
    version = models.PositiveIntegerField(default=0, help_text=_("Optimistic concurrency revision"))

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "shop_wallets"
        verbose_name = _("Shop Wallet")
        verbose_name_plural = _("Shop Wallets")
        ordering: ClassVar[tuple[str, ...]] = ("-created_at",)
        constraints: ClassVar[tuple[models.BaseConstraint, ...]] = (
            models.CheckConstraint(condition=models.Q(balance__gte=0), name="shop_wallet_balance_non_negative"),
            models.CheckConstraint(condition=models.Q(total_credits__gte=0), name="shop_wallet_credits_non_negative"),
            models.CheckConstraint(condition=models.Q(total_debits__gte=0), name="shop_wallet_debits_non_negative"),
        )

    def __str__(self) -> str:
        return f"Wallet {self.shop_id} ({self.balance})"

    @property
    def is_active(self) -> bool:
        return self.status == ledger.WALLET_ACTIVE

    @property
    def last_transaction(self) -> WalletTransaction | None:
        return self.transactions.order_by("-id").first()


# ===============================================================================
# Wallet Transactions
# ===============================================================================


class WalletTransaction(models.Model):
    """Audit record of one balance change. Never updated or deleted."""

    TRANSACTION_TYPES: ClassVar[tuple[tuple[str, Any], ...]] = (
        (ledger.CREDIT, _("Credit")),
        (ledger.DEBIT, _("Debit")),
        (ledger.ADJUSTMENT, _("Adjustment")),
    )
    SOURCE_CHOICES: ClassVar[tuple[tuple[str, Any], ...]] = (
        (ledger.SOURCE_AIRTIME_SALE, _("Airtime Sale")),
        (ledger.SOURCE_ORDER_CREDIT, _("Order Credit")),
        (ledger.SOURCE_ADMIN_ADJUSTMENT, _("Admin Adjustment")),
        (ledger.SOURCE_WITHDRAWAL, _("Withdrawal")),
    )
    RELATED_MODEL_CHOICES: ClassVar[tuple[tuple[str, str], ...]] = tuple(
        (name, name) for name in ledger.RELATED_MODELS
    )

    wallet = models.ForeignKey(ShopWallet, on_delete=models.PROTECT, related_name="transactions")
    transaction_type = models.CharField(max_length=20, choices=TRANSACTION_TYPES)
    amount = models.DecimalField(max_digits=14, decimal_places=2, validators=[MinValueValidator(Decimal("0.01"))])
    previous_balance = models.DecimalField(max_digits=14, decimal_places=2)
    new_balance = models.DecimalField(max_digits=14, decimal_places=2)
    description = models.CharField(max_length=255)
    source = models.CharField(max_length=30, choices=SOURCE_CHOICES)
    related_transaction = models.CharField(
        max_length=64, blank=True, default="", help_text=_("Id of the airtime sale or order behind this entry")
    )
    transaction_model = models.CharField(max_length=30, choices=RELATED_MODEL_CHOICES, blank=True, default="")
    performed_by = models.CharField(max_length=64, blank=True, default="")
    timestamp = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "shop_wallet_transactions"
        verbose_name = _("Wallet Transaction")
        verbose_name_plural = _("Wallet Transactions")
        ordering: ClassVar[tuple[str, ...]] = ("-timestamp", "-id")
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=["wallet", "-timestamp"], name="idx_wallet_txn_timestamp"),
            models.Index(fields=["wallet", "transaction_type"], name="idx_wallet_txn_type"),
            models.Index(fields=["wallet", "source"], name="idx_wallet_txn_source"),
        )
        constraints: ClassVar[tuple[models.BaseConstraint, ...]] = (
            models.CheckConstraint(condition=models.Q(amount__gt=0), name="wallet_txn_amount_positive"),
            models.CheckConstraint(condition=models.Q(new_balance__gte=0), name="wallet_txn_new_balance_non_negative"),
        )

    def __str__(self) -> str:
        return f"{self.transaction_type} {self.amount} on {self.wallet_id}"
