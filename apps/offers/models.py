"""
Offer models for the Marketplace Platform.

Supports:
- Percentage, fixed, free-delivery, buy-x-get-y, bundle and category offers
- Optional case-insensitive redemption codes
- Product/category applicability scopes
- Total and per-user usage caps with an append-only redemption trail
- Date-window lifecycle (scheduled -> active -> expired) with sticky draft/disabled
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, ClassVar

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from . import calculations

# ===============================================================================
# Offer
# ===============================================================================


class Offer(models.Model):
    """
    A discount rule with a validity window, applicability scope and usage caps.

    ``status`` is re-derived from ``from_date``/``to_date`` on every save
    unless an admin pinned it to draft or disabled.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Identification
    name = models.CharField(max_length=100, help_text=_("Offer name shown to shops"))
    description = models.CharField(max_length=500, blank=True)
    code = models.CharField(
        max_length=20,
        unique=True,
        null=True,
        blank=True,
        help_text=_("Optional redemption code (stored uppercase)"),
    )

    OFFER_TYPE_CHOICES: ClassVar[tuple[tuple[str, Any], ...]] = (
        (calculations.PERCENTAGE_DISCOUNT, _("Percentage Discount")),
        (calculations.FIXED_DISCOUNT, _("Fixed Amount Discount")),
        (calculations.BUY_X_GET_Y, _("Buy X Get Y")),
        (calculations.FREE_DELIVERY, _("Free Delivery")),
        (calculations.BUNDLE_OFFER, _("Bundle Offer")),
        (calculations.CATEGORY_DISCOUNT, _("Category Discount")),
    )
    offer_type = models.CharField(max_length=30, choices=OFFER_TYPE_CHOICES)

    # Discount values (interpretation depends on offer_type)
    discount_value = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
        help_text=_("Percentage for percentage/category offers, amount for fixed offers"),
    )
    max_discount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
        help_text=_("Cap applied to percentage-based discounts"),
    )

    # Applicability
    APPLICABLE_TO_CHOICES: ClassVar[tuple[tuple[str, Any], ...]] = (
        (calculations.APPLICABLE_ALL, _("All Orders")),
        (calculations.APPLICABLE_PRODUCTS, _("Specific Products")),
        (calculations.APPLICABLE_CATEGORIES, _("Specific Categories")),
    )
    applicable_to = models.CharField(max_length=20, choices=APPLICABLE_TO_CHOICES, default=calculations.APPLICABLE_ALL)
    products = models.JSONField(default=list, blank=True, help_text=_("Product ids for product-scoped offers"))
    categories = models.JSONField(default=list, blank=True, help_text=_("Category ids for category-scoped offers"))

    # Conditions
    min_order_amount = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0"), validators=[MinValueValidator(0)]
    )
    min_quantity = models.PositiveIntegerField(default=0)
    max_uses = models.PositiveIntegerField(null=True, blank=True, help_text=_("Maximum total redemptions"))
    max_uses_per_user = models.PositiveIntegerField(null=True, blank=True, help_text=_("Maximum redemptions per user"))
    buy_quantity = models.PositiveIntegerField(null=True, blank=True, validators=[MinValueValidator(1)])
    get_quantity = models.PositiveIntegerField(null=True, blank=True, validators=[MinValueValidator(1)])
    bundle_products = models.JSONField(
        default=list,
        blank=True,
        help_text=_('Bundle lines as [{"product": id, "quantity": n}]'),
    )
    bundle_price = models.DecimalField(
        max_digits=14, decimal_places=2, null=True, blank=True, validators=[MinValueValidator(0)]
    )

    # Usage tracking (the per-redemption trail lives in OfferUsage)
    total_uses = models.PositiveIntegerField(default=0, help_text=_("Current total redemption count"))
    total_discount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0"))

    # Validity window
    from_date = models.DateTimeField(db_index=True)
    to_date = models.DateTimeField(db_index=True)

    STATUS_CHOICES: ClassVar[tuple[tuple[str, Any], ...]] = (
        (calculations.STATUS_DRAFT, _("Draft")),
        (calculations.STATUS_ACTIVE, _("Active")),
        (calculations.STATUS_SCHEDULED, _("Scheduled")),
        (calculations.STATUS_EXPIRED, _("Expired")),
        (calculations.STATUS_DISABLED, _("Disabled")),
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=calculations.STATUS_DRAFT, db_index=True)
    is_visible = models.BooleanField(default=True)
    priority = models.IntegerField(default=0, help_text=_("Higher priority offers are listed first"))
    stackable = models.BooleanField(default=False, help_text=_("Advisory: can be combined with other offers"))

    # Audit
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_offers",
    )
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="updated_offers",
    )

    class Meta:
        db_table = "offers"
        verbose_name = _("Offer")
        verbose_name_plural = _("Offers")
        ordering: ClassVar[tuple[str, ...]] = ("-priority", "-created_at")
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=["offer_type"], name="idx_offer_type"),
            models.Index(fields=["status", "is_visible", "from_date", "to_date"], name="idx_offer_active_window"),
        )
        constraints: ClassVar[tuple[models.BaseConstraint, ...]] = (
            models.CheckConstraint(condition=models.Q(to_date__gt=models.F("from_date")), name="offer_window_ordered"),
        )

    def __str__(self) -> str:
        return f"{self.code} - {self.name}" if self.code else self.name

    def save(self, *args: Any, now: datetime | None = None, **kwargs: Any) -> None:
        """Normalize the code and re-derive status before every write."""
        self.code = self.code.upper().strip() if self.code else None
        self.refresh_status(now)

        update_fields = kwargs.get("update_fields")
        if update_fields is not None:
            kwargs["update_fields"] = {*update_fields, "status", "code", "updated_at"}
        super().save(*args, **kwargs)

    def refresh_status(self, now: datetime | None = None) -> str:
        self.status = calculations.derive_status(self.status, self.from_date, self.to_date, now or timezone.now())
        return self.status

    def clean(self) -> None:
        """Validate offer configuration."""
        super().clean()
        self._validate_discount_values()
        self._validate_applicability()
        self._validate_usage_limits()
        self._validate_dates()

    def _validate_discount_values(self) -> None:
        if self.offer_type in calculations.VALUE_REQUIRED_TYPES and self.discount_value is None:
            raise ValidationError({"discount_value": _("Discount value is required for this offer type")})
        if self.offer_type in calculations.PERCENTAGE_BASED_TYPES and self.discount_value is not None:
            if self.discount_value > calculations.HUNDRED:
                raise ValidationError({"discount_value": _("Percentage must be between 0 and 100")})

    def _validate_applicability(self) -> None:
        if self.applicable_to == calculations.APPLICABLE_PRODUCTS and not self.products:
            raise ValidationError({"products": _("Products are required when offer applies to products")})
        if self.applicable_to == calculations.APPLICABLE_CATEGORIES and not self.categories:
            raise ValidationError({"categories": _("Categories are required when offer applies to categories")})

    def _validate_usage_limits(self) -> None:
        if self.max_uses is not None and self.max_uses < 1:
            raise ValidationError({"max_uses": _("Maximum uses must be at least 1")})
        if self.max_uses_per_user is not None and self.max_uses_per_user < 1:
            raise ValidationError({"max_uses_per_user": _("Maximum uses per user must be at least 1")})

    def _validate_dates(self) -> None:
        if self.from_date and self.to_date and self.to_date <= self.from_date:
            raise ValidationError({"to_date": _("End date must be after start date")})

    @property
    def is_in_window(self) -> bool:
        return calculations.is_within_window(self.from_date, self.to_date, timezone.now())

    @property
    def remaining_uses(self) -> int | None:
        """Get remaining uses, or None if unlimited."""
        if not self.max_uses:
            return None
        return max(0, self.max_uses - self.total_uses)

    def get_user_uses(self, user_id: str) -> int:
        """Number of recorded redemptions of this offer by ``user_id``."""
        return self.usages.filter(user_id=str(user_id)).count()


# ===============================================================================
# Offer usage trail
# ===============================================================================


class OfferUsage(models.Model):
    """One recorded application of an offer to an order. Append-only."""

    id = models.BigAutoField(primary_key=True)
    offer = models.ForeignKey(Offer, on_delete=models.CASCADE, related_name="usages")
    user_id = models.CharField(max_length=64, db_index=True, help_text=_("Redeeming user"))
    order_id = models.CharField(max_length=64, help_text=_("Order the offer was applied to"))
    discount_applied = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0"))
    used_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "offer_usages"
        verbose_name = _("Offer Usage")
        verbose_name_plural = _("Offer Usages")
        ordering: ClassVar[tuple[str, ...]] = ("used_at", "id")
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=["offer", "user_id"], name="idx_offer_usage_user"),
            models.Index(fields=["order_id"], name="idx_offer_usage_order"),
        )

    def __str__(self) -> str:
        return f"{self.offer_id} used by {self.user_id} on {self.order_id}"
