"""
Offer services for the Marketplace Platform.
Offer lifecycle, applicability checks, ranking and redemption recording.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Count, F, Q, QuerySet, Sum
from django.utils import timezone

from apps.common.money import ZERO, round_money, to_money
from apps.common.types import BusinessError, NotFoundError, ValidationError

from . import calculations
from .calculations import OfferDecision, OrderSnapshot
from .models import Offer, OfferUsage

if TYPE_CHECKING:
    from django.contrib.auth.models import AbstractBaseUser

logger = logging.getLogger(__name__)


# ===============================================================================
# Errors
# ===============================================================================


class OfferNotFoundError(NotFoundError):
    """No offer exists with the requested id"""

    def __init__(self, offer_id: Any):
        self.offer_id = offer_id
        super().__init__("Offer not found")


class OfferCodeConflictError(BusinessError):
    """Another offer already uses this code"""

    def __init__(self, code: str):
        self.code = code
        super().__init__("Offer code already exists")


class OfferStateError(BusinessError):
    """Requested lifecycle transition is not allowed"""


# ===============================================================================
# Data Classes for Results
# ===============================================================================


@dataclass
class ApplicableOffer:
    """An offer that passed every check, with the discount it grants."""

    offer: Offer
    discount: Decimal
    offer_type: str


@dataclass
class OfferApplication:
    """
    Result of redeeming an offer against an order.

    Attributes:
        decision: The evaluation under lock; rejections carry the reason.
        offer: The offer that was evaluated, if one was found.
        usage: The recorded redemption when the decision was valid.
    """

    decision: OfferDecision
    offer: Offer | None = None
    usage: OfferUsage | None = None

    @property
    def success(self) -> bool:
        return self.usage is not None


# Fields an admin may set through create/update
EDITABLE_FIELDS: tuple[str, ...] = (
    "name",
    "description",
    "code",
    "offer_type",
    "discount_value",
    "max_discount",
    "applicable_to",
    "products",
    "categories",
    "min_order_amount",
    "min_quantity",
    "max_uses",
    "max_uses_per_user",
    "buy_quantity",
    "get_quantity",
    "bundle_products",
    "bundle_price",
    "from_date",
    "to_date",
    "status",
    "is_visible",
    "priority",
    "stackable",
)


# ===============================================================================
# Offer Service
# ===============================================================================


class OfferService:
    """
    Offer evaluation and administration.

    Construct one per process (or per request) and pass it to callers;
    ``clock`` makes the notion of "now" injectable for window checks.
    """

    def __init__(self, clock: Callable[[], datetime] = timezone.now, currency: str | None = None):
        self.clock = clock
        self.currency = currency or settings.DEFAULT_CURRENCY

    def now(self) -> datetime:
        return self.clock()

    @staticmethod
    def normalize_code(code: str) -> str:
        """Normalize offer code to uppercase and trimmed."""
        return code.upper().strip()

    # ---------------------------------------------------------------------------
    # Lookup
    # ---------------------------------------------------------------------------

    def get_offer(self, offer_id: Any) -> Offer:
        try:
            return Offer.objects.get(pk=offer_id)
        except (Offer.DoesNotExist, DjangoValidationError) as e:
            raise OfferNotFoundError(offer_id) from e

    def get_offer_by_code(self, code: str) -> Offer | None:
        """Get the active offer carrying ``code`` (case-insensitive)."""
        if not code or not code.strip():
            return None
        return Offer.objects.filter(
            code=self.normalize_code(code), status=calculations.STATUS_ACTIVE
        ).first()

    def get_active_offers(self, **filters: Any) -> QuerySet[Offer]:
        """
        Visible offers that are active right now, highest priority first.

        ``filters`` are merged into the query as extra ORM lookups.
        """
        now = self.now()
        return Offer.objects.filter(
            status=calculations.STATUS_ACTIVE,
            from_date__lte=now,
            to_date__gte=now,
            is_visible=True,
            **filters,
        ).order_by("-priority", "-created_at")

    def list_offers(
        self,
        *,
        is_admin: bool = False,
        status: str | None = None,
        offer_type: str | None = None,
        applicable_to: str | None = None,
        search: str | None = None,
    ) -> QuerySet[Offer]:
        """Offer listing for the dashboard (admins) and the shop app (everyone else)."""
        if is_admin:
            queryset = Offer.objects.all()
            if status:
                queryset = queryset.filter(status=status)
        else:
            queryset = self.get_active_offers()

        if offer_type:
            queryset = queryset.filter(offer_type=offer_type)
        if applicable_to:
            queryset = queryset.filter(applicable_to=applicable_to)
        if search:
            queryset = queryset.filter(
                Q(name__icontains=search) | Q(code__icontains=search) | Q(description__icontains=search)
            )
        return queryset.order_by("-priority", "-created_at")

    # ---------------------------------------------------------------------------
    # Evaluation
    # ---------------------------------------------------------------------------

    def is_valid_for_order(self, offer: Offer, order: OrderSnapshot, user_id: str) -> OfferDecision:
        """Check ``offer`` against ``order`` for ``user_id``. Never raises for rejections."""
        user_uses = offer.get_user_uses(user_id) if offer.max_uses_per_user else 0
        return calculations.evaluate_offer(offer, order, user_uses=user_uses, now=self.now(), currency=self.currency)

    def find_applicable_offers(self, order: OrderSnapshot, user_id: str) -> list[ApplicableOffer]:
        """Every active offer valid for ``order``, highest discount first."""
        candidates = [(offer, self.is_valid_for_order(offer, order, user_id)) for offer in self.get_active_offers()]
        return [
            ApplicableOffer(offer=offer, discount=decision.discount or ZERO, offer_type=decision.offer_type)
            for offer, decision in calculations.rank_by_discount(candidates)
        ]

    # ---------------------------------------------------------------------------
    # Redemption
    # ---------------------------------------------------------------------------

    @transaction.atomic
    def record_usage(self, offer: Offer, user_id: str, order_id: str, discount_applied: Any) -> OfferUsage:
        """
        Record one redemption of ``offer``.

        The counter is bumped with an F() expression so concurrent
        redemptions never lose an increment. Callers are expected to have
        validated the offer first; caps are not re-checked here.
        """
        usage = self._record(offer, user_id, order_id, discount_applied, enforce_cap=False)
        if usage is None:
            raise OfferNotFoundError(offer.pk)
        return usage

    @transaction.atomic
    def apply_offer(self, offer_id: Any, order: OrderSnapshot, user_id: str, order_id: str) -> OfferApplication:
        """
        Validate and redeem an offer in one transaction.

        Locks the offer row, re-validates against the locked state and only
        then records usage. The increment is conditional on the total cap so
        the last remaining use cannot be handed out twice.
        """
        try:
            offer = Offer.objects.select_for_update().get(pk=offer_id)
        except Offer.DoesNotExist:
            return OfferApplication(decision=OfferDecision.reject(calculations.REASON_INVALID_CODE))

        decision = self.is_valid_for_order(offer, order, user_id)
        if decision.is_valid:
            usage = self._record(offer, user_id, order_id, decision.discount, enforce_cap=True)
            if usage is not None:
                return OfferApplication(decision=decision, offer=offer, usage=usage)
            decision = OfferDecision.reject(calculations.REASON_USAGE_LIMIT_REACHED)

        logger.warning(
            "⚠️ [Offers] Offer %s rejected for order %s: %s",
            offer.pk,
            order_id,
            decision.reason,
            extra={"offer_id": str(offer.pk), "order_id": str(order_id), "reason": decision.reason},
        )
        return OfferApplication(decision=decision, offer=offer)

    def apply_offer_code(self, code: str, order: OrderSnapshot, user_id: str, order_id: str) -> OfferApplication:
        """Order-placement path: resolve an offer code and redeem it."""
        offer = self.get_offer_by_code(code)
        if offer is None:
            return OfferApplication(decision=OfferDecision.reject(calculations.REASON_INVALID_CODE))
        return self.apply_offer(offer.pk, order, user_id, order_id)

    def _record(
        self, offer: Offer, user_id: str, order_id: str, discount_applied: Any, *, enforce_cap: bool
    ) -> OfferUsage | None:
        discount = round_money(to_money(discount_applied, "discountApplied"))

        counter = Offer.objects.filter(pk=offer.pk)
        if enforce_cap and offer.max_uses:
            counter = counter.filter(total_uses__lt=offer.max_uses)
        if not counter.update(total_uses=F("total_uses") + 1, total_discount=F("total_discount") + discount):
            return None

        usage = OfferUsage.objects.create(
            offer=offer,
            user_id=str(user_id),
            order_id=str(order_id),
            discount_applied=discount,
            used_at=self.now(),
        )
        offer.refresh_from_db(fields=["total_uses", "total_discount"])

        logger.info(
            "🏷️ [Offers] Usage recorded: offer %s by user %s on order %s (discount %s)",
            offer.pk,
            user_id,
            order_id,
            discount,
            extra={
                "offer_id": str(offer.pk),
                "user_id": str(user_id),
                "order_id": str(order_id),
                "discount": str(discount),
            },
        )
        return usage

    def usage_summary(self, offer: Offer) -> dict[str, Any]:
        aggregates = offer.usages.aggregate(
            unique_users=Count("user_id", distinct=True),
            total_discount=Sum("discount_applied"),
        )
        return {
            "total_uses": offer.total_uses,
            "remaining_uses": offer.remaining_uses,
            "unique_users": aggregates["unique_users"] or 0,
            "total_discount": aggregates["total_discount"] or ZERO,
        }

    # ---------------------------------------------------------------------------
    # Administration
    # ---------------------------------------------------------------------------

    @transaction.atomic
    def create_offer(self, data: Mapping[str, Any], created_by: AbstractBaseUser | None = None) -> Offer:
        """Create an offer; status defaults to draft and is derived on save."""
        values = {key: value for key, value in data.items() if key in EDITABLE_FIELDS}
        status = values.setdefault("status", calculations.STATUS_DRAFT)
        if status not in calculations.CREATABLE_STATUSES:
            raise ValidationError("status", f"Offer cannot be created as {status}")

        offer = Offer(**values, created_by=created_by, updated_by=created_by)
        offer.code = self.normalize_code(offer.code) if offer.code else None
        if offer.code and Offer.objects.filter(code=offer.code).exists():
            raise OfferCodeConflictError(offer.code)

        self._full_clean(offer)
        offer.save(now=self.now())

        logger.info(
            "🏷️ [Offers] Offer created: %s (%s, status %s)",
            offer.pk,
            offer.offer_type,
            offer.status,
            extra={"offer_id": str(offer.pk), "offer_type": offer.offer_type, "status": offer.status},
        )
        return offer

    @transaction.atomic
    def update_offer(
        self, offer_id: Any, data: Mapping[str, Any], updated_by: AbstractBaseUser | None = None
    ) -> Offer:
        """
        Partially update an offer under a row lock.

        Only the touched columns are written, so a concurrent usage increment
        is never overwritten with a stale counter.
        """
        try:
            offer = Offer.objects.select_for_update().get(pk=offer_id)
        except (Offer.DoesNotExist, DjangoValidationError) as e:
            raise OfferNotFoundError(offer_id) from e

        values = {key: value for key, value in data.items() if key in EDITABLE_FIELDS}

        new_code = values.get("code")
        if new_code:
            values["code"] = self.normalize_code(new_code)
            if values["code"] != offer.code and Offer.objects.filter(code=values["code"]).exclude(pk=offer.pk).exists():
                raise OfferCodeConflictError(values["code"])

        self.check_activation(offer, values.get("status"), values.get("to_date", offer.to_date))

        for key, value in values.items():
            setattr(offer, key, value)
        offer.updated_by = updated_by

        self._full_clean(offer)
        offer.save(update_fields=[*values.keys(), "updated_by"], now=self.now())

        logger.info(
            "🏷️ [Offers] Offer updated: %s (%s)",
            offer.pk,
            ", ".join(sorted(values)) or "no fields",
            extra={"offer_id": str(offer.pk), "fields": sorted(values), "status": offer.status},
        )
        return offer

    def check_activation(self, offer: Offer, status: str | None, to_date: datetime) -> None:
        """An expired offer can only be re-activated with a window that ends in the future."""
        if status == calculations.STATUS_ACTIVE and offer.status == calculations.STATUS_EXPIRED and to_date < self.now():
            raise OfferStateError("Cannot activate expired offer")

    @transaction.atomic
    def disable_offer(self, offer_id: Any, updated_by: AbstractBaseUser | None = None) -> Offer:
        """Soft delete: disabled and hidden until an admin changes it again."""
        offer = self.update_offer(
            offer_id,
            {"status": calculations.STATUS_DISABLED, "is_visible": False},
            updated_by=updated_by,
        )
        logger.info("🏷️ [Offers] Offer disabled: %s", offer.pk, extra={"offer_id": str(offer.pk)})
        return offer

    @staticmethod
    def _full_clean(offer: Offer) -> None:
        """Run model validation and surface the first problem as a ValidationError."""
        try:
            offer.full_clean(exclude=["created_by", "updated_by"])
        except DjangoValidationError as e:
            field, messages = next(iter(e.message_dict.items()))
            raise ValidationError(field, messages[0]) from e
