"""
Pure offer computations for the Marketplace Platform.

Status derivation, order applicability checks and per-type discount math.
Nothing in this module touches the database: callers hand in an order
snapshot plus any object exposing the offer attributes listed on
``OfferTerms`` (an ``Offer`` model instance qualifies).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Protocol, TypeVar

from apps.common.money import ZERO, format_amount, round_money, to_money
from apps.common.types import ValidationError

# ===============================================================================
# Constants
# ===============================================================================

HUNDRED = Decimal("100")

# Offer types (persisted verbatim, the dashboard keys off these strings)
PERCENTAGE_DISCOUNT = "percentage_discount"
FIXED_DISCOUNT = "fixed_discount"
BUY_X_GET_Y = "buy_x_get_y"
FREE_DELIVERY = "free_delivery"
BUNDLE_OFFER = "bundle_offer"
CATEGORY_DISCOUNT = "category_discount"

OFFER_TYPES: tuple[str, ...] = (
    PERCENTAGE_DISCOUNT,
    FIXED_DISCOUNT,
    BUY_X_GET_Y,
    FREE_DELIVERY,
    BUNDLE_OFFER,
    CATEGORY_DISCOUNT,
)
PERCENTAGE_BASED_TYPES = frozenset({PERCENTAGE_DISCOUNT, CATEGORY_DISCOUNT})
VALUE_REQUIRED_TYPES = frozenset({PERCENTAGE_DISCOUNT, FIXED_DISCOUNT, CATEGORY_DISCOUNT})

# Applicability scopes
APPLICABLE_ALL = "all"
APPLICABLE_PRODUCTS = "products"
APPLICABLE_CATEGORIES = "categories"

APPLICABILITY_SCOPES: tuple[str, ...] = (APPLICABLE_ALL, APPLICABLE_PRODUCTS, APPLICABLE_CATEGORIES)

# Lifecycle
STATUS_DRAFT = "draft"
STATUS_ACTIVE = "active"
STATUS_SCHEDULED = "scheduled"
STATUS_EXPIRED = "expired"
STATUS_DISABLED = "disabled"

OFFER_STATUSES: tuple[str, ...] = (
    STATUS_DRAFT,
    STATUS_ACTIVE,
    STATUS_SCHEDULED,
    STATUS_EXPIRED,
    STATUS_DISABLED,
)
# Only set by an admin, never overwritten by date derivation
STICKY_STATUSES = frozenset({STATUS_DRAFT, STATUS_DISABLED})
CREATABLE_STATUSES: tuple[str, ...] = (STATUS_DRAFT, STATUS_ACTIVE, STATUS_SCHEDULED, STATUS_DISABLED)

# Customer-facing rejection reasons
REASON_NOT_CURRENTLY_VALID = "Offer is not currently valid"
REASON_USAGE_LIMIT_REACHED = "Offer usage limit reached"
REASON_USER_LIMIT_REACHED = "You have reached your usage limit for this offer"
REASON_NOT_APPLICABLE = "Offer does not apply to items in your cart"
REASON_INVALID_CODE = "Invalid offer code"


class OfferTerms(Protocol):
    """Attributes the evaluator reads from an offer."""

    status: str
    offer_type: str
    discount_value: Decimal | None
    max_discount: Decimal | None
    applicable_to: str
    products: list[str]
    from_date: datetime
    to_date: datetime
    min_order_amount: Decimal
    max_uses: int | None
    max_uses_per_user: int | None
    bundle_price: Decimal | None
    total_uses: int


T = TypeVar("T")


# ===============================================================================
# Order snapshot
# ===============================================================================


@dataclass(frozen=True)
class OrderLine:
    """One cart line as seen by the offer engine."""

    product: str
    quantity: int = 1


@dataclass(frozen=True)
class OrderSnapshot:
    """
    The order value consumed by the offer engine.

    Attributes:
        total_price: Order total before offer discounts.
        delivery_fee: Delivery charge, if any (used by free_delivery offers).
        products: Cart lines; only product ids and quantities matter here.
    """

    total_price: Decimal
    delivery_fee: Decimal | None = None
    products: tuple[OrderLine, ...] = ()

    @property
    def product_ids(self) -> set[str]:
        return {line.product for line in self.products}

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> OrderSnapshot:
        """
        Build a snapshot from the controller-level order shape:
        ``{totalPrice, deliveryFee?, products: [{product, quantity}]}``.
        Snake-case keys are accepted too.
        """
        raw_total = payload.get("totalPrice", payload.get("total_price"))
        if raw_total is None:
            raise ValidationError("totalPrice", "totalPrice is required")
        total_price = to_money(raw_total, "totalPrice")

        raw_fee = payload.get("deliveryFee", payload.get("delivery_fee"))
        delivery_fee = to_money(raw_fee, "deliveryFee") if raw_fee is not None else None

        lines = []
        for item in payload.get("products") or []:
            product = item.get("product") if isinstance(item, Mapping) else item
            # Populated product documents carry their id under "id"/"_id"
            if isinstance(product, Mapping):
                product = product.get("id", product.get("_id"))
            if product is None:
                raise ValidationError("products", "Each line item needs a product")
            quantity = item.get("quantity", 1) if isinstance(item, Mapping) else 1
            try:
                quantity = int(quantity)
            except (TypeError, ValueError) as e:
                raise ValidationError("products", "Line item quantity must be a whole number") from e
            lines.append(OrderLine(product=str(product), quantity=quantity))

        return cls(total_price=total_price, delivery_fee=delivery_fee, products=tuple(lines))


# ===============================================================================
# Decisions
# ===============================================================================


@dataclass(frozen=True)
class OfferDecision:
    """
    Outcome of evaluating one offer against one order.

    Rejections are data, not exceptions: check ``is_valid`` before reading
    ``discount``.
    """

    is_valid: bool
    reason: str = ""
    discount: Decimal | None = None
    offer_type: str = ""

    @classmethod
    def reject(cls, reason: str) -> OfferDecision:
        return cls(is_valid=False, reason=reason)

    def as_payload(self) -> dict[str, Any]:
        """Serialize to the ``{isValid, reason?, discount?, offerType?}`` shape."""
        payload: dict[str, Any] = {"isValid": self.is_valid}
        if self.reason:
            payload["reason"] = self.reason
        if self.discount is not None:
            payload["discount"] = self.discount
        if self.offer_type:
            payload["offerType"] = self.offer_type
        return payload


# ===============================================================================
# Status derivation
# ===============================================================================


def derive_status(status: str, from_date: datetime, to_date: datetime, now: datetime) -> str:
    """
    Recompute a stored status from the validity window.

    Draft and disabled are left alone; everything else is a pure function
    of where ``now`` falls relative to ``[from_date, to_date]``.
    """
    if status in STICKY_STATUSES:
        return status
    if now < from_date:
        return STATUS_SCHEDULED
    if now > to_date:
        return STATUS_EXPIRED
    return STATUS_ACTIVE


def is_within_window(from_date: datetime, to_date: datetime, now: datetime) -> bool:
    return from_date <= now <= to_date


# ===============================================================================
# Evaluation
# ===============================================================================


def minimum_order_reason(min_order_amount: Decimal, currency: str = "KES") -> str:
    return f"Minimum order amount is {currency} {format_amount(min_order_amount)}"


def evaluate_offer(  # noqa: PLR0911
    offer: OfferTerms,
    order: OrderSnapshot,
    user_uses: int,
    now: datetime,
    currency: str = "KES",
) -> OfferDecision:
    """
    Check an offer against an order and return a decision.

    Checks short-circuit in this order: status, date window, minimum order,
    total usage cap, per-user cap, product applicability. ``user_uses`` is the
    number of recorded redemptions of this offer by the requesting user.

    Category scope is not checked against the cart; only product-scoped
    offers are matched line by line.
    """
    if offer.status != STATUS_ACTIVE:
        return OfferDecision.reject(f"Offer is {offer.status}")

    if not is_within_window(offer.from_date, offer.to_date, now):
        return OfferDecision.reject(REASON_NOT_CURRENTLY_VALID)

    if offer.min_order_amount and order.total_price < offer.min_order_amount:
        return OfferDecision.reject(minimum_order_reason(offer.min_order_amount, currency))

    if offer.max_uses and offer.total_uses >= offer.max_uses:
        return OfferDecision.reject(REASON_USAGE_LIMIT_REACHED)

    if offer.max_uses_per_user and user_uses >= offer.max_uses_per_user:
        return OfferDecision.reject(REASON_USER_LIMIT_REACHED)

    if offer.applicable_to == APPLICABLE_PRODUCTS and offer.products:
        targets = {str(product) for product in offer.products}
        if not targets & order.product_ids:
            return OfferDecision.reject(REASON_NOT_APPLICABLE)

    return OfferDecision(
        is_valid=True,
        discount=calculate_discount(offer, order),
        offer_type=offer.offer_type,
    )


def calculate_discount(offer: OfferTerms, order: OrderSnapshot) -> Decimal:
    """
    Discount granted by ``offer`` on ``order``, rounded to cents.

    buy_x_get_y grants its flat ``discount_value``; per-line BXGY pricing is
    not modelled. bundle_offer treats the whole order as the bundle.
    """
    total = order.total_price
    value = offer.discount_value or ZERO
    discount = ZERO

    if offer.offer_type in PERCENTAGE_BASED_TYPES:
        discount = total * value / HUNDRED
        if offer.max_discount is not None and discount > offer.max_discount:
            discount = offer.max_discount
    elif offer.offer_type == FIXED_DISCOUNT:
        discount = min(value, total)
    elif offer.offer_type == FREE_DELIVERY:
        discount = order.delivery_fee or ZERO
    elif offer.offer_type == BUY_X_GET_Y:
        discount = value
    elif offer.offer_type == BUNDLE_OFFER:
        if offer.bundle_price:
            discount = max(ZERO, total - offer.bundle_price)

    return round_money(discount)


def rank_by_discount(candidates: Iterable[tuple[T, OfferDecision]]) -> list[tuple[T, OfferDecision]]:
    """
    Keep valid decisions only, highest discount first.

    The sort is stable, so ties keep the caller's order.
    """
    valid = [(item, decision) for item, decision in candidates if decision.is_valid]
    return sorted(valid, key=lambda pair: pair[1].discount or ZERO, reverse=True)
