"""
Tests for the Offers app services.
"""

from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from django.test import TestCase
from django.utils import timezone

from apps.common.types import ValidationError
from apps.offers import calculations
from apps.offers.calculations import OfferDecision, OrderLine, OrderSnapshot
from apps.offers.models import Offer, OfferUsage
from apps.offers.services import (
    OfferCodeConflictError,
    OfferNotFoundError,
    OfferService,
    OfferStateError,
)


def make_offer(**overrides):
    now = timezone.now()
    values = {
        "name": "Test Offer",
        "offer_type": calculations.PERCENTAGE_DISCOUNT,
        "discount_value": Decimal("10"),
        "from_date": now - timedelta(days=1),
        "to_date": now + timedelta(days=1),
        "status": calculations.STATUS_ACTIVE,
    }
    values.update(overrides)
    return Offer.objects.create(**values)


def order(total, products=(), delivery_fee=None):
    return OrderSnapshot(
        total_price=Decimal(str(total)),
        delivery_fee=delivery_fee,
        products=tuple(OrderLine(product=p) for p in products),
    )


class OfferEvaluationTests(TestCase):
    """Tests for is_valid_for_order and find_applicable_offers."""

    def setUp(self):
        self.service = OfferService()

    def test_capped_percentage_discount(self):
        """Test 10% of 10000 with a 500 cap grants 500."""
        offer = make_offer(max_discount=Decimal("500"))

        decision = self.service.is_valid_for_order(offer, order(10000), user_id="u1")

        self.assertTrue(decision.is_valid)
        self.assertEqual(decision.discount, Decimal("500.00"))

    def test_usage_limit_after_recording(self):
        """Test a single-use offer is rejected after one recorded usage."""
        offer = make_offer(max_uses=1)
        self.assertTrue(self.service.is_valid_for_order(offer, order(1000), user_id="u1").is_valid)

        self.service.record_usage(offer, user_id="u1", order_id="order-1", discount_applied=Decimal("100"))

        decision = self.service.is_valid_for_order(offer, order(1000), user_id="u2")
        self.assertFalse(decision.is_valid)
        self.assertEqual(decision.reason, "Offer usage limit reached")

    def test_per_user_limit(self):
        """Test the per-user cap only blocks the user who reached it."""
        offer = make_offer(max_uses_per_user=1)
        self.service.record_usage(offer, user_id="u1", order_id="order-1", discount_applied=10)

        self.assertEqual(
            self.service.is_valid_for_order(offer, order(1000), user_id="u1").reason,
            calculations.REASON_USER_LIMIT_REACHED,
        )
        self.assertTrue(self.service.is_valid_for_order(offer, order(1000), user_id="u2").is_valid)

    def test_scheduled_offer_rejected(self):
        """Test an offer starting tomorrow resolves to scheduled and is rejected."""
        now = timezone.now()
        offer = make_offer(from_date=now + timedelta(days=1), to_date=now + timedelta(days=5))

        self.assertEqual(offer.status, calculations.STATUS_SCHEDULED)
        decision = self.service.is_valid_for_order(offer, order(1000), user_id="u1")
        self.assertEqual(decision.reason, "Offer is scheduled")

    def test_injected_clock(self):
        """Test evaluation uses the service clock rather than wall time."""
        offer = make_offer()
        later = OfferService(clock=lambda: timezone.now() + timedelta(days=10))

        decision = later.is_valid_for_order(offer, order(1000), user_id="u1")

        self.assertEqual(decision.reason, calculations.REASON_NOT_CURRENTLY_VALID)

    def test_find_applicable_offers_ranked(self):
        """Test applicable offers are valid ones only, best discount first."""
        fixed = make_offer(name="Fixed 300", offer_type=calculations.FIXED_DISCOUNT, discount_value=Decimal("300"))
        percent = make_offer(name="Ten percent")
        make_offer(name="Draft", status=calculations.STATUS_DRAFT, discount_value=Decimal("50"))
        make_offer(name="Big spenders", min_order_amount=Decimal("5000"))
        make_offer(name="Hidden", is_visible=False)

        applicable = self.service.find_applicable_offers(order(1000), user_id="u1")

        self.assertEqual([a.offer for a in applicable], [fixed, percent])
        self.assertEqual([a.discount for a in applicable], [Decimal("300.00"), Decimal("100.00")])
        self.assertEqual(applicable[0].offer_type, calculations.FIXED_DISCOUNT)

    def test_find_applicable_offers_empty(self):
        """Test no active offers yields an empty list."""
        self.assertEqual(self.service.find_applicable_offers(order(1000), user_id="u1"), [])


class OfferQueryTests(TestCase):
    """Tests for offer lookups and listings."""

    def setUp(self):
        self.service = OfferService()

    def test_get_active_offers_priority_order(self):
        """Test active offers come back highest priority first."""
        low = make_offer(name="Low", priority=1)
        high = make_offer(name="High", priority=10)
        make_offer(name="Expired", from_date=timezone.now() - timedelta(days=5), to_date=timezone.now() - timedelta(days=1))

        self.assertEqual(list(self.service.get_active_offers()), [high, low])

    def test_get_active_offers_extra_filters(self):
        """Test extra lookups narrow the active set."""
        make_offer(name="Percent")
        delivery = make_offer(name="Delivery", offer_type=calculations.FREE_DELIVERY, discount_value=None)

        self.assertEqual(list(self.service.get_active_offers(offer_type=calculations.FREE_DELIVERY)), [delivery])

    def test_get_offer_by_code_case_insensitive(self):
        """Test code lookups ignore case and surrounding spaces."""
        offer = make_offer(code="SAVE10")
        self.assertEqual(self.service.get_offer_by_code(" save10 "), offer)
        self.assertIsNone(self.service.get_offer_by_code("NOPE"))
        self.assertIsNone(self.service.get_offer_by_code(""))

    def test_get_offer_by_code_ignores_inactive(self):
        """Test draft offers are not found by code."""
        make_offer(code="LATER", status=calculations.STATUS_DRAFT)
        self.assertIsNone(self.service.get_offer_by_code("LATER"))

    def test_get_offer_not_found(self):
        """Test unknown and malformed ids raise OfferNotFoundError."""
        with self.assertRaises(OfferNotFoundError):
            self.service.get_offer("00000000-0000-0000-0000-000000000000")
        with self.assertRaises(OfferNotFoundError):
            self.service.get_offer("not-a-uuid")

    def test_list_offers_visibility(self):
        """Test non-admins see live offers only, admins can filter by status."""
        live = make_offer(name="Live")
        draft = make_offer(name="Draft", status=calculations.STATUS_DRAFT)

        self.assertEqual(list(self.service.list_offers()), [live])
        self.assertEqual(set(self.service.list_offers(is_admin=True)), {live, draft})
        self.assertEqual(list(self.service.list_offers(is_admin=True, status=calculations.STATUS_DRAFT)), [draft])

    def test_list_offers_search(self):
        """Test free-text search covers name, code and description."""
        by_name = make_offer(name="Ramadan Special")
        by_code = make_offer(name="Other", code="RAMADAN5")
        by_description = make_offer(name="Third", description="Valid during ramadan only")
        make_offer(name="Unrelated")

        results = set(self.service.list_offers(search="ramadan"))

        self.assertEqual(results, {by_name, by_code, by_description})


class OfferRedemptionTests(TestCase):
    """Tests for recording and applying offers."""

    def setUp(self):
        self.service = OfferService()

    def test_record_usage_updates_counters(self):
        """Test recording bumps the counters and appends a usage row."""
        offer = make_offer()

        usage = self.service.record_usage(offer, user_id="u1", order_id="order-9", discount_applied="125.505")

        self.assertEqual(offer.total_uses, 1)
        self.assertEqual(offer.total_discount, Decimal("125.51"))
        self.assertEqual(usage.discount_applied, Decimal("125.51"))
        self.assertEqual(usage.order_id, "order-9")
        self.assertEqual(OfferUsage.objects.filter(offer=offer).count(), 1)

    def test_record_usage_deleted_offer(self):
        """Test recording against a deleted offer raises not-found."""
        offer = make_offer()
        stale = Offer.objects.get(pk=offer.pk)
        offer.delete()

        with self.assertRaises(OfferNotFoundError):
            self.service.record_usage(stale, user_id="u1", order_id="o1", discount_applied=1)

    def test_apply_offer_records_usage(self):
        """Test a valid application records usage with the computed discount."""
        offer = make_offer(max_uses=1)

        result = self.service.apply_offer(offer.pk, order(1000), user_id="u1", order_id="order-1")

        self.assertTrue(result.success)
        self.assertEqual(result.usage.discount_applied, Decimal("100.00"))
        self.assertEqual(result.offer.total_uses, 1)

    def test_apply_offer_exhausted(self):
        """Test the second application of a single-use offer is refused."""
        offer = make_offer(max_uses=1)
        self.service.apply_offer(offer.pk, order(1000), user_id="u1", order_id="order-1")

        result = self.service.apply_offer(offer.pk, order(1000), user_id="u2", order_id="order-2")

        self.assertFalse(result.success)
        self.assertEqual(result.decision.reason, calculations.REASON_USAGE_LIMIT_REACHED)
        self.assertEqual(OfferUsage.objects.filter(offer=offer).count(), 1)

    def test_apply_offer_cap_guard(self):
        """Test the conditional increment refuses a use beyond max_uses."""
        offer = make_offer(max_uses=1, total_uses=1)
        valid = OfferDecision(is_valid=True, discount=Decimal("10.00"), offer_type=offer.offer_type)

        with patch.object(OfferService, "is_valid_for_order", return_value=valid):
            result = self.service.apply_offer(offer.pk, order(1000), user_id="u1", order_id="order-1")

        self.assertFalse(result.success)
        self.assertEqual(result.decision.reason, calculations.REASON_USAGE_LIMIT_REACHED)
        offer.refresh_from_db()
        self.assertEqual(offer.total_uses, 1)

    def test_apply_offer_code(self):
        """Test applying by code resolves case-insensitively."""
        make_offer(code="FLAT50", offer_type=calculations.FIXED_DISCOUNT, discount_value=Decimal("50"))

        result = self.service.apply_offer_code("flat50", order(1000), user_id="u1", order_id="order-1")

        self.assertTrue(result.success)
        self.assertEqual(result.decision.discount, Decimal("50.00"))

    def test_apply_offer_code_unknown(self):
        """Test unknown codes are rejected with a reason, not an exception."""
        result = self.service.apply_offer_code("GHOST", order(1000), user_id="u1", order_id="order-1")

        self.assertFalse(result.success)
        self.assertEqual(result.decision.reason, calculations.REASON_INVALID_CODE)

    def test_usage_summary(self):
        """Test the summary counts uses, distinct users and discount."""
        offer = make_offer(max_uses=10)
        for user_id, order_id in (("u1", "o1"), ("u1", "o2"), ("u2", "o3")):
            self.service.record_usage(offer, user_id=user_id, order_id=order_id, discount_applied=Decimal("20"))

        summary = self.service.usage_summary(offer)

        self.assertEqual(summary["total_uses"], 3)
        self.assertEqual(summary["remaining_uses"], 7)
        self.assertEqual(summary["unique_users"], 2)
        self.assertEqual(summary["total_discount"], Decimal("60"))


class OfferAdministrationTests(TestCase):
    """Tests for create, update and disable."""

    def setUp(self):
        self.service = OfferService()
        now = timezone.now()
        self.data = {
            "name": "Launch Week",
            "offer_type": calculations.FIXED_DISCOUNT,
            "discount_value": Decimal("100"),
            "code": "launch",
            "from_date": now - timedelta(hours=1),
            "to_date": now + timedelta(days=7),
        }

    def test_create_defaults_to_draft(self):
        """Test created offers start as uppercase-coded drafts."""
        offer = self.service.create_offer(self.data)

        self.assertEqual(offer.status, calculations.STATUS_DRAFT)
        self.assertEqual(offer.code, "LAUNCH")
        self.assertTrue(offer.is_visible)
        self.assertEqual(offer.priority, 0)

    def test_create_active_in_future_is_scheduled(self):
        """Test an active offer with a future window is stored as scheduled."""
        now = timezone.now()
        self.data.update(status=calculations.STATUS_ACTIVE, from_date=now + timedelta(days=1), to_date=now + timedelta(days=2))

        offer = self.service.create_offer(self.data)

        self.assertEqual(offer.status, calculations.STATUS_SCHEDULED)

    def test_create_rejects_duplicate_code(self):
        """Test codes are unique regardless of case."""
        self.service.create_offer(self.data)

        with self.assertRaises(OfferCodeConflictError) as ctx:
            self.service.create_offer({**self.data, "code": "LAUNCH", "name": "Copycat"})
        self.assertEqual(str(ctx.exception), "Offer code already exists")

    def test_create_rejects_expired_status(self):
        """Test offers cannot be created as expired."""
        with self.assertRaises(ValidationError) as ctx:
            self.service.create_offer({**self.data, "status": calculations.STATUS_EXPIRED})
        self.assertEqual(ctx.exception.field, "status")

    def test_create_runs_model_validation(self):
        """Test invalid configurations surface as field errors."""
        with self.assertRaises(ValidationError) as ctx:
            self.service.create_offer({**self.data, "discount_value": None})
        self.assertEqual(ctx.exception.field, "discount_value")
        self.assertFalse(Offer.objects.exists())

    def test_create_ignores_unknown_fields(self):
        """Test counters cannot be set through create."""
        offer = self.service.create_offer({**self.data, "total_uses": 99})
        self.assertEqual(offer.total_uses, 0)

    def test_update_partial(self):
        """Test only the given fields change and status is re-derived."""
        offer = self.service.create_offer(self.data)

        updated = self.service.update_offer(offer.pk, {"status": calculations.STATUS_ACTIVE, "priority": 5})

        self.assertEqual(updated.status, calculations.STATUS_ACTIVE)
        self.assertEqual(updated.priority, 5)
        self.assertEqual(updated.name, "Launch Week")

    def test_update_does_not_clobber_usage_counter(self):
        """Test an update leaves concurrently recorded usage intact."""
        offer = self.service.create_offer({**self.data, "status": calculations.STATUS_ACTIVE})
        Offer.objects.filter(pk=offer.pk).update(total_uses=4)

        self.service.update_offer(offer.pk, {"name": "Launch Week Extended"})

        offer.refresh_from_db()
        self.assertEqual(offer.total_uses, 4)

    def test_update_duplicate_code(self):
        """Test renaming a code onto another offer's code is refused."""
        self.service.create_offer(self.data)
        other = self.service.create_offer({**self.data, "code": "OTHER"})

        with self.assertRaises(OfferCodeConflictError):
            self.service.update_offer(other.pk, {"code": "Launch"})

    def test_update_cannot_activate_expired(self):
        """Test an expired offer whose end date has passed cannot be reactivated."""
        now = timezone.now()
        offer = make_offer(from_date=now - timedelta(days=5), to_date=now - timedelta(days=1))
        self.assertEqual(offer.status, calculations.STATUS_EXPIRED)

        with self.assertRaises(OfferStateError):
            self.service.update_offer(offer.pk, {"status": calculations.STATUS_ACTIVE})

    def test_update_reactivates_with_new_end_date(self):
        """Test extending the window allows reactivation."""
        now = timezone.now()
        offer = make_offer(from_date=now - timedelta(days=5), to_date=now - timedelta(days=1))

        updated = self.service.update_offer(
            offer.pk, {"status": calculations.STATUS_ACTIVE, "to_date": now + timedelta(days=3)}
        )

        self.assertEqual(updated.status, calculations.STATUS_ACTIVE)

    def test_update_missing_offer(self):
        """Test updating an unknown offer raises not-found."""
        with self.assertRaises(OfferNotFoundError):
            self.service.update_offer("00000000-0000-0000-0000-000000000000", {"priority": 1})

    def test_disable_offer(self):
        """Test disabling hides the offer and keeps it disabled."""
        offer = self.service.create_offer({**self.data, "status": calculations.STATUS_ACTIVE})

        disabled = self.service.disable_offer(offer.pk)

        self.assertEqual(disabled.status, calculations.STATUS_DISABLED)
        self.assertFalse(disabled.is_visible)
        self.assertNotIn(disabled, list(self.service.get_active_offers()))
        self.assertEqual(
            self.service.is_valid_for_order(disabled, order(1000), user_id="u1").reason, "Offer is disabled"
        )
