"""
Tests for the Wallets app services.
"""

import threading
import unittest
from datetime import datetime
from datetime import timezone as dt_timezone
from decimal import Decimal
from unittest.mock import MagicMock, patch

from django.db import connection
from django.test import TestCase, TransactionTestCase, override_settings

from apps.common.types import ValidationError
from apps.wallets import ledger
from apps.wallets.ledger import (
    InsufficientBalanceError,
    InvalidAmountError,
    WalletConflictError,
    WalletInactiveError,
    WalletNotFoundError,
)
from apps.wallets.models import ShopWallet, WalletTransaction
from apps.wallets.services import WalletService


class SteppingClock:
    """Clock the tests move by hand"""

    def __init__(self, start):
        self.current = start

    def __call__(self):
        return self.current


class WalletLookupTests(TestCase):
    """Tests for wallet creation and lookup."""

    def setUp(self):
        self.service = WalletService()

    def test_get_or_create_starts_empty(self):
        """Test a new wallet is active with zero balance and totals."""
        wallet = self.service.get_or_create_wallet("shop-1")

        self.assertEqual(wallet.balance, Decimal("0"))
        self.assertEqual(wallet.total_credits, Decimal("0"))
        self.assertEqual(wallet.total_debits, Decimal("0"))
        self.assertEqual(wallet.status, ledger.WALLET_ACTIVE)
        self.assertIsNone(wallet.last_transaction)

    def test_get_or_create_is_idempotent(self):
        """Test repeated calls return the same wallet."""
        first = self.service.get_or_create_wallet("shop-1")
        second = self.service.get_or_create_wallet("shop-1")

        self.assertEqual(first.pk, second.pk)
        self.assertEqual(ShopWallet.objects.count(), 1)

    def test_get_or_create_accepts_non_string_ids(self):
        """Test numeric shop ids are stored as strings."""
        wallet = self.service.get_or_create_wallet(42)
        self.assertEqual(wallet.shop_id, "42")
        self.assertEqual(self.service.get_or_create_wallet("42").pk, wallet.pk)

    def test_get_or_create_race_returns_existing(self):
        """Test losing the insert race returns the wallet the other writer created."""
        existing = ShopWallet.objects.create(shop_id="shop-race")
        missing = MagicMock()
        missing.first.return_value = None

        with patch.object(ShopWallet.objects, "filter", return_value=missing):
            wallet = self.service.get_or_create_wallet("shop-race")

        self.assertEqual(wallet.pk, existing.pk)
        self.assertEqual(ShopWallet.objects.count(), 1)

    def test_get_wallet_missing(self):
        """Test get_wallet raises for shops without a wallet."""
        with self.assertRaises(WalletNotFoundError) as ctx:
            self.service.get_wallet("nobody")
        self.assertEqual(ctx.exception.shop_id, "nobody")


class WalletMutationTests(TestCase):
    """Tests for credits, debits and adjustments."""

    def setUp(self):
        self.service = WalletService()
        self.wallet = self.service.get_or_create_wallet("shop-1")

    def test_credit_then_overdraft(self):
        """Test a 1000 credit followed by a refused 1500 debit."""
        wallet = self.service.add_credit(
            self.wallet, 1000, "Airtime commission", ledger.SOURCE_AIRTIME_SALE, related_id="sale-1"
        )

        self.assertEqual(wallet.balance, Decimal("1000.00"))
        self.assertEqual(wallet.total_credits, Decimal("1000.00"))
        txn = wallet.last_transaction
        self.assertEqual(txn.transaction_type, ledger.CREDIT)
        self.assertEqual(txn.previous_balance, Decimal("0"))
        self.assertEqual(txn.new_balance, Decimal("1000.00"))
        self.assertEqual(txn.related_transaction, "sale-1")
        self.assertEqual(txn.transaction_model, "AirtimeTransaction")

        with self.assertRaises(InsufficientBalanceError) as ctx:
            self.service.deduct_credit(wallet, 1500, "Withdrawal", ledger.SOURCE_WITHDRAWAL)

        self.assertEqual(ctx.exception.available, Decimal("1000.00"))
        wallet.refresh_from_db()
        self.assertEqual(wallet.balance, Decimal("1000.00"))
        self.assertEqual(wallet.transactions.count(), 1)

    def test_debit(self):
        """Test a covered debit updates balance, totals and the log."""
        self.service.add_credit(self.wallet, "500", "Order payout", ledger.SOURCE_ORDER_CREDIT, related_id=77)

        wallet = self.service.deduct_credit(
            self.wallet, "120.25", "Cash out", ledger.SOURCE_WITHDRAWAL, performed_by="admin-1"
        )

        self.assertEqual(wallet.balance, Decimal("379.75"))
        self.assertEqual(wallet.total_credits, Decimal("500.00"))
        self.assertEqual(wallet.total_debits, Decimal("120.25"))
        txn = wallet.last_transaction
        self.assertEqual(txn.transaction_type, ledger.DEBIT)
        self.assertEqual(txn.previous_balance, Decimal("500.00"))
        self.assertEqual(txn.performed_by, "admin-1")
        self.assertEqual(txn.transaction_model, "")

    def test_debit_derives_related_model(self):
        """Test debits tied to an order reference the Order model."""
        self.service.add_credit(self.wallet, 100, "Payout", ledger.SOURCE_ORDER_CREDIT)
        wallet = self.service.deduct_credit(self.wallet, 40, "Reversal", ledger.SOURCE_ORDER_CREDIT, related_id="o-5")
        self.assertEqual(wallet.last_transaction.transaction_model, "Order")

    def test_invalid_amounts_leave_wallet_untouched(self):
        """Test non-positive amounts are refused without writing anything."""
        for amount in (0, -10):
            with self.subTest(amount=amount), self.assertRaises(InvalidAmountError):
                self.service.add_credit(self.wallet, amount, "Bad", ledger.SOURCE_AIRTIME_SALE)

        self.assertFalse(WalletTransaction.objects.exists())

    def test_oversized_amount_is_validation_error(self):
        """Test amounts beyond the stored precision fail before any write."""
        with self.assertRaises(InvalidAmountError) as ctx:
            self.service.add_credit(self.wallet, "12345678901234", "Too big", ledger.SOURCE_AIRTIME_SALE)

        self.assertEqual(ctx.exception.field, "amount")
        self.wallet.refresh_from_db()
        self.assertEqual(self.wallet.version, 0)
        self.assertFalse(WalletTransaction.objects.exists())

    def test_unknown_source_rejected(self):
        """Test sources outside the known set are validation errors."""
        with self.assertRaises(ValidationError) as ctx:
            self.service.add_credit(self.wallet, 10, "Gift", "lottery")
        self.assertEqual(ctx.exception.field, "source")

    def test_suspended_wallet_refuses_mutations(self):
        """Test suspended wallets refuse credits and debits until reactivated."""
        self.service.add_credit(self.wallet, 100, "Seed", ledger.SOURCE_AIRTIME_SALE)
        self.service.set_status(self.wallet, ledger.WALLET_SUSPENDED, performed_by="admin-1")

        with self.assertRaises(WalletInactiveError):
            self.service.add_credit(self.wallet, 10, "Sale", ledger.SOURCE_AIRTIME_SALE)
        with self.assertRaises(WalletInactiveError):
            self.service.deduct_credit(self.wallet, 10, "Cash out", ledger.SOURCE_WITHDRAWAL)

        wallet = self.service.set_status(self.wallet, ledger.WALLET_ACTIVE)
        self.assertEqual(wallet.balance, Decimal("100.00"))
        self.service.add_credit(wallet, 10, "Sale", ledger.SOURCE_AIRTIME_SALE)
        self.assertEqual(wallet.balance, Decimal("110.00"))

    def test_set_status_unknown(self):
        """Test unknown statuses are rejected."""
        with self.assertRaises(ValidationError):
            self.service.set_status(self.wallet, "closed")

    def test_adjust_balance(self):
        """Test signed adjustments land in the matching running total."""
        self.service.adjust_balance(self.wallet, "250", "Goodwill credit", performed_by="admin-1")
        wallet = self.service.adjust_balance(self.wallet, "-50", "Fee correction", performed_by="admin-1")

        self.assertEqual(wallet.balance, Decimal("200.00"))
        self.assertEqual(wallet.total_credits, Decimal("250.00"))
        self.assertEqual(wallet.total_debits, Decimal("50.00"))
        txn = wallet.last_transaction
        self.assertEqual(txn.transaction_type, ledger.ADJUSTMENT)
        self.assertEqual(txn.source, ledger.SOURCE_ADMIN_ADJUSTMENT)

    def test_adjust_balance_cannot_overdraw(self):
        """Test a negative adjustment larger than the balance is refused."""
        with self.assertRaises(InsufficientBalanceError):
            self.service.adjust_balance(self.wallet, "-1", "Oops")

    def test_version_bumps_on_every_write(self):
        """Test each mutation advances the optimistic version."""
        self.service.add_credit(self.wallet, 10, "a", ledger.SOURCE_AIRTIME_SALE)
        self.service.deduct_credit(self.wallet, 5, "b", ledger.SOURCE_WITHDRAWAL)
        self.assertEqual(self.wallet.version, 2)


class WalletConcurrencyTests(TestCase):
    """Tests for optimistic version checks and bounded retry."""

    def setUp(self):
        self.service = WalletService()
        self.wallet = self.service.get_or_create_wallet("shop-1")
        self.service.add_credit(self.wallet, 1000, "Seed", ledger.SOURCE_AIRTIME_SALE)

    def test_stale_snapshot_retried_against_fresh_balance(self):
        """Test a debit planned on a stale read is retried and re-checked."""
        stale = ShopWallet.objects.get(pk=self.wallet.pk)
        self.service.deduct_credit(self.wallet, 600, "First", ledger.SOURCE_WITHDRAWAL)

        real_load = self.service._load
        calls = []

        def load(wallet_id):
            calls.append(wallet_id)
            return stale if len(calls) == 1 else real_load(wallet_id)

        with patch.object(self.service, "_load", side_effect=load):
            with self.assertRaises(InsufficientBalanceError):
                self.service.deduct_credit(self.wallet, 600, "Second", ledger.SOURCE_WITHDRAWAL)

        self.assertEqual(len(calls), 2)
        self.wallet.refresh_from_db()
        self.assertEqual(self.wallet.balance, Decimal("400.00"))
        self.assertEqual(self.wallet.transactions.count(), 2)

    def test_stale_snapshot_retry_succeeds(self):
        """Test a credit that lost a race is applied on top of the winner."""
        stale = ShopWallet.objects.get(pk=self.wallet.pk)
        self.service.add_credit(self.wallet, 50, "Winner", ledger.SOURCE_AIRTIME_SALE)

        real_load = self.service._load
        loads = iter([stale])

        def load(wallet_id):
            return next(loads, None) or real_load(wallet_id)

        with patch.object(self.service, "_load", side_effect=load):
            wallet = self.service.add_credit(self.wallet, 25, "Retried", ledger.SOURCE_AIRTIME_SALE)

        self.assertEqual(wallet.balance, Decimal("1075.00"))
        self.assertEqual(wallet.last_transaction.previous_balance, Decimal("1050.00"))
        self.assertTrue(self.service.verify_ledger(wallet))

    @override_settings(WALLET_CONFLICT_MAX_RETRIES=2)
    def test_conflict_surfaces_after_retries(self):
        """Test a wallet that keeps moving raises WalletConflictError."""
        stale = ShopWallet.objects.get(pk=self.wallet.pk)
        self.service.add_credit(self.wallet, 1, "Moved", ledger.SOURCE_AIRTIME_SALE)

        with patch.object(self.service, "_load", return_value=stale) as load:
            with self.assertRaises(WalletConflictError):
                self.service.add_credit(self.wallet, 5, "Never lands", ledger.SOURCE_AIRTIME_SALE)

        self.assertEqual(load.call_count, 2)
        self.assertEqual(self.wallet.transactions.count(), 2)


class WalletAuditTests(TestCase):
    """Tests for transaction history and ledger verification."""

    def setUp(self):
        self.clock = SteppingClock(datetime(2026, 5, 10, 9, 0, tzinfo=dt_timezone.utc))
        self.service = WalletService(clock=self.clock)
        self.wallet = self.service.get_or_create_wallet("shop-1")

        for day, amount in ((10, 100), (11, 200), (12, 300)):
            self.clock.current = datetime(2026, 5, day, 9, 0, tzinfo=dt_timezone.utc)
            self.service.add_credit(self.wallet, amount, f"Sale {day}", ledger.SOURCE_AIRTIME_SALE)
        self.clock.current = datetime(2026, 5, 12, 15, 0, tzinfo=dt_timezone.utc)
        self.service.deduct_credit(self.wallet, 50, "Cash out", ledger.SOURCE_WITHDRAWAL)

    def test_history_newest_first(self):
        """Test history is ordered most recent first."""
        history = list(self.service.get_transaction_history(self.wallet))

        self.assertEqual([t.description for t in history], ["Cash out", "Sale 12", "Sale 11", "Sale 10"])

    def test_history_filters(self):
        """Test type and source filters."""
        credits = self.service.get_transaction_history(self.wallet, transaction_type=ledger.CREDIT)
        withdrawals = self.service.get_transaction_history(self.wallet, source=ledger.SOURCE_WITHDRAWAL)

        self.assertEqual(credits.count(), 3)
        self.assertEqual([t.description for t in withdrawals], ["Cash out"])

    def test_history_end_date_covers_whole_day(self):
        """Test the end date includes transactions late on that day."""
        history = self.service.get_transaction_history(
            self.wallet,
            start_date=datetime(2026, 5, 11).date(),
            end_date=datetime(2026, 5, 12).date(),
        )

        self.assertEqual([t.description for t in history], ["Cash out", "Sale 12", "Sale 11"])

    def test_verify_ledger(self):
        """Test the replayed log matches the stored aggregate."""
        self.assertTrue(self.service.verify_ledger(self.wallet))

    def test_verify_ledger_detects_tampering(self):
        """Test a balance edited outside the service is detected."""
        ShopWallet.objects.filter(pk=self.wallet.pk).update(balance=Decimal("9999"))
        self.assertFalse(self.service.verify_ledger(self.wallet))

    def test_verify_ledger_detects_broken_chain(self):
        """Test an edited transaction breaks the chain."""
        WalletTransaction.objects.filter(wallet=self.wallet, description="Sale 11").update(
            previous_balance=Decimal("5")
        )
        self.assertFalse(self.service.verify_ledger(self.wallet))


@unittest.skipUnless(connection.vendor == "postgresql", "row locking needs PostgreSQL (TEST_DB_ENGINE=postgresql)")
class WalletParallelDebitTests(TransactionTestCase):
    """Wallet writes racing from separate threads."""

    def test_only_one_debit_wins(self):
        """Test concurrent debits never overdraw the wallet."""
        service = WalletService()
        wallet = service.get_or_create_wallet("shop-parallel")
        service.add_credit(wallet, 100, "Seed", ledger.SOURCE_AIRTIME_SALE)

        outcomes = []
        barrier = threading.Barrier(2)

        def debit():
            barrier.wait()
            try:
                service.deduct_credit(ShopWallet.objects.get(pk=wallet.pk), 80, "Race", ledger.SOURCE_WITHDRAWAL)
                outcomes.append("ok")
            except InsufficientBalanceError:
                outcomes.append("refused")
            finally:
                connection.close()

        threads = [threading.Thread(target=debit) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        wallet.refresh_from_db()
        self.assertEqual(sorted(outcomes), ["ok", "refused"])
        self.assertEqual(wallet.balance, Decimal("20.00"))
        self.assertTrue(service.verify_ledger(wallet))

    def test_parallel_credits_all_land(self):
        """Test concurrent credits are applied one after another without losing any."""
        service = WalletService()
        wallet = service.get_or_create_wallet("shop-parallel-credits")
        workers = 4
        barrier = threading.Barrier(workers)
        errors = []

        def credit():
            barrier.wait()
            try:
                service.add_credit(ShopWallet.objects.get(pk=wallet.pk), 25, "Sale", ledger.SOURCE_AIRTIME_SALE)
            except Exception as e:  # noqa: BLE001
                errors.append(e)
            finally:
                connection.close()

        threads = [threading.Thread(target=credit) for _ in range(workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        wallet.refresh_from_db()
        self.assertEqual(errors, [])
        self.assertEqual(wallet.balance, Decimal("100.00"))
        self.assertEqual(wallet.transactions.count(), workers)
        self.assertTrue(service.verify_ledger(wallet))
