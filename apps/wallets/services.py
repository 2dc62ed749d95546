"""
Wallet services for the Marketplace Platform.
Atomic credit/debit/adjustment posting against a shop's wallet.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date, datetime
from typing import Any

from django.db import IntegrityError, transaction
from django.db.models import F, QuerySet
from django.utils import timezone

from apps.common.concurrency import retry_on_conflict
from apps.common.types import ValidationError

from . import ledger
from .ledger import LedgerEntry, WalletConflictError, WalletError, WalletNotFoundError
from .models import ShopWallet, WalletTransaction

logger = logging.getLogger(__name__)


class WalletService:
    """
    Shop wallet ledger.

    Every mutation re-reads the wallet inside a transaction, plans the entry
    with the pure ``ledger`` rules and writes it back with a conditional
    UPDATE keyed on the version it read. A lost race raises
    ``WalletConflictError``, which ``retry_on_conflict`` retries a bounded
    number of times against fresh state.
    """

    def __init__(self, clock: Callable[[], datetime] = timezone.now):
        self.clock = clock

    def now(self) -> datetime:
        return self.clock()

    # ---------------------------------------------------------------------------
    # Lookup
    # ---------------------------------------------------------------------------

    def get_or_create_wallet(self, shop_id: Any) -> ShopWallet:
        """Return the shop's wallet, creating an empty one on first access."""
        shop_id = str(shop_id)
        wallet = ShopWallet.objects.filter(shop_id=shop_id).first()
        if wallet is not None:
            return wallet

        try:
            with transaction.atomic():
                wallet = ShopWallet.objects.create(shop_id=shop_id)
        except IntegrityError:
            # Another request created it between our read and insert
            return ShopWallet.objects.get(shop_id=shop_id)

        logger.info(
            "💰 [Wallet] Created wallet for shop %s",
            shop_id,
            extra={"shop_id": shop_id, "wallet_id": wallet.pk},
        )
        return wallet

    def get_wallet(self, shop_id: Any) -> ShopWallet:
        try:
            return ShopWallet.objects.get(shop_id=str(shop_id))
        except ShopWallet.DoesNotExist as e:
            raise WalletNotFoundError(str(shop_id)) from e

    def get_transaction_history(
        self,
        wallet: ShopWallet,
        *,
        transaction_type: str | None = None,
        source: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> QuerySet[WalletTransaction]:
        """Newest-first transactions; ``end_date`` covers the whole day."""
        queryset = wallet.transactions.all()
        if transaction_type:
            queryset = queryset.filter(transaction_type=transaction_type)
        if source:
            queryset = queryset.filter(source=source)
        if start_date:
            queryset = queryset.filter(timestamp__date__gte=_as_date(start_date))
        if end_date:
            queryset = queryset.filter(timestamp__date__lte=_as_date(end_date))
        return queryset.order_by("-timestamp", "-id")

    # ---------------------------------------------------------------------------
    # Mutations
    # ---------------------------------------------------------------------------

    @retry_on_conflict()
    def add_credit(
        self,
        wallet: ShopWallet,
        amount: Any,
        description: str,
        source: str,
        related_id: Any = None,
        performed_by: Any = None,
    ) -> ShopWallet:
        """Credit ``amount`` to an active wallet and append a credit record."""
        return self._post(wallet, ledger.plan_credit, amount, description, source, related_id, performed_by)

    @retry_on_conflict()
    def deduct_credit(
        self,
        wallet: ShopWallet,
        amount: Any,
        description: str,
        source: str,
        related_id: Any = None,
        performed_by: Any = None,
    ) -> ShopWallet:
        """
        Debit ``amount`` from an active wallet.

        Raises ``InsufficientBalanceError`` (with available and requested
        amounts) when the balance at write time does not cover the debit.
        """
        return self._post(wallet, ledger.plan_debit, amount, description, source, related_id, performed_by)

    @retry_on_conflict()
    def adjust_balance(
        self, wallet: ShopWallet, amount: Any, description: str, performed_by: Any = None
    ) -> ShopWallet:
        """Signed admin correction recorded as an ``adjustment``."""
        return self._post(
            wallet,
            ledger.plan_adjustment,
            amount,
            description,
            ledger.SOURCE_ADMIN_ADJUSTMENT,
            None,
            performed_by,
        )

    @transaction.atomic
    def set_status(self, wallet: ShopWallet, status: str, performed_by: Any = None) -> ShopWallet:
        """Suspend, freeze or reactivate a wallet."""
        if status not in ledger.WALLET_STATUSES:
            raise ValidationError("status", f"Unknown wallet status: {status}")

        previous = wallet.status
        ShopWallet.objects.filter(pk=wallet.pk).update(
            status=status, version=F("version") + 1, updated_at=self.now()
        )
        wallet.refresh_from_db()

        logger.info(
            "💰 [Wallet] Status of wallet %s changed %s -> %s",
            wallet.shop_id,
            previous,
            status,
            extra={
                "wallet_id": wallet.pk,
                "shop_id": wallet.shop_id,
                "status": status,
                "performed_by": str(performed_by or ""),
            },
        )
        return wallet

    # ---------------------------------------------------------------------------
    # Audit
    # ---------------------------------------------------------------------------

    def verify_ledger(self, wallet: ShopWallet) -> bool:
        """Replay the full log from zero and compare with the stored aggregate."""
        wallet.refresh_from_db()
        try:
            totals = ledger.replay(wallet.transactions.order_by("id"))
        except ValueError as e:
            logger.error(
                "🔥 [Wallet] Ledger chain broken for wallet %s: %s",
                wallet.shop_id,
                e,
                extra={"wallet_id": wallet.pk, "shop_id": wallet.shop_id},
            )
            return False

        consistent = (
            totals.balance == wallet.balance
            and totals.total_credits == wallet.total_credits
            and totals.total_debits == wallet.total_debits
        )
        if not consistent:
            logger.error(
                "🔥 [Wallet] Ledger mismatch for wallet %s: replayed %s, stored %s",
                wallet.shop_id,
                totals,
                (wallet.balance, wallet.total_credits, wallet.total_debits),
                extra={"wallet_id": wallet.pk, "shop_id": wallet.shop_id},
            )
        return consistent

    # ---------------------------------------------------------------------------
    # Internals
    # ---------------------------------------------------------------------------

    def _load(self, wallet_id: int) -> ShopWallet:
        """Read the wallet row, locking it where the database supports it."""
        return ShopWallet.objects.select_for_update().get(pk=wallet_id)

    def _post(  # noqa: PLR0913
        self,
        wallet: ShopWallet,
        planner: Callable[[ShopWallet, Any], LedgerEntry],
        amount: Any,
        description: str,
        source: str,
        related_id: Any,
        performed_by: Any,
    ) -> ShopWallet:
        if source not in ledger.TRANSACTION_SOURCES:
            raise ValidationError("source", f"Unknown transaction source: {source}")

        with transaction.atomic():
            current = self._load(wallet.pk)
            try:
                entry = planner(current, amount)
            except WalletError as e:
                logger.warning(
                    "⚠️ [Wallet] %s rejected for shop %s: %s",
                    planner.__name__.removeprefix("plan_"),
                    current.shop_id,
                    e,
                    extra={"wallet_id": current.pk, "shop_id": current.shop_id, "source": source},
                )
                raise

            now = self.now()
            updated = ShopWallet.objects.filter(
                pk=current.pk,
                version=current.version,
                balance=entry.previous_balance,
                status=ledger.WALLET_ACTIVE,
            ).update(
                balance=entry.new_balance,
                total_credits=F("total_credits") + entry.credit_delta,
                total_debits=F("total_debits") + entry.debit_delta,
                version=F("version") + 1,
                updated_at=now,
            )
            if not updated:
                raise WalletConflictError(f"Wallet {current.shop_id} changed during {entry.transaction_type}")

            record = WalletTransaction.objects.create(
                wallet=current,
                transaction_type=entry.transaction_type,
                amount=entry.amount,
                previous_balance=entry.previous_balance,
                new_balance=entry.new_balance,
                description=description,
                source=source,
                related_transaction=str(related_id) if related_id is not None else "",
                transaction_model=ledger.related_model_for_source(source),
                performed_by=str(performed_by) if performed_by is not None else "",
                timestamp=now,
            )

        wallet.refresh_from_db()
        logger.info(
            "💰 [Wallet] %s of %s on shop %s: %s -> %s",
            entry.transaction_type,
            entry.amount,
            wallet.shop_id,
            entry.previous_balance,
            entry.new_balance,
            extra={
                "wallet_id": wallet.pk,
                "shop_id": wallet.shop_id,
                "transaction_id": record.pk,
                "amount": str(entry.amount),
                "source": source,
            },
        )
        return wallet


def _as_date(value: date) -> date:
    return value.date() if isinstance(value, datetime) else value
