"""
Pure wallet ledger rules for the Marketplace Platform.

Plans credits, debits and adjustments against a balance snapshot and
replays a transaction log. The persistence layer in ``services`` applies the
planned entries; nothing here touches the database.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Protocol

from apps.common.money import CENT, ZERO, to_money
from apps.common.types import BusinessError, ConflictError, NotFoundError, ValidationError

# ===============================================================================
# Constants
# ===============================================================================

# Transaction types
CREDIT = "credit"
DEBIT = "debit"
ADJUSTMENT = "adjustment"

TRANSACTION_TYPES: tuple[str, ...] = (CREDIT, DEBIT, ADJUSTMENT)

# Sources
SOURCE_AIRTIME_SALE = "airtime_sale"
SOURCE_ORDER_CREDIT = "order_credit"
SOURCE_ADMIN_ADJUSTMENT = "admin_adjustment"
SOURCE_WITHDRAWAL = "withdrawal"

TRANSACTION_SOURCES: tuple[str, ...] = (
    SOURCE_AIRTIME_SALE,
    SOURCE_ORDER_CREDIT,
    SOURCE_ADMIN_ADJUSTMENT,
    SOURCE_WITHDRAWAL,
)

# Kind of record a transaction's related id points at
RELATED_MODEL_BY_SOURCE: dict[str, str] = {
    SOURCE_AIRTIME_SALE: "AirtimeTransaction",
    SOURCE_ORDER_CREDIT: "Order",
}
RELATED_MODELS: tuple[str, ...] = ("AirtimeTransaction", "Order")

# Wallet status
WALLET_ACTIVE = "active"
WALLET_SUSPENDED = "suspended"
WALLET_FROZEN = "frozen"

WALLET_STATUSES: tuple[str, ...] = (WALLET_ACTIVE, WALLET_SUSPENDED, WALLET_FROZEN)

# Largest value a DecimalField(max_digits=14, decimal_places=2) column holds
MAX_AMOUNT = Decimal("999999999999.99")


# ===============================================================================
# Errors
# ===============================================================================


class WalletError(BusinessError):
    """Base class for wallet rule violations"""


class InvalidAmountError(ValidationError, WalletError):
    """Non-positive or malformed amount"""

    def __init__(self, message: str):
        super().__init__("amount", message)


class WalletInactiveError(WalletError):
    """Wallet is suspended or frozen; no mutation happened"""

    def __init__(self, status: str, message: str):
        self.status = status
        super().__init__(message)


class InsufficientBalanceError(WalletError):
    """Debit larger than the available balance"""

    def __init__(self, available: Decimal, requested: Decimal):
        self.available = available
        self.requested = requested
        super().__init__(f"Insufficient balance. Available: {available}, Required: {requested}")


class WalletConflictError(ConflictError, WalletError):
    """Wallet row changed between read and write"""


class WalletNotFoundError(NotFoundError, WalletError):
    """No wallet exists for the shop"""

    def __init__(self, shop_id: str):
        self.shop_id = shop_id
        super().__init__(f"Wallet not found for shop {shop_id}")


# ===============================================================================
# Entries
# ===============================================================================


class WalletState(Protocol):
    balance: Decimal
    total_credits: Decimal
    total_debits: Decimal
    status: str


class TransactionRecord(Protocol):
    transaction_type: str
    amount: Decimal
    previous_balance: Decimal
    new_balance: Decimal


@dataclass(frozen=True)
class LedgerEntry:
    """
    A planned balance change.

    Attributes:
        transaction_type: credit, debit or adjustment.
        amount: Positive magnitude of the change.
        previous_balance: Balance the entry was planned against.
        new_balance: Balance after the entry.
        credit_delta: Amount added to the running credit total.
        debit_delta: Amount added to the running debit total.
    """

    transaction_type: str
    amount: Decimal
    previous_balance: Decimal
    new_balance: Decimal
    credit_delta: Decimal = ZERO
    debit_delta: Decimal = ZERO


@dataclass(frozen=True)
class LedgerTotals:
    balance: Decimal = ZERO
    total_credits: Decimal = ZERO
    total_debits: Decimal = ZERO


def related_model_for_source(source: str) -> str:
    """``AirtimeTransaction`` / ``Order`` for sources that reference one, else empty."""
    return RELATED_MODEL_BY_SOURCE.get(source, "")


def normalize_amount(value: Any, message: str) -> Decimal:
    """Coerce to a cent-precision Decimal, rejecting zero and negatives."""
    try:
        amount = to_money(value)
    except ValidationError as e:
        raise InvalidAmountError(message) from e
    if amount <= ZERO:
        raise InvalidAmountError(message)
    if amount > MAX_AMOUNT:
        raise InvalidAmountError(f"Amount cannot exceed {MAX_AMOUNT}")
    if amount != amount.quantize(CENT):
        raise InvalidAmountError("Amount cannot have more than two decimal places")
    return amount.quantize(CENT)


def _check_credit_headroom(wallet: WalletState, amount: Decimal) -> None:
    """Balance and running credit total must still fit their columns."""
    if wallet.balance + amount > MAX_AMOUNT or wallet.total_credits + amount > MAX_AMOUNT:
        raise InvalidAmountError("Credit would exceed the maximum wallet balance")


def plan_credit(wallet: WalletState, amount: Any) -> LedgerEntry:
    amount = normalize_amount(amount, "Credit amount must be positive")
    if wallet.status != WALLET_ACTIVE:
        raise WalletInactiveError(wallet.status, f"Cannot add credit to {wallet.status} wallet")
    _check_credit_headroom(wallet, amount)
    return LedgerEntry(
        transaction_type=CREDIT,
        amount=amount,
        previous_balance=wallet.balance,
        new_balance=wallet.balance + amount,
        credit_delta=amount,
    )


def plan_debit(wallet: WalletState, amount: Any) -> LedgerEntry:
    amount = normalize_amount(amount, "Debit amount must be positive")
    if wallet.status != WALLET_ACTIVE:
        raise WalletInactiveError(wallet.status, f"Cannot deduct from {wallet.status} wallet")
    if wallet.balance < amount:
        raise InsufficientBalanceError(available=wallet.balance, requested=amount)
    return LedgerEntry(
        transaction_type=DEBIT,
        amount=amount,
        previous_balance=wallet.balance,
        new_balance=wallet.balance - amount,
        debit_delta=amount,
    )


def plan_adjustment(wallet: WalletState, delta: Any) -> LedgerEntry:
    """
    Signed admin correction. Positive deltas count as credits, negative as
    debits, and the balance may not go below zero.
    """
    try:
        delta = to_money(delta)
    except ValidationError as e:
        raise InvalidAmountError("Adjustment amount must be a number") from e
    if delta == ZERO:
        raise InvalidAmountError("Adjustment amount cannot be zero")
    if abs(delta) > MAX_AMOUNT:
        raise InvalidAmountError(f"Amount cannot exceed {MAX_AMOUNT}")
    if wallet.status != WALLET_ACTIVE:
        raise WalletInactiveError(wallet.status, f"Cannot adjust {wallet.status} wallet")

    amount = abs(delta).quantize(CENT)
    if delta > ZERO:
        _check_credit_headroom(wallet, amount)
        return LedgerEntry(
            transaction_type=ADJUSTMENT,
            amount=amount,
            previous_balance=wallet.balance,
            new_balance=wallet.balance + amount,
            credit_delta=amount,
        )
    if wallet.balance < amount:
        raise InsufficientBalanceError(available=wallet.balance, requested=amount)
    return LedgerEntry(
        transaction_type=ADJUSTMENT,
        amount=amount,
        previous_balance=wallet.balance,
        new_balance=wallet.balance - amount,
        debit_delta=amount,
    )


# ===============================================================================
# Replay
# ===============================================================================


def entry_is_consistent(record: TransactionRecord) -> bool:
    """newBalance == previousBalance +/- amount for the record's type."""
    if record.amount <= ZERO:
        return False
    if record.transaction_type == CREDIT:
        return record.new_balance == record.previous_balance + record.amount
    if record.transaction_type == DEBIT:
        return record.new_balance == record.previous_balance - record.amount
    if record.transaction_type == ADJUSTMENT:
        return abs(record.new_balance - record.previous_balance) == record.amount
    return False


def replay(records: Iterable[TransactionRecord]) -> LedgerTotals:
    """
    Rebuild balance and running totals from an ordered transaction log.

    Starts from zero and raises ``ValueError`` at the first record that does
    not chain from the previous one.
    """
    balance = total_credits = total_debits = ZERO
    for record in records:
        if not entry_is_consistent(record) or record.previous_balance != balance:
            raise ValueError(f"Ledger breaks at {record!r}")
        if record.new_balance >= record.previous_balance:
            total_credits += record.amount
        else:
            total_debits += record.amount
        balance = record.new_balance
    return LedgerTotals(balance=balance, total_credits=total_credits, total_debits=total_debits)
