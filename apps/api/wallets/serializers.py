"""
Wallet API Serializers for the Marketplace Platform
"""

from rest_framework import serializers

from apps.wallets import ledger
from apps.wallets.models import ShopWallet, WalletTransaction


class WalletTransactionSerializer(serializers.ModelSerializer):
    type = serializers.CharField(source="transaction_type", read_only=True)
    previousBalance = serializers.DecimalField(
        source="previous_balance", max_digits=14, decimal_places=2, read_only=True
    )
    newBalance = serializers.DecimalField(source="new_balance", max_digits=14, decimal_places=2, read_only=True)
    relatedTransaction = serializers.CharField(source="related_transaction", read_only=True)
    transactionModel = serializers.CharField(source="transaction_model", read_only=True)
    performedBy = serializers.CharField(source="performed_by", read_only=True)

    class Meta:
        model = WalletTransaction
        fields = [
            "id",
            "type",
            "amount",
            "previousBalance",
            "newBalance",
            "description",
            "source",
            "relatedTransaction",
            "transactionModel",
            "performedBy",
            "timestamp",
        ]
        read_only_fields = fields


class ShopWalletSerializer(serializers.ModelSerializer):
    """Wallet summary with the most recent transaction"""

    shopId = serializers.CharField(source="shop_id", read_only=True)
    totalCredits = serializers.DecimalField(source="total_credits", max_digits=14, decimal_places=2, read_only=True)
    totalDebits = serializers.DecimalField(source="total_debits", max_digits=14, decimal_places=2, read_only=True)
    lastTransaction = WalletTransactionSerializer(source="last_transaction", read_only=True, allow_null=True)

    class Meta:
        model = ShopWallet
        fields = ["shopId", "balance", "totalCredits", "totalDebits", "status", "lastTransaction"]
        read_only_fields = fields


class TransactionQuerySerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=ledger.TRANSACTION_TYPES, required=False)
    source = serializers.ChoiceField(choices=ledger.TRANSACTION_SOURCES, required=False)
    startDate = serializers.DateField(required=False)
    endDate = serializers.DateField(required=False)


class WalletAdjustmentSerializer(serializers.Serializer):
    """Signed amount; the ledger rejects zero and overdrafts"""

    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    description = serializers.CharField(min_length=3, max_length=255)


class WalletStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=ledger.WALLET_STATUSES)
