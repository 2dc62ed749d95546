"""
Offer API Serializers for the Marketplace Platform
camelCase request/response shapes for the shop app and admin dashboard.
"""

from rest_framework import serializers

from apps.offers import calculations
from apps.offers.models import Offer


def _money_field(**kwargs):
    return serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0, **kwargs)


class OfferSerializer(serializers.ModelSerializer):
    """Offer as returned by list/detail endpoints"""

    offerType = serializers.CharField(source="offer_type", read_only=True)
    discountValue = serializers.DecimalField(source="discount_value", max_digits=14, decimal_places=2, read_only=True)
    maxDiscount = serializers.DecimalField(source="max_discount", max_digits=14, decimal_places=2, read_only=True)
    applicableTo = serializers.CharField(source="applicable_to", read_only=True)
    minOrderAmount = serializers.DecimalField(source="min_order_amount", max_digits=14, decimal_places=2, read_only=True)
    maxUses = serializers.IntegerField(source="max_uses", read_only=True)
    maxUsesPerUser = serializers.IntegerField(source="max_uses_per_user", read_only=True)
    bundlePrice = serializers.DecimalField(source="bundle_price", max_digits=14, decimal_places=2, read_only=True)
    totalUses = serializers.IntegerField(source="total_uses", read_only=True)
    fromDate = serializers.DateTimeField(source="from_date", read_only=True)
    toDate = serializers.DateTimeField(source="to_date", read_only=True)
    isVisible = serializers.BooleanField(source="is_visible", read_only=True)

    class Meta:
        model = Offer
        fields = [
            "id",
            "name",
            "description",
            "code",
            "offerType",
            "discountValue",
            "maxDiscount",
            "applicableTo",
            "products",
            "categories",
            "minOrderAmount",
            "maxUses",
            "maxUsesPerUser",
            "bundlePrice",
            "totalUses",
            "fromDate",
            "toDate",
            "status",
            "isVisible",
            "priority",
            "stackable",
        ]
        read_only_fields = fields


class OfferAdminSerializer(OfferSerializer):
    """Adds usage and audit columns for staff"""

    totalDiscount = serializers.DecimalField(source="total_discount", max_digits=14, decimal_places=2, read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta(OfferSerializer.Meta):
        fields = [*OfferSerializer.Meta.fields, "totalDiscount", "createdAt", "updatedAt"]
        read_only_fields = fields


class OfferInputSerializer(serializers.Serializer):
    """
    Create/update payload. Validated data is keyed by model field name, so it
    can be handed straight to ``OfferService``.
    """

    name = serializers.CharField(min_length=3, max_length=100)
    description = serializers.CharField(max_length=500, required=False, allow_blank=True)
    code = serializers.CharField(max_length=20, required=False, allow_blank=True, allow_null=True)
    offerType = serializers.ChoiceField(source="offer_type", choices=calculations.OFFER_TYPES)
    discountValue = _money_field(source="discount_value", required=False, allow_null=True)
    maxDiscount = _money_field(source="max_discount", required=False, allow_null=True)
    applicableTo = serializers.ChoiceField(
        source="applicable_to", choices=calculations.APPLICABILITY_SCOPES, required=False
    )
    products = serializers.ListField(child=serializers.CharField(max_length=64), required=False)
    categories = serializers.ListField(child=serializers.CharField(max_length=64), required=False)
    minOrderAmount = _money_field(source="min_order_amount", required=False)
    minQuantity = serializers.IntegerField(source="min_quantity", min_value=0, required=False)
    maxUses = serializers.IntegerField(source="max_uses", min_value=1, required=False, allow_null=True)
    maxUsesPerUser = serializers.IntegerField(source="max_uses_per_user", min_value=1, required=False, allow_null=True)
    buyQuantity = serializers.IntegerField(source="buy_quantity", min_value=1, required=False, allow_null=True)
    getQuantity = serializers.IntegerField(source="get_quantity", min_value=1, required=False, allow_null=True)
    bundleProducts = serializers.ListField(
        source="bundle_products", child=serializers.DictField(), required=False
    )
    bundlePrice = _money_field(source="bundle_price", required=False, allow_null=True)
    fromDate = serializers.DateTimeField(source="from_date")
    toDate = serializers.DateTimeField(source="to_date")
    status = serializers.ChoiceField(choices=calculations.OFFER_STATUSES, required=False)
    isVisible = serializers.BooleanField(source="is_visible", required=False)
    priority = serializers.IntegerField(required=False)
    stackable = serializers.BooleanField(required=False)

    def validate(self, attrs):
        from_date = attrs.get("from_date")
        to_date = attrs.get("to_date")
        if from_date and to_date and to_date <= from_date:
            raise serializers.ValidationError({"toDate": "End date must be after start date"})
        return attrs


class OrderLineSerializer(serializers.Serializer):
    product = serializers.CharField(max_length=64)
    quantity = serializers.IntegerField(min_value=1, default=1)


class OrderInputSerializer(serializers.Serializer):
    """Order shape consumed by validate/applicable endpoints"""

    totalPrice = _money_field()
    deliveryFee = _money_field(required=False, allow_null=True)
    products = OrderLineSerializer(many=True, required=False)


class ApplicableOfferSerializer(serializers.Serializer):
    offer = OfferSerializer()
    discount = serializers.DecimalField(max_digits=14, decimal_places=2)
    offerType = serializers.CharField(source="offer_type")
