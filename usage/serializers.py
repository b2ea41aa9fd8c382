"""
Serializers for material usage recording and history.
"""
from rest_framework import serializers


class UsageItemCreateSerializer(serializers.Serializer):
    """One material line in a recording request.

    Quantity and stock checks are left to the recording engine.
    """
    product_id = serializers.IntegerField(min_value=1)
    quantity = serializers.DecimalField(max_digits=12, decimal_places=2)


class UsageBatchCreateSerializer(serializers.Serializer):
    """
    Serializer for recording material usage via POST /sites/{id}/usage/

    Request format:
    {
        "items": [
            {"product_id": 1, "quantity": "30"},
            {"product_id": 3, "quantity": "2.5"}
        ],
        "notes": "First floor tiling"
    }
    """
    items = UsageItemCreateSerializer(many=True, allow_empty=True)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class UsageRecordSerializer(serializers.Serializer):
    """Read-only view of a joined usage record."""
    id = serializers.IntegerField()
    product_id = serializers.IntegerField()
    product_name = serializers.CharField()
    unit = serializers.CharField()
    rate_per_unit = serializers.DecimalField(max_digits=12, decimal_places=2)
    quantity_used = serializers.DecimalField(max_digits=12, decimal_places=2)
    # quantity (12, 2) x rate (12, 2)
    total_cost = serializers.DecimalField(max_digits=24, decimal_places=4)
    usage_date = serializers.DateTimeField()
    notes = serializers.CharField(allow_null=True)
