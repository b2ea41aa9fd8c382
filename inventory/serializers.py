"""
Serializers for the material catalog.
Provides data validation and JSON conversion for API endpoints.
"""
from decimal import Decimal

from rest_framework import serializers
from .models import Product


class ProductSerializer(serializers.ModelSerializer):
    """Serializer for Product model with derived stock flags."""
    is_low_stock = serializers.BooleanField(read_only=True)
    is_out_of_stock = serializers.BooleanField(read_only=True)
    stock_value = serializers.DecimalField(
        max_digits=16,
        decimal_places=2,
        read_only=True
    )

    class Meta:
        model = Product
        fields = [
            'id', 'name', 'unit', 'rate_per_unit',
            'stock_quantity', 'low_stock_threshold',
            'is_low_stock', 'is_out_of_stock', 'stock_value',
            'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Name must not be blank")
        return value

    def validate_unit(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Unit must not be blank")
        return value

    def validate_stock_quantity(self, value):
        if value < Decimal('0'):
            raise serializers.ValidationError("Stock quantity cannot be negative")
        return value

    def validate_low_stock_threshold(self, value):
        if value < Decimal('0'):
            raise serializers.ValidationError("Low stock threshold cannot be negative")
        return value

