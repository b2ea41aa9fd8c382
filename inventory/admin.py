"""
Django Admin configuration for the material catalog.
"""
from django.contrib import admin
from .models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = [
        'id', 'name', 'unit', 'rate_per_unit', 'stock_quantity',
        'low_stock_threshold', 'is_low_stock', 'updated_at'
    ]
    list_filter = ['unit', 'updated_at']
    search_fields = ['name', 'unit']
    ordering = ['name']

    def is_low_stock(self, obj):
        return obj.is_low_stock
    is_low_stock.boolean = True
    is_low_stock.short_description = 'Low Stock'
