"""
Django Admin configuration for the usage ledger.

Events are append-only, so the admin is read-only.
"""
from django.contrib import admin
from .models import UsageEvent


@admin.register(UsageEvent)
class UsageEventAdmin(admin.ModelAdmin):
    list_display = ['id', 'site', 'product', 'quantity_used', 'line_cost', 'usage_date']
    list_filter = ['usage_date']
    search_fields = ['site__name', 'product__name', 'notes']
    ordering = ['-usage_date']
    raw_id_fields = ['site', 'product']
    readonly_fields = ['site', 'product', 'quantity_used', 'usage_date', 'notes', 'created_at']

    def get_queryset(self, request):
        # Inner join: orphaned events are not listed
        return super().get_queryset(request).select_related('site', 'product')

    def line_cost(self, obj):
        return obj.quantity_used * obj.product.rate_per_unit
    line_cost.short_description = 'Cost'

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
