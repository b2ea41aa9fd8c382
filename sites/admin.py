"""
Django Admin configuration for job sites.
"""
from django.contrib import admin
from .models import Site


@admin.register(Site)
class SiteAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'location', 'status', 'start_date', 'end_date', 'supervisor', 'manager']
    list_filter = ['status', 'start_date']
    search_fields = ['name', 'location', 'supervisor', 'manager']
    ordering = ['name']
