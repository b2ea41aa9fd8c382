"""
URL routing for material usage and reporting endpoints.
"""
from django.urls import path
from . import views

app_name = 'usage'

urlpatterns = [
    path('sites/<int:site_id>/usage/', views.SiteUsageView.as_view(), name='site-usage'),
    path('purchases/summary/', views.PurchaseSummaryView.as_view(), name='purchase-summary'),
    path('dashboard/stats/', views.DashboardStatsView.as_view(), name='dashboard-stats'),
]
