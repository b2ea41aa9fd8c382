"""
URL routing for site API endpoints.
"""
from django.urls import path
from . import views

app_name = 'sites'

urlpatterns = [
    path('sites/', views.SiteListCreateView.as_view(), name='site-list'),
    path('sites/<int:pk>/', views.SiteDetailView.as_view(), name='site-detail'),
]
