"""
URL routing for material catalog API endpoints.
"""
from django.urls import path
from . import views

app_name = 'inventory'

urlpatterns = [
    path('products/', views.ProductListCreateView.as_view(), name='product-list'),
    path('products/<int:pk>/', views.ProductDetailView.as_view(), name='product-detail'),
    path('products/autocomplete/', views.ProductAutocompleteView.as_view(), name='product-autocomplete'),
]
