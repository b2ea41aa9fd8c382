"""
Material catalog API views.

Implements:
- CRUD operations for Product
- Name/unit search and low stock filtering on the list endpoint
- Autocomplete with rate limiting
"""
from django.db.models import F, Q
from rest_framework import generics, status
from rest_framework.views import APIView
from rest_framework.response import Response

from core.rate_limiting import rate_limit
from .models import Product
from .serializers import ProductSerializer


class ProductListCreateView(generics.ListCreateAPIView):
    """
    GET: List products ordered by name
    POST: Create a new product

    Query Parameters (GET):
        - q: Case-insensitive substring match on name or unit
        - low_stock: Show only products at or below their threshold (true/false)
    """
    serializer_class = ProductSerializer

    def get_queryset(self):
        queryset = Product.objects.all()

        keyword = self.request.query_params.get('q', '').strip()
        if keyword:
            queryset = queryset.filter(
                Q(name__icontains=keyword) |
                Q(unit__icontains=keyword)
            )

        low_stock = self.request.query_params.get('low_stock', '').lower()
        if low_stock == 'true':
            queryset = queryset.filter(stock_quantity__lte=F('low_stock_threshold'))

        return queryset.order_by('name')


class ProductDetailView(generics.RetrieveUpdateDestroyAPIView):
    """
    GET: Retrieve a product
    PUT/PATCH: Update a product
    DELETE: Delete a product (usage history referencing it is kept)
    """
    queryset = Product.objects.all()
    serializer_class = ProductSerializer


class ProductAutocompleteView(APIView):
    """
    GET: Prefix-matching autocomplete for product names.

    Query Parameters:
        - q: Search query (minimum 3 characters)

    Returns top 10 matching products with their available stock.
    """

    @rate_limit(max_requests=20, window_seconds=60)
    def get(self, request):
        query = request.query_params.get('q', '').strip()

        if len(query) < 3:
            return Response(
                {'error': 'Query must be at least 3 characters'},
                status=status.HTTP_400_BAD_REQUEST
            )

        products = Product.objects.filter(
            name__istartswith=query
        ).order_by('name').values('id', 'name', 'unit', 'rate_per_unit', 'stock_quantity')[:10]

        return Response([
            {
                **product,
                'rate_per_unit': str(product['rate_per_unit']),
                'stock_quantity': str(product['stock_quantity']),
            }
            for product in products
        ])
