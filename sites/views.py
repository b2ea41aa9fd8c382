"""
Site API Views.

Implements:
- GET /sites/ - List sites, newest first, optional status filter
- POST /sites/ - Create a site (status starts as active)
- GET/PUT/PATCH/DELETE /sites/{id}/ - Site detail
"""
import logging

from rest_framework import generics

from .models import Site
from .serializers import SiteSerializer

logger = logging.getLogger(__name__)


class SiteListCreateView(generics.ListCreateAPIView):
    """
    GET: List sites ordered by creation date, newest first
    POST: Create a new site

    Query Parameters (GET):
        - status: Filter by status (active, completed, on_hold)
    """
    serializer_class = SiteSerializer

    def get_queryset(self):
        queryset = Site.objects.all()

        status_filter = self.request.query_params.get('status', '').lower()
        if status_filter in Site.Status.values:
            queryset = queryset.filter(status=status_filter)

        return queryset.order_by('-created_at', '-id')

    def perform_create(self, serializer):
        site = serializer.save()
        logger.info(f"Created site #{site.id} {site.name}")


class SiteDetailView(generics.RetrieveUpdateDestroyAPIView):
    """
    GET: Retrieve a site
    PUT/PATCH: Update a site
    DELETE: Delete a site; its usage history stays in the ledger
    """
    queryset = Site.objects.all()
    serializer_class = SiteSerializer

    def perform_destroy(self, instance):
        logger.info(f"Deleting site #{instance.id} {instance.name}")
        instance.delete()
