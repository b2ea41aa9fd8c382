"""
Material Usage API Views.

Implements:
- GET /sites/{id}/usage/ - Usage history for a site with total cost
- POST /sites/{id}/usage/ - Record a batch of material usage
- GET /purchases/summary/ - Per-site cost summary with grand total
- GET /dashboard/stats/ - Headline numbers for the dashboard
"""
import logging
from decimal import Decimal

from django.conf import settings
from django.db.models import F, Sum
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from core.rate_limiting import RateLimitMixin
from inventory.models import Product
from sites.models import Site
from .reports import build_purchase_summary, site_usage_total
from .serializers import UsageBatchCreateSerializer, UsageRecordSerializer
from .services import (
    BatchValidationFailed,
    LedgerWriteFailed,
    StockUnderflow,
    line_for_product,
    load_catalog,
    submit_batch,
)
from .stores import get_store

logger = logging.getLogger(__name__)


class SiteUsageView(RateLimitMixin, APIView):
    """
    GET: Material usage recorded at a site, newest first, with total cost
    POST: Record a batch of material usage and decrement stock

    Request Body (POST):
    {
        "items": [
            {"product_id": 1, "quantity": "30"},
            {"product_id": 3, "quantity": "1.5"}
        ],
        "notes": "optional"
    }
    """
    rate_limit_max_requests = 30
    rate_limit_window_seconds = 60

    def get(self, request, site_id):
        site = get_object_or_404(Site, pk=site_id)
        records = get_store().list_usage_events(site_id=site.id)
        return Response({
            'site_id': site.id,
            'site_name': site.name,
            'total_cost': str(site_usage_total(records)),
            'usage': UsageRecordSerializer(records, many=True).data,
        })

    def post(self, request, site_id):
        """
        Record material usage.

        Returns:
            - 201: All events recorded and all stock updated
            - 207: Events recorded, some stock updates failed
            - 400: Validation error, nothing recorded
            - 404: Site not found
            - 409: Stock would go negative; events recorded, stock updates stopped
            - 502: Usage could not be recorded, stock unchanged
        """
        site = get_object_or_404(Site, pk=site_id)

        serializer = UsageBatchCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        store = get_store()
        catalog = load_catalog(store)
        lines = [
            line_for_product(item['product_id'], item['quantity'], catalog)
            for item in serializer.validated_data['items']
        ]

        try:
            result = submit_batch(
                lines,
                site.id,
                catalog,
                store=store,
                notes=serializer.validated_data.get('notes')
            )
        except BatchValidationFailed as e:
            logger.warning(f"Usage validation failed for site #{site.id}: {e}")
            return Response(
                {
                    'error': 'Validation Error',
                    'detail': str(e),
                    'lines': [
                        {
                            'line': index,
                            'product_id': lines[index].product_id,
                            'reason': type(error).__name__,
                            'detail': str(error),
                        }
                        for index, error in e.failures
                    ],
                },
                status=status.HTTP_400_BAD_REQUEST
            )
        except StockUnderflow as e:
            return Response(
                {'error': 'Stock Underflow', 'detail': str(e), 'product_id': e.product_id},
                status=status.HTTP_409_CONFLICT
            )
        except LedgerWriteFailed as e:
            return Response(
                {'error': 'Ledger Write Failed', 'detail': str(e)},
                status=status.HTTP_502_BAD_GATEWAY
            )
        except Exception as e:
            logger.exception(f"Unexpected error recording usage for site #{site.id}: {e}")
            return Response(
                {'error': 'Server Error', 'detail': 'An unexpected error occurred'},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )

        status_code = status.HTTP_201_CREATED if result.fully_applied else status.HTTP_207_MULTI_STATUS
        return Response(
            {
                'site_id': site.id,
                'events_written': result.events_written,
                'total_cost': str(result.total_cost),
                'fully_applied': result.fully_applied,
                'warning': result.warning or None,
                'stock_update_failures': [
                    {'product_id': failure.product_id, 'detail': str(failure)}
                    for failure in result.stock_update_failures
                ],
                'low_stock_product_ids': result.low_stock_product_ids,
            },
            status=status_code
        )


class PurchaseSummaryView(APIView):
    """
    GET: Material cost grouped by site.

    Query Parameters:
        - site_id: Restrict to one site (default: all)
    """

    def get(self, request):
        site_id = request.query_params.get('site_id') or 'all'
        records = get_store().list_usage_events()
        return Response(build_purchase_summary(records, site_id))


class DashboardStatsView(APIView):
    """
    GET: Headline numbers for the dashboard.

    Stock value and purchase cost use current product rates.
    """

    def get(self, request):
        stock_value = Product.objects.aggregate(
            total=Sum(F('stock_quantity') * F('rate_per_unit'))
        )['total'] or Decimal('0')

        purchase_cost = site_usage_total(get_store().list_usage_events())

        return Response({
            'active_sites': Site.objects.filter(status=Site.Status.ACTIVE).count(),
            'total_sites': Site.objects.count(),
            'total_stock_value': str(stock_value),
            'total_purchase_cost': str(purchase_cost),
            'low_stock_items': Product.objects.filter(
                stock_quantity__lte=F('low_stock_threshold')
            ).count(),
            'currency': settings.CURRENCY_SYMBOL,
        })
