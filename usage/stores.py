"""
Store access for the usage recording engine and purchase reports.

Wraps the catalog, site and ledger tables behind the small set of calls the
engine depends on, so the engine can be exercised against a substitute store.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from django.db import transaction
from django.utils import timezone

from inventory.models import Product
from sites.models import Site
from .models import UsageEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UsageRecord:
    """A ledger event joined with its product and site.

    Rate and unit are the product's current values, not the values at the
    time of use.
    """
    id: int
    site_id: int
    site_name: str
    product_id: int
    product_name: str
    unit: str
    rate_per_unit: Decimal
    quantity_used: Decimal
    usage_date: datetime
    notes: Optional[str] = None

    @property
    def total_cost(self) -> Decimal:
        return self.quantity_used * self.rate_per_unit


class UsageStore:
    """Repository over the catalog, site and usage ledger tables."""

    def list_products(self) -> List[Product]:
        """All products ordered by name."""
        return list(Product.objects.order_by('name', 'id'))

    def update_product_stock(self, product_id: int, new_quantity: Decimal) -> None:
        """Set a product's stock quantity.

        Raises:
            Product.DoesNotExist: If no product has this id
        """
        updated = Product.objects.filter(pk=product_id).update(
            stock_quantity=new_quantity,
            updated_at=timezone.now()
        )
        if not updated:
            raise Product.DoesNotExist(f"Product {product_id} does not exist")

    def insert_usage_events(self, events: List[UsageEvent]) -> List[UsageEvent]:
        """Insert ledger events in a single batched write.

        Either every event is written or none is.
        """
        if not events:
            return []
        with transaction.atomic():
            created = UsageEvent.objects.bulk_create(events)
        logger.debug(f"Inserted {len(created)} usage events")
        return created

    def list_usage_events(self, site_id: Optional[int] = None,
                          since: Optional[datetime] = None,
                          until: Optional[datetime] = None) -> List[UsageRecord]:
        """Usage events joined with product and site, newest first.

        Events whose site or product no longer exists are not returned.

        Args:
            site_id: Optional filter for a single site
            since: Only events used at or after this time
            until: Only events used before this time
        """
        queryset = UsageEvent.objects.select_related('site', 'product')
        if site_id is not None:
            queryset = queryset.filter(site_id=site_id)
        if since is not None:
            queryset = queryset.filter(usage_date__gte=since)
        if until is not None:
            queryset = queryset.filter(usage_date__lt=until)

        records = []
        for event in queryset.order_by('-usage_date', 'id'):
            records.append(UsageRecord(
                id=event.id,
                site_id=event.site_id,
                site_name=event.site.name,
                product_id=event.product_id,
                product_name=event.product.name,
                unit=event.product.unit,
                rate_per_unit=event.product.rate_per_unit,
                quantity_used=event.quantity_used,
                usage_date=event.usage_date,
                notes=event.notes
            ))
        return records

    def list_sites(self) -> List[Site]:
        """All sites ordered by name."""
        return list(Site.objects.order_by('name', 'id'))


_default_store: Optional[UsageStore] = None


def get_store() -> UsageStore:
    """Get the process-wide store instance."""
    global _default_store
    if _default_store is None:
        _default_store = UsageStore()
    return _default_store
