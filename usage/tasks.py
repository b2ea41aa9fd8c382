"""
Celery tasks for material usage.

Tasks:
    - notify_low_stock: Alert after a usage batch leaves products at or below threshold
    - generate_daily_usage_report: Daily cost report per site (Celery Beat)
"""
import logging
from datetime import datetime, time, timedelta

from celery import shared_task
from django.conf import settings
from django.utils import timezone

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    autoretry_for=(Exception,),
    retry_backoff=True
)
def notify_low_stock(self, product_ids):
    """
    Raise a low stock alert for the given products.

    Products that were restocked or deleted since the batch are skipped.

    Returns:
        Dict with the products still low on stock
    """
    from inventory.models import Product

    products = [
        product for product in Product.objects.filter(id__in=product_ids).order_by('name')
        if product.is_low_stock
    ]

    if not products:
        logger.info(f"No products still low on stock out of {list(product_ids)}")
        return {'status': 'skipped', 'products': []}

    lines = [
        f"  - {product.name}: {product.stock_quantity} {product.unit} "
        f"(threshold {product.low_stock_threshold})"
        for product in products
    ]
    alert_message = f"""
    ===============================================
    LOW STOCK ALERT
    ===============================================
{chr(10).join(lines)}
    ===============================================
    """
    logger.warning(alert_message)

    return {
        'status': 'alerted',
        'products': [product.id for product in products],
    }


@shared_task
def generate_daily_usage_report():
    """
    Log yesterday's material cost per site.

    Scheduled via Celery Beat (see CELERY_BEAT_SCHEDULE).
    """
    from .reports import aggregate_by_site, grand_total
    from .stores import get_store

    today = timezone.localdate()
    yesterday = today - timedelta(days=1)

    # Local-day bounds
    records = get_store().list_usage_events(
        since=timezone.make_aware(datetime.combine(yesterday, time.min)),
        until=timezone.make_aware(datetime.combine(today, time.min))
    )
    summaries = aggregate_by_site(records)
    total = grand_total(summaries)

    site_lines = [
        f"    {summary.site_name}: {settings.CURRENCY_SYMBOL}{summary.total_site_cost} ({len(summary.purchases)} lines)"
        for summary in summaries
    ]
    report = f"""
    ===============================================
    DAILY MATERIAL USAGE REPORT - {yesterday}
    ===============================================
    Usage Events: {len(records)}
    Sites: {len(summaries)}
{chr(10).join(site_lines)}
    Total Cost: {settings.CURRENCY_SYMBOL}{total}
    ===============================================
    """

    logger.info(report)

    return {
        'date': yesterday.isoformat(),
        'events': len(records),
        'sites': len(summaries),
        'total_cost': str(total),
    }
