"""
Usage Models - The material usage ledger.

A UsageEvent records that a quantity of a product was consumed at a site.
Events are append-only: they are created by the usage recording engine and
never edited or deleted through the API.

Line costs are not stored. They are derived at read time from the product's
current rate, so a rate change also changes the reported cost of past usage.
"""
from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from inventory.models import Product
from sites.models import Site


class UsageEvent(models.Model):
    """
    Ledger entry for material consumed at a site.

    Site and product references carry no database constraint and no cascade:
    deleting either leaves the event in place as an orphan, which joined
    reads skip.
    """
    site = models.ForeignKey(
        Site,
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        related_name='usage_events',
        help_text="Site where the material was used"
    )
    product = models.ForeignKey(
        Product,
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        related_name='usage_events',
        help_text="Material used"
    )
    quantity_used = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))],
        help_text="Quantity consumed, in the product's unit"
    )
    usage_date = models.DateTimeField(
        default=timezone.now,
        db_index=True,
        help_text="When the material was used"
    )
    notes = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = 'Usage Event'
        verbose_name_plural = 'Usage Events'
        ordering = ['-usage_date', 'id']
        indexes = [
            models.Index(fields=['site', 'usage_date'], name='usage_site_date_idx'),
        ]

    def __str__(self):
        return f"{self.quantity_used} of product #{self.product_id} @ site #{self.site_id}"
