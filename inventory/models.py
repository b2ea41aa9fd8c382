"""
Inventory Models - Material catalog for the site materials dashboard.

Models:
    - Product: A construction material held in stock, priced per unit

Stock quantities are fractional (e.g. 12.5 kg of adhesive). The store does not
forbid negative stock; the usage recording engine keeps it non-negative.
"""
from decimal import Decimal

from django.db import models
from django.core.validators import MinValueValidator


class Product(models.Model):
    """
    Product entity representing a material in the catalog.

    Names are unique by convention only.
    """
    name = models.CharField(
        max_length=200,
        db_index=True,
        help_text="Material name for display and search"
    )
    unit = models.CharField(
        max_length=30,
        help_text="Unit label, e.g. kg, sqft, bag"
    )
    rate_per_unit = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0'))],
        help_text="Cost per unit (must not be negative)"
    )
    stock_quantity = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0'),
        help_text="Current stock quantity"
    )
    low_stock_threshold = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('10'),
        help_text="Threshold for low stock alerts"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Product'
        verbose_name_plural = 'Products'
        ordering = ['name']
        indexes = [
            models.Index(fields=['stock_quantity'], name='product_stock_idx'),
        ]

    def __str__(self):
        return f"{self.name} ({self.stock_quantity} {self.unit})"

    @property
    def is_low_stock(self) -> bool:
        """Check if stock is at or below the low stock threshold."""
        return self.stock_quantity <= self.low_stock_threshold

    @property
    def is_out_of_stock(self) -> bool:
        return self.stock_quantity <= 0

    @property
    def stock_value(self) -> Decimal:
        """Value of the stock on hand at the current rate."""
        return self.stock_quantity * self.rate_per_unit
