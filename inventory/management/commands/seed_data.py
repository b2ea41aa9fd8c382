"""
Management command to seed the database with sample data.

Generates:
- Construction and fit-out materials with stock and rates
- Job sites in various states
- Material usage history, recorded through the usage engine so stock
  levels stay consistent with the ledger

Usage:
    python manage.py seed_data
    python manage.py seed_data --clear  # Clear existing data first
"""
import random
from datetime import timedelta
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from inventory.models import Product
from sites.models import Site

MATERIALS = [
    ('Cement OPC 53', 'bag', '420'),
    ('River Sand', 'cft', '65'),
    ('TMT Steel 12mm', 'kg', '72'),
    ('Plywood 18mm BWP', 'sheet', '2850'),
    ('MDF Board 12mm', 'sheet', '1450'),
    ('Laminate 1mm', 'sheet', '1100'),
    ('Vitrified Tiles 600x600', 'sqft', '58'),
    ('Tile Adhesive', 'kg', '18'),
    ('Gypsum Board 12.5mm', 'sheet', '520'),
    ('GI Channel', 'piece', '145'),
    ('Wall Putty', 'kg', '24'),
    ('Emulsion Paint', 'litre', '310'),
    ('Primer', 'litre', '190'),
    ('Teak Veneer', 'sqft', '135'),
    ('Edge Band Tape', 'metre', '12'),
    ('Wood Adhesive', 'kg', '260'),
    ('Hinges Soft Close', 'piece', '95'),
    ('Drawer Channel 18in', 'pair', '340'),
    ('Copper Wire 2.5sqmm', 'metre', '38'),
    ('PVC Conduit 25mm', 'metre', '28'),
]

SITES = [
    ('Luxury Villa', 'Mumbai'),
    ('Office Complex', 'Delhi'),
    ('Residential Project', 'Pune'),
    ('Retail Showroom', 'Bengaluru'),
    ('Boutique Hotel', 'Goa'),
    ('Clinic Interiors', 'Chennai'),
    ('Penthouse Fit-out', 'Hyderabad'),
    ('Co-working Floor', 'Ahmedabad'),
]

SUPERVISORS = ['Ravi Kumar', 'Anita Desai', 'Suresh Patil', 'Meena Iyer', None]
MANAGERS = ['Arjun Mehta', 'Priya Nair', 'Vikram Singh', None]


class Command(BaseCommand):
    help = 'Seed the database with sample materials, sites and usage history'

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Clear existing data before seeding',
        )
        parser.add_argument(
            '--batches',
            type=int,
            default=40,
            help='Number of usage batches to record (default: 40)',
        )

    def handle(self, *args, **options):
        if options['clear']:
            self.stdout.write('Clearing existing data...')
            self._clear_data()

        self.stdout.write('Starting database seeding...')

        with transaction.atomic():
            self._create_products()
            sites = self._create_sites()

        self._record_usage(sites, options['batches'])

        self.stdout.write(self.style.SUCCESS('Database seeding completed successfully!'))

    def _clear_data(self):
        """Clear all existing data."""
        from usage.models import UsageEvent

        UsageEvent.objects.all().delete()
        Product.objects.all().delete()
        Site.objects.all().delete()

        self.stdout.write(self.style.WARNING('All existing data cleared.'))

    def _create_products(self):
        """Create catalog materials with random opening stock."""
        products = []
        for name, unit, rate in MATERIALS:
            product, created = Product.objects.get_or_create(
                name=name,
                defaults={
                    'unit': unit,
                    'rate_per_unit': Decimal(rate),
                    'stock_quantity': Decimal(random.randint(20, 800)),
                    'low_stock_threshold': Decimal(random.choice([10, 15, 25])),
                }
            )
            products.append(product)
            if created:
                self.stdout.write(f'  Created product: {name}')

        self.stdout.write(self.style.SUCCESS(f'Created {len(products)} products'))
        return products

    def _create_sites(self):
        """Create job sites with staggered start dates."""
        today = timezone.localdate()
        sites = []
        for name, city in SITES:
            start_date = today - timedelta(days=random.randint(10, 240))
            status = random.choices(
                [Site.Status.ACTIVE, Site.Status.COMPLETED, Site.Status.ON_HOLD],
                weights=[6, 2, 1]
            )[0]
            end_date = None
            if status == Site.Status.COMPLETED:
                end_date = start_date + timedelta(days=random.randint(5, 120))

            site, created = Site.objects.get_or_create(
                name=f"{name} - {city}",
                defaults={
                    'location': f"{random.randint(1, 250)} Main Road, {city}",
                    'start_date': start_date,
                    'end_date': end_date,
                    'supervisor': random.choice(SUPERVISORS),
                    'manager': random.choice(MANAGERS),
                    'status': status,
                }
            )
            sites.append(site)

        self.stdout.write(self.style.SUCCESS(f'Created {len(sites)} sites'))
        return sites

    def _record_usage(self, sites, batch_count):
        """Record usage batches through the engine, skipping invalid picks."""
        from usage.services import (
            BatchValidationFailed,
            line_for_product,
            load_catalog,
            submit_batch,
        )

        recorded = 0
        for _ in range(batch_count):
            catalog = load_catalog()
            in_stock = [product for product in catalog.values() if product.stock_quantity >= 1]
            if not in_stock:
                break

            site = random.choice(sites)
            picks = random.sample(in_stock, k=min(len(in_stock), random.randint(1, 4)))
            lines = [
                line_for_product(
                    product.id,
                    Decimal(random.randint(1, max(1, int(product.stock_quantity) // 5))),
                    catalog
                )
                for product in picks
            ]

            try:
                result = submit_batch(lines, site.id, catalog)
            except BatchValidationFailed as e:
                self.stdout.write(self.style.WARNING(f'  Skipped batch: {e}'))
                continue
            recorded += result.events_written

        self.stdout.write(self.style.SUCCESS(f'Recorded {recorded} usage events'))
