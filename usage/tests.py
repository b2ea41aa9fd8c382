"""
Tests for material usage recording and purchase summaries.

Test Cases:
1. Line validation against a catalog snapshot
2. Line editing (product selection, quantity entry) and cost arithmetic
3. Batch submission: ledger write, stock decrement, partial failures
4. Per-site aggregation and grand totals
5. Store joins, ordering and orphaned events
6. API endpoints and Celery tasks
"""
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from inventory.models import Product
from sites.models import Site
from usage.models import UsageEvent
from usage.reports import (
    aggregate_by_site,
    build_purchase_summary,
    filter_by_site,
    grand_total,
    site_usage_total,
)
from usage.services import (
    BatchValidationFailed,
    InsufficientStock,
    LedgerWriteFailed,
    MaterialLineItem,
    NonPositiveQuantity,
    ProductNotFound,
    QuantityTooPrecise,
    StockUnderflow,
    add_line,
    compute_batch_cost,
    compute_line_cost,
    decimal_places,
    format_quantity,
    line_for_product,
    load_catalog,
    remove_line,
    select_product,
    set_quantity,
    submit_batch,
    validate_line,
)
from usage.serializers import UsageRecordSerializer
from usage.stores import UsageRecord, UsageStore
from usage.tasks import generate_daily_usage_report, notify_low_stock


def make_catalog():
    """Unsaved products keyed by id; enough for the pure engine functions."""
    cement = Product(
        id=1, name='Cement', unit='kg',
        rate_per_unit=Decimal('50'), stock_quantity=Decimal('100'),
        low_stock_threshold=Decimal('10')
    )
    tiles = Product(
        id=2, name='Tiles', unit='sqft',
        rate_per_unit=Decimal('58.50'), stock_quantity=Decimal('10'),
        low_stock_threshold=Decimal('10')
    )
    return {cement.id: cement, tiles.id: tiles}


def make_record(event_id, site_id, site_name, quantity, rate, product_name='Cement', unit='kg'):
    return UsageRecord(
        id=event_id,
        site_id=site_id,
        site_name=site_name,
        product_id=event_id,
        product_name=product_name,
        unit=unit,
        rate_per_unit=Decimal(rate),
        quantity_used=Decimal(quantity),
        usage_date=timezone.now(),
    )


class ValidateLineTestCase(SimpleTestCase):
    """Pure validation against a snapshot."""

    def setUp(self):
        self.catalog = make_catalog()

    def test_valid_line(self):
        result = validate_line(MaterialLineItem(product_id=1, quantity=Decimal('30')), self.catalog)

        self.assertTrue(result.is_valid)
        self.assertIsNone(result.error)
        self.assertEqual(result.message, '')

    def test_exact_stock_is_valid(self):
        result = validate_line(MaterialLineItem(product_id=2, quantity=Decimal('10')), self.catalog)
        self.assertTrue(result.is_valid)

    def test_missing_product(self):
        result = validate_line(MaterialLineItem(product_id=99, quantity=Decimal('1')), self.catalog)

        self.assertFalse(result.is_valid)
        self.assertIsInstance(result.error, ProductNotFound)
        self.assertEqual(result.error.product_id, 99)

    def test_no_product_selected(self):
        result = validate_line(MaterialLineItem(quantity=Decimal('1')), self.catalog)

        self.assertIsInstance(result.error, ProductNotFound)
        self.assertIn('No product selected', result.message)

    def test_non_positive_quantities(self):
        for quantity in ('0', '-1', '-0.01'):
            with self.subTest(quantity=quantity):
                result = validate_line(
                    MaterialLineItem(product_id=1, quantity=Decimal(quantity)), self.catalog
                )
                self.assertFalse(result.is_valid)
                self.assertIsInstance(result.error, NonPositiveQuantity)

    def test_insufficient_stock_carries_available_and_unit(self):
        """Scenario B: 15 requested, 10 available."""
        result = validate_line(MaterialLineItem(product_id=2, quantity=Decimal('15')), self.catalog)

        self.assertFalse(result.is_valid)
        self.assertIsInstance(result.error, InsufficientStock)
        self.assertEqual(result.error.available, Decimal('10'))
        self.assertEqual(result.error.unit, 'sqft')
        self.assertIn('Only 10 sqft', result.message)
        self.assertIn('Tiles', result.message)

    def test_missing_product_checked_before_quantity(self):
        result = validate_line(MaterialLineItem(product_id=99, quantity=Decimal('0')), self.catalog)
        self.assertIsInstance(result.error, ProductNotFound)

    def test_quantity_with_more_than_two_decimals(self):
        result = validate_line(MaterialLineItem(product_id=1, quantity=Decimal('0.004')), self.catalog)

        self.assertFalse(result.is_valid)
        self.assertIsInstance(result.error, QuantityTooPrecise)
        self.assertIn('Cement', result.message)
        self.assertIn('2 decimal places', result.message)

    def test_trailing_zeros_do_not_count_as_decimals(self):
        result = validate_line(MaterialLineItem(product_id=1, quantity=Decimal('1.500')), self.catalog)
        self.assertTrue(result.is_valid)

    def test_decimal_places(self):
        self.assertEqual(decimal_places(Decimal('0.004')), 3)
        self.assertEqual(decimal_places(Decimal('12.50')), 1)
        self.assertEqual(decimal_places(Decimal('100')), 0)

    def test_format_quantity(self):
        self.assertEqual(format_quantity(Decimal('10.00')), '10')
        self.assertEqual(format_quantity(Decimal('12.50')), '12.5')
        self.assertEqual(format_quantity(Decimal('100')), '100')


class LineEditingTestCase(SimpleTestCase):
    """Product selection, quantity entry and cost arithmetic."""

    def setUp(self):
        self.catalog = make_catalog()

    def test_select_product_resets_quantity(self):
        """Scenario E: switching product drops the old quantity."""
        lines = [MaterialLineItem(product_id=1, quantity=Decimal('30'), unit='kg',
                                  rate_per_unit=Decimal('50'))]

        line = select_product(lines, 0, 2, self.catalog)

        self.assertEqual(line.product_id, 2)
        self.assertEqual(line.quantity, Decimal('0'))
        self.assertEqual(line.unit, 'sqft')
        self.assertEqual(line.rate_per_unit, Decimal('58.50'))
        self.assertIs(lines[0], line)

    def test_select_unknown_product_leaves_line(self):
        lines = [MaterialLineItem(product_id=1, quantity=Decimal('5'), unit='kg',
                                  rate_per_unit=Decimal('50'))]

        with self.assertRaises(ProductNotFound):
            select_product(lines, 0, 42, self.catalog)

        self.assertEqual(lines[0].product_id, 1)
        self.assertEqual(lines[0].quantity, Decimal('5'))

    def test_set_quantity_applies_valid_value(self):
        lines = [line_for_product(1, 0, self.catalog)]

        result = set_quantity(lines, 0, '12.5', self.catalog)

        self.assertTrue(result.is_valid)
        self.assertEqual(lines[0].quantity, Decimal('12.5'))

    def test_set_quantity_rejects_excess_and_keeps_previous(self):
        lines = [line_for_product(2, '4', self.catalog)]

        result = set_quantity(lines, 0, 11, self.catalog)

        self.assertIsInstance(result.error, InsufficientStock)
        self.assertEqual(lines[0].quantity, Decimal('4'))

    def test_set_quantity_unparseable_is_zero(self):
        lines = [line_for_product(1, '4', self.catalog)]

        result = set_quantity(lines, 0, 'abc', self.catalog)

        self.assertIsInstance(result.error, NonPositiveQuantity)
        self.assertEqual(lines[0].quantity, Decimal('4'))

    def test_set_quantity_rejects_third_decimal(self):
        lines = [line_for_product(1, '4', self.catalog)]

        result = set_quantity(lines, 0, '0.004', self.catalog)

        self.assertIsInstance(result.error, QuantityTooPrecise)
        self.assertEqual(lines[0].quantity, Decimal('4'))

    def test_add_and_remove_lines(self):
        lines = []
        add_line(lines)
        add_line(lines)
        select_product(lines, 1, 1, self.catalog)

        removed = remove_line(lines, 0)

        self.assertIsNone(removed.product_id)
        self.assertEqual(len(lines), 1)
        self.assertEqual(lines[0].product_id, 1)

    def test_line_for_unknown_product_has_no_rate(self):
        line = line_for_product(99, '3', self.catalog)

        self.assertEqual(line.product_id, 99)
        self.assertEqual(line.rate_per_unit, Decimal('0'))
        self.assertEqual(line.unit, '')

    def test_line_cost_is_exact(self):
        line = MaterialLineItem(product_id=2, quantity=Decimal('3.33'), rate_per_unit=Decimal('58.50'))
        self.assertEqual(compute_line_cost(line), Decimal('194.8050'))

    def test_batch_cost_independent_of_order(self):
        lines = [
            MaterialLineItem(product_id=1, quantity=Decimal('30'), rate_per_unit=Decimal('50')),
            MaterialLineItem(product_id=2, quantity=Decimal('2.5'), rate_per_unit=Decimal('58.50')),
            MaterialLineItem(product_id=1, quantity=Decimal('0.75'), rate_per_unit=Decimal('50')),
        ]

        total = compute_batch_cost(lines)

        self.assertEqual(total, Decimal('1500') + Decimal('146.25') + Decimal('37.5'))
        self.assertEqual(compute_batch_cost(list(reversed(lines))), total)

    def test_empty_batch_cost_is_zero(self):
        self.assertEqual(compute_batch_cost([]), Decimal('0'))


class FlakyStore(UsageStore):
    """Store whose writes can be made to fail."""

    def __init__(self, failing_product_ids=(), fail_ledger=False):
        self.failing_product_ids = set(failing_product_ids)
        self.fail_ledger = fail_ledger
        self.updated = []

    def insert_usage_events(self, events):
        if self.fail_ledger:
            raise DatabaseError("connection reset")
        return super().insert_usage_events(events)

    def update_product_stock(self, product_id, new_quantity):
        if product_id in self.failing_product_ids:
            raise DatabaseError("statement timeout")
        self.updated.append(product_id)
        super().update_product_stock(product_id, new_quantity)


class SubmitBatchTestCase(TestCase):
    """Batch submission against the database."""

    def setUp(self):
        self.site = Site.objects.create(
            name='Luxury Villa',
            location='Mumbai',
            start_date=timezone.localdate()
        )
        self.cement = Product.objects.create(
            name='Cement', unit='kg',
            rate_per_unit=Decimal('50'), stock_quantity=Decimal('100')
        )
        self.tiles = Product.objects.create(
            name='Tiles', unit='sqft',
            rate_per_unit=Decimal('58.50'), stock_quantity=Decimal('10')
        )
        self.plywood = Product.objects.create(
            name='Plywood', unit='sheet',
            rate_per_unit=Decimal('2850'), stock_quantity=Decimal('40')
        )
        self.store = UsageStore()

    def lines(self, catalog, *items):
        return [line_for_product(product.id, quantity, catalog) for product, quantity in items]

    def test_single_line_records_event_and_decrements_stock(self):
        """
        Test: A valid line is recorded and stock is deducted.

        Given: Cement with 100 kg in stock at 50 per kg
        When: Recording 30 kg at a site
        Then: One event is written, cost is 1500, stock drops to 70
        """
        catalog = load_catalog(self.store)
        lines = self.lines(catalog, (self.cement, '30'))

        result = submit_batch(lines, self.site.id, catalog, store=self.store)

        self.assertTrue(result.fully_applied)
        self.assertEqual(result.events_written, 1)
        self.assertEqual(result.total_cost, Decimal('1500'))

        event = UsageEvent.objects.get()
        self.assertEqual(event.site_id, self.site.id)
        self.assertEqual(event.product_id, self.cement.id)
        self.assertEqual(event.quantity_used, Decimal('30'))

        self.cement.refresh_from_db()
        self.assertEqual(self.cement.stock_quantity, Decimal('70'))

    def test_insufficient_stock_writes_nothing(self):
        """
        Test: NO events and NO stock change when a line exceeds stock.

        Given: Tiles with 10 sqft in stock
        When: Recording 15 sqft
        Then: The batch is rejected with the available quantity and unit
        """
        catalog = load_catalog(self.store)
        lines = self.lines(catalog, (self.tiles, '15'))

        with self.assertRaises(BatchValidationFailed) as context:
            submit_batch(lines, self.site.id, catalog, store=self.store)

        index, error = context.exception.failures[0]
        self.assertEqual(index, 0)
        self.assertIsInstance(error, InsufficientStock)
        self.assertEqual(error.available, Decimal('10'))
        self.assertEqual(error.unit, 'sqft')
        self.assertEqual(UsageEvent.objects.count(), 0)
        self.tiles.refresh_from_db()
        self.assertEqual(self.tiles.stock_quantity, Decimal('10'))

    def test_two_products_in_submission_order(self):
        """Scenario C: both events written in order, both stocks decremented."""
        catalog = load_catalog(self.store)
        lines = self.lines(catalog, (self.plywood, '4'), (self.cement, '12.5'))

        result = submit_batch(lines, self.site.id, catalog, store=self.store)

        events = list(UsageEvent.objects.order_by('id'))
        self.assertEqual([e.product_id for e in events], [self.plywood.id, self.cement.id])
        self.assertEqual(events[0].usage_date, events[1].usage_date)
        self.assertEqual(result.total_cost, Decimal('11400') + Decimal('625'))

        self.cement.refresh_from_db()
        self.plywood.refresh_from_db()
        self.assertEqual(self.cement.stock_quantity, Decimal('87.5'))
        self.assertEqual(self.plywood.stock_quantity, Decimal('36'))

    def test_one_bad_line_rejects_whole_batch(self):
        catalog = load_catalog(self.store)
        lines = self.lines(catalog, (self.cement, '5'), (self.tiles, '0'), (self.plywood, '50'))

        with self.assertRaises(BatchValidationFailed) as context:
            submit_batch(lines, self.site.id, catalog, store=self.store)

        self.assertEqual(context.exception.line_indices, [1, 2])
        self.assertIn('Material 2', str(context.exception))
        self.assertIn('Material 3', str(context.exception))
        self.assertEqual(UsageEvent.objects.count(), 0)
        self.cement.refresh_from_db()
        self.assertEqual(self.cement.stock_quantity, Decimal('100'))

    def test_empty_batch_rejected(self):
        with self.assertRaises(BatchValidationFailed) as context:
            submit_batch([], self.site.id, load_catalog(self.store), store=self.store)

        self.assertEqual(context.exception.failures, [])
        self.assertIn('at least one material', str(context.exception))

    def test_ledger_failure_leaves_stock_untouched(self):
        store = FlakyStore(fail_ledger=True)
        catalog = load_catalog(store)
        lines = self.lines(catalog, (self.cement, '30'))

        with self.assertRaises(LedgerWriteFailed) as context:
            submit_batch(lines, self.site.id, catalog, store=store)

        self.assertIsInstance(context.exception.cause, DatabaseError)
        self.assertEqual(store.updated, [])
        self.assertEqual(UsageEvent.objects.count(), 0)
        self.cement.refresh_from_db()
        self.assertEqual(self.cement.stock_quantity, Decimal('100'))

    def test_stock_update_failure_is_not_fatal(self):
        store = FlakyStore(failing_product_ids=[self.cement.id])
        catalog = load_catalog(store)
        lines = self.lines(catalog, (self.cement, '30'), (self.plywood, '5'))

        result = submit_batch(lines, self.site.id, catalog, store=store)

        self.assertFalse(result.fully_applied)
        self.assertEqual(result.events_written, 2)
        self.assertEqual(len(result.stock_update_failures), 1)
        self.assertEqual(result.stock_update_failures[0].product_id, self.cement.id)
        self.assertIn('Cement', result.warning)

        self.cement.refresh_from_db()
        self.plywood.refresh_from_db()
        self.assertEqual(self.cement.stock_quantity, Decimal('100'))
        self.assertEqual(self.plywood.stock_quantity, Decimal('35'))
        self.assertEqual(UsageEvent.objects.count(), 2)

    def test_product_deleted_after_snapshot(self):
        catalog = load_catalog(self.store)
        lines = self.lines(catalog, (self.plywood, '2'), (self.cement, '1'))
        Product.objects.filter(pk=self.plywood.pk).delete()

        result = submit_batch(lines, self.site.id, catalog, store=self.store)

        self.assertEqual(result.events_written, 2)
        self.assertEqual([f.product_id for f in result.stock_update_failures], [self.plywood.id])
        self.cement.refresh_from_db()
        self.assertEqual(self.cement.stock_quantity, Decimal('99'))

    def test_same_product_twice_applies_each_line_to_snapshot(self):
        """
        Test: Lines naming the same product each write snapshot - quantity.

        Given: Tiles with 10 sqft in stock
        When: Recording two lines of 6 sqft each
        Then: Both events are written, no error, stock ends at 10 - 6 = 4
        """
        catalog = load_catalog(self.store)
        lines = self.lines(catalog, (self.tiles, '6'), (self.tiles, '6'))

        result = submit_batch(lines, self.site.id, catalog, store=self.store)

        self.assertTrue(result.fully_applied)
        self.assertEqual(result.events_written, 2)
        self.assertEqual(UsageEvent.objects.count(), 2)
        self.tiles.refresh_from_db()
        self.assertEqual(self.tiles.stock_quantity, Decimal('4'))

    def test_last_line_wins_for_repeated_product(self):
        catalog = load_catalog(self.store)
        lines = self.lines(catalog, (self.cement, '30'), (self.cement, '20'))

        submit_batch(lines, self.site.id, catalog, store=self.store)

        self.cement.refresh_from_db()
        self.assertEqual(self.cement.stock_quantity, Decimal('80'))

    @patch('usage.services.validate_batch')
    def test_underflow_stops_updates_and_keeps_events(self, mock_validate):
        """A line the snapshot cannot cover stops stock updates at that line."""
        catalog = load_catalog(self.store)
        lines = self.lines(catalog, (self.cement, '5'), (self.tiles, '15'), (self.plywood, '1'))

        with self.assertRaises(StockUnderflow) as context:
            submit_batch(lines, self.site.id, catalog, store=self.store)

        mock_validate.assert_called_once()
        self.assertEqual(context.exception.product_id, self.tiles.id)
        self.assertEqual(context.exception.available, Decimal('10'))
        self.assertIn('Tiles', str(context.exception))
        self.assertEqual(UsageEvent.objects.count(), 3)

        self.cement.refresh_from_db()
        self.tiles.refresh_from_db()
        self.plywood.refresh_from_db()
        self.assertEqual(self.cement.stock_quantity, Decimal('95'))
        self.assertEqual(self.tiles.stock_quantity, Decimal('10'))
        self.assertEqual(self.plywood.stock_quantity, Decimal('40'))

    def test_quantity_finer_than_ledger_writes_nothing(self):
        """
        Test: NO events and NO stock change for a quantity with 3 decimals.

        Given: Cement with 100 kg in stock
        When: Recording 0.004 kg
        Then: The batch is rejected; the ledger could only store 0.00
        """
        catalog = load_catalog(self.store)
        lines = self.lines(catalog, (self.cement, '0.004'))

        with self.assertRaises(BatchValidationFailed) as context:
            submit_batch(lines, self.site.id, catalog, store=self.store)

        self.assertIsInstance(context.exception.failures[0][1], QuantityTooPrecise)
        self.assertEqual(UsageEvent.objects.count(), 0)
        self.cement.refresh_from_db()
        self.assertEqual(self.cement.stock_quantity, Decimal('100'))

    def test_stale_snapshot_overwrites_concurrent_change(self):
        """Stock is written from the snapshot, not re-read (last write wins)."""
        catalog = load_catalog(self.store)
        lines = self.lines(catalog, (self.cement, '10'))
        Product.objects.filter(pk=self.cement.pk).update(stock_quantity=Decimal('60'))

        submit_batch(lines, self.site.id, catalog, store=self.store)

        self.cement.refresh_from_db()
        self.assertEqual(self.cement.stock_quantity, Decimal('90'))

    def test_notes_stored_on_every_event(self):
        catalog = load_catalog(self.store)
        lines = self.lines(catalog, (self.cement, '1'), (self.plywood, '1'))

        submit_batch(lines, self.site.id, catalog, store=self.store, notes='Ground floor')

        self.assertEqual(
            list(UsageEvent.objects.values_list('notes', flat=True)),
            ['Ground floor', 'Ground floor']
        )

    @patch('usage.tasks.notify_low_stock.delay')
    def test_low_stock_alert_queued(self, mock_delay):
        catalog = load_catalog(self.store)
        lines = self.lines(catalog, (self.cement, '95'), (self.plywood, '1'))

        result = submit_batch(lines, self.site.id, catalog, store=self.store)

        self.assertEqual(result.low_stock_product_ids, [self.cement.id])
        mock_delay.assert_called_once_with([self.cement.id])

    @patch('usage.tasks.notify_low_stock.delay', side_effect=ConnectionError('broker down'))
    def test_alert_queue_failure_does_not_fail_batch(self, mock_delay):
        catalog = load_catalog(self.store)
        lines = self.lines(catalog, (self.tiles, '5'))

        result = submit_batch(lines, self.site.id, catalog, store=self.store)

        self.assertTrue(result.fully_applied)
        mock_delay.assert_called_once()


class AggregateBySiteTestCase(SimpleTestCase):
    """Per-site grouping and totals."""

    def setUp(self):
        self.records = [
            make_record(1, 10, 'Villa', '2', '50'),
            make_record(2, 20, 'Office', '1', '50', product_name='Paint', unit='litre'),
            make_record(3, 10, 'Villa', '4', '50'),
        ]

    def test_groups_in_first_seen_order(self):
        """Scenario D: S1 costs 100 and 200, S2 costs 50."""
        summaries = aggregate_by_site(self.records)

        self.assertEqual([s.site_id for s in summaries], [10, 20])
        self.assertEqual(summaries[0].total_site_cost, Decimal('300'))
        self.assertEqual(len(summaries[0].purchases), 2)
        self.assertEqual(summaries[1].total_site_cost, Decimal('50'))
        self.assertEqual(len(summaries[1].purchases), 1)
        self.assertEqual(grand_total(summaries), Decimal('350'))

    def test_lines_keep_input_order(self):
        summary = aggregate_by_site(self.records)[0]

        self.assertEqual([p.quantity for p in summary.purchases], [Decimal('2'), Decimal('4')])
        self.assertEqual(summary.purchases[1].total_cost, Decimal('200'))
        self.assertEqual(summary.purchases[0].unit, 'kg')

    def test_repeatable(self):
        self.assertEqual(aggregate_by_site(self.records), aggregate_by_site(self.records))

    def test_empty_input(self):
        self.assertEqual(aggregate_by_site([]), [])
        self.assertEqual(grand_total([]), Decimal('0'))

    def test_grand_total_matches_batch_cost_for_any_partition(self):
        quantities = ['1.5', '2', '0.25', '7', '3.3']
        rates = ['50', '58.50', '2850', '12', '0.99']
        for site_count in (1, 2, 5):
            with self.subTest(site_count=site_count):
                records = [
                    make_record(i, i % site_count, f'Site {i % site_count}', quantity, rate)
                    for i, (quantity, rate) in enumerate(zip(quantities, rates))
                ]
                lines = [
                    MaterialLineItem(quantity=r.quantity_used, rate_per_unit=r.rate_per_unit)
                    for r in records
                ]
                self.assertEqual(
                    grand_total(aggregate_by_site(records)),
                    compute_batch_cost(lines)
                )

    def test_filter_by_site(self):
        summaries = aggregate_by_site(self.records)

        self.assertEqual(filter_by_site(summaries, 'all'), summaries)
        self.assertEqual(filter_by_site(summaries, None), summaries)
        self.assertEqual([s.site_id for s in filter_by_site(summaries, '20')], [20])
        self.assertEqual(filter_by_site(summaries, 99), [])
        self.assertEqual(grand_total(filter_by_site(summaries, 20)), Decimal('50'))

    def test_site_usage_total(self):
        self.assertEqual(site_usage_total(self.records), Decimal('350'))

    def test_purchase_summary_payload(self):
        payload = build_purchase_summary(self.records, '10')

        self.assertEqual(payload['site_id'], '10')
        self.assertEqual(len(payload['sites']), 1)
        self.assertEqual(Decimal(payload['grand_total']), Decimal('300'))
        self.assertEqual(payload['sites'][0]['purchases'][0]['product_name'], 'Cement')


class UsageRecordSerializerTestCase(SimpleTestCase):

    def test_largest_line_cost_fits(self):
        """Quantity and rate at their column limits still serialize."""
        record = make_record(1, 10, 'Villa', '9999999999.99', '9999999999.99')

        data = UsageRecordSerializer(record).data

        self.assertEqual(Decimal(data['total_cost']), Decimal('99999999999800000000.0001'))


class UsageStoreTestCase(TestCase):
    """Joined reads from the ledger."""

    def setUp(self):
        today = timezone.localdate()
        self.villa = Site.objects.create(name='Villa', location='Mumbai', start_date=today)
        self.office = Site.objects.create(name='Office', location='Delhi', start_date=today)
        self.cement = Product.objects.create(
            name='Cement', unit='kg', rate_per_unit=Decimal('50'), stock_quantity=Decimal('100')
        )
        self.store = UsageStore()
        now = timezone.now()
        self.old = UsageEvent.objects.create(
            site=self.villa, product=self.cement,
            quantity_used=Decimal('2'), usage_date=now - timedelta(days=2)
        )
        self.new = UsageEvent.objects.create(
            site=self.office, product=self.cement,
            quantity_used=Decimal('1'), usage_date=now
        )

    def test_newest_first_with_joined_fields(self):
        records = self.store.list_usage_events()

        self.assertEqual([r.id for r in records], [self.new.id, self.old.id])
        self.assertEqual(records[0].site_name, 'Office')
        self.assertEqual(records[0].product_name, 'Cement')
        self.assertEqual(records[0].unit, 'kg')
        self.assertEqual(records[1].total_cost, Decimal('100'))

    def test_filter_by_site(self):
        records = self.store.list_usage_events(site_id=self.villa.id)
        self.assertEqual([r.id for r in records], [self.old.id])

    def test_cost_follows_current_rate(self):
        Product.objects.filter(pk=self.cement.pk).update(rate_per_unit=Decimal('60'))

        records = self.store.list_usage_events(site_id=self.villa.id)

        self.assertEqual(records[0].total_cost, Decimal('120'))

    def test_deleting_site_orphans_events(self):
        self.villa.delete()

        self.assertTrue(UsageEvent.objects.filter(pk=self.old.pk).exists())
        self.assertEqual([r.id for r in self.store.list_usage_events()], [self.new.id])

    def test_usage_date_bounds(self):
        records = self.store.list_usage_events(
            since=self.old.usage_date,
            until=self.new.usage_date
        )
        self.assertEqual([r.id for r in records], [self.old.id])

        records = self.store.list_usage_events(since=self.old.usage_date + timedelta(seconds=1))
        self.assertEqual([r.id for r in records], [self.new.id])

    def test_update_missing_product_raises(self):
        with self.assertRaises(Product.DoesNotExist):
            self.store.update_product_stock(999999, Decimal('1'))

    def test_lists_ordered_by_name(self):
        Product.objects.create(name='Adhesive', unit='kg', rate_per_unit=Decimal('18'))

        self.assertEqual([p.name for p in self.store.list_products()], ['Adhesive', 'Cement'])
        self.assertEqual([s.name for s in self.store.list_sites()], ['Office', 'Villa'])

    def test_insert_nothing(self):
        self.assertEqual(self.store.insert_usage_events([]), [])


class SiteUsageAPITestCase(APITestCase):
    """POST/GET /api/sites/{id}/usage/"""

    def setUp(self):
        self.site = Site.objects.create(
            name='Luxury Villa', location='Mumbai', start_date=timezone.localdate()
        )
        self.cement = Product.objects.create(
            name='Cement', unit='kg', rate_per_unit=Decimal('50'), stock_quantity=Decimal('100')
        )
        self.tiles = Product.objects.create(
            name='Tiles', unit='sqft', rate_per_unit=Decimal('58.50'), stock_quantity=Decimal('10')
        )
        self.url = reverse('usage:site-usage', kwargs={'site_id': self.site.id})

    def test_record_usage(self):
        response = self.client.post(self.url, {
            'items': [
                {'product_id': self.cement.id, 'quantity': '30'},
                {'product_id': self.tiles.id, 'quantity': '2'},
            ],
            'notes': 'Foundation work',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['events_written'], 2)
        self.assertEqual(Decimal(response.data['total_cost']), Decimal('1617'))
        self.assertTrue(response.data['fully_applied'])

        self.cement.refresh_from_db()
        self.assertEqual(self.cement.stock_quantity, Decimal('70'))

    def test_insufficient_stock_returns_line_errors(self):
        response = self.client.post(self.url, {
            'items': [{'product_id': self.tiles.id, 'quantity': '15'}],
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        line = response.data['lines'][0]
        self.assertEqual(line['line'], 0)
        self.assertEqual(line['reason'], 'InsufficientStock')
        self.assertIn('Only 10 sqft', line['detail'])
        self.assertEqual(UsageEvent.objects.count(), 0)

    def test_empty_batch(self):
        response = self.client.post(self.url, {'items': []}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('at least one material', response.data['detail'])

    def test_unknown_product(self):
        response = self.client.post(self.url, {
            'items': [{'product_id': 999999, 'quantity': '1'}],
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['lines'][0]['reason'], 'ProductNotFound')

    def test_zero_quantity(self):
        response = self.client.post(self.url, {
            'items': [{'product_id': self.cement.id, 'quantity': '0'}],
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['lines'][0]['reason'], 'NonPositiveQuantity')

    def test_unknown_site(self):
        url = reverse('usage:site-usage', kwargs={'site_id': 999999})
        response = self.client.post(url, {
            'items': [{'product_id': self.cement.id, 'quantity': '1'}],
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_repeated_product_is_created(self):
        response = self.client.post(self.url, {
            'items': [
                {'product_id': self.tiles.id, 'quantity': '6'},
                {'product_id': self.tiles.id, 'quantity': '6'},
            ],
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['events_written'], 2)
        self.tiles.refresh_from_db()
        self.assertEqual(self.tiles.stock_quantity, Decimal('4'))

    @patch('usage.services.validate_batch')
    def test_underflow_returns_conflict(self, mock_validate):
        response = self.client.post(self.url, {
            'items': [{'product_id': self.tiles.id, 'quantity': '15'}],
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['product_id'], self.tiles.id)

    def test_partial_stock_update_returns_multi_status(self):
        store = FlakyStore(failing_product_ids=[self.cement.id])
        with patch('usage.views.get_store', return_value=store):
            response = self.client.post(self.url, {
                'items': [{'product_id': self.cement.id, 'quantity': '5'}],
            }, format='json')

        self.assertEqual(response.status_code, status.HTTP_207_MULTI_STATUS)
        self.assertFalse(response.data['fully_applied'])
        self.assertEqual(response.data['stock_update_failures'][0]['product_id'], self.cement.id)

    def test_ledger_failure_returns_bad_gateway(self):
        store = FlakyStore(fail_ledger=True)
        with patch('usage.views.get_store', return_value=store):
            response = self.client.post(self.url, {
                'items': [{'product_id': self.cement.id, 'quantity': '5'}],
            }, format='json')

        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.cement.refresh_from_db()
        self.assertEqual(self.cement.stock_quantity, Decimal('100'))

    def test_usage_history(self):
        self.client.post(self.url, {
            'items': [{'product_id': self.cement.id, 'quantity': '3'}],
        }, format='json')

        response = self.client.get(self.url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['site_name'], 'Luxury Villa')
        self.assertEqual(Decimal(response.data['total_cost']), Decimal('150'))
        self.assertEqual(len(response.data['usage']), 1)
        self.assertEqual(response.data['usage'][0]['product_name'], 'Cement')


class PurchaseSummaryAPITestCase(APITestCase):
    """GET /api/purchases/summary/ and /api/dashboard/stats/"""

    def setUp(self):
        today = timezone.localdate()
        self.villa = Site.objects.create(name='Villa', location='Mumbai', start_date=today)
        self.office = Site.objects.create(
            name='Office', location='Delhi', start_date=today, status=Site.Status.COMPLETED
        )
        self.cement = Product.objects.create(
            name='Cement', unit='kg', rate_per_unit=Decimal('50'),
            stock_quantity=Decimal('100')
        )
        self.paint = Product.objects.create(
            name='Paint', unit='litre', rate_per_unit=Decimal('25'),
            stock_quantity=Decimal('4')
        )
        now = timezone.now()
        UsageEvent.objects.create(site=self.villa, product=self.cement,
                                  quantity_used=Decimal('4'), usage_date=now)
        UsageEvent.objects.create(site=self.office, product=self.paint,
                                  quantity_used=Decimal('2'), usage_date=now - timedelta(hours=1))
        UsageEvent.objects.create(site=self.villa, product=self.cement,
                                  quantity_used=Decimal('2'), usage_date=now - timedelta(hours=2))

    def test_summary_all_sites(self):
        response = self.client.get(reverse('usage:purchase-summary'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([s['site_name'] for s in response.data['sites']], ['Villa', 'Office'])
        self.assertEqual(Decimal(response.data['sites'][0]['total_site_cost']), Decimal('300'))
        self.assertEqual(Decimal(response.data['sites'][1]['total_site_cost']), Decimal('50'))
        self.assertEqual(Decimal(response.data['grand_total']), Decimal('350'))

    def test_summary_single_site(self):
        response = self.client.get(reverse('usage:purchase-summary'), {'site_id': self.office.id})

        self.assertEqual(len(response.data['sites']), 1)
        self.assertEqual(response.data['sites'][0]['site_id'], self.office.id)
        self.assertEqual(Decimal(response.data['grand_total']), Decimal('50'))

    def test_dashboard_stats(self):
        response = self.client.get(reverse('usage:dashboard-stats'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['active_sites'], 1)
        self.assertEqual(response.data['total_sites'], 2)
        self.assertEqual(Decimal(response.data['total_stock_value']), Decimal('5100'))
        self.assertEqual(Decimal(response.data['total_purchase_cost']), Decimal('350'))
        self.assertEqual(response.data['low_stock_items'], 1)
        self.assertEqual(response.data['currency'], '₹')


class UsageTaskTestCase(TestCase):
    """Celery task bodies, run synchronously."""

    def setUp(self):
        self.site = Site.objects.create(
            name='Villa', location='Mumbai', start_date=timezone.localdate()
        )
        self.low = Product.objects.create(
            name='Paint', unit='litre', rate_per_unit=Decimal('25'), stock_quantity=Decimal('3')
        )
        self.plenty = Product.objects.create(
            name='Cement', unit='kg', rate_per_unit=Decimal('50'), stock_quantity=Decimal('100')
        )

    def test_notify_low_stock_skips_restocked(self):
        result = notify_low_stock.apply(args=[[self.low.id, self.plenty.id]]).get()

        self.assertEqual(result['status'], 'alerted')
        self.assertEqual(result['products'], [self.low.id])

    def test_notify_low_stock_nothing_low(self):
        result = notify_low_stock.apply(args=[[self.plenty.id]]).get()
        self.assertEqual(result['status'], 'skipped')

    def test_daily_report_counts_yesterday(self):
        UsageEvent.objects.create(
            site=self.site, product=self.plenty, quantity_used=Decimal('2'),
            usage_date=timezone.now() - timedelta(days=1)
        )
        UsageEvent.objects.create(
            site=self.site, product=self.plenty, quantity_used=Decimal('5'),
            usage_date=timezone.now()
        )
        UsageEvent.objects.create(
            site=self.site, product=self.plenty, quantity_used=Decimal('7'),
            usage_date=timezone.now() - timedelta(days=2)
        )

        result = generate_daily_usage_report()

        yesterday = timezone.localdate() - timedelta(days=1)
        self.assertEqual(result['date'], yesterday.isoformat())
        self.assertEqual(result['events'], 1)
        self.assertEqual(result['sites'], 1)
        self.assertEqual(Decimal(result['total_cost']), Decimal('100'))
