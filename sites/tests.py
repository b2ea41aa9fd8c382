"""
Tests for job sites.

Test Cases:
1. Site creation defaults and date validation
2. Listing newest first with status filter
3. Deleting a site keeps its usage history
"""
from datetime import date
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import SimpleTestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from inventory.models import Product
from usage.models import UsageEvent
from .models import Site


class SiteModelTestCase(SimpleTestCase):

    def test_end_before_start_is_invalid(self):
        site = Site(name='Villa', location='Mumbai',
                    start_date=date(2024, 5, 10), end_date=date(2024, 5, 1))

        with self.assertRaises(ValidationError):
            site.clean()

    def test_default_status_is_active(self):
        site = Site(name='Villa', location='Mumbai', start_date=date(2024, 5, 10))
        self.assertEqual(site.status, Site.Status.ACTIVE)
        self.assertTrue(site.is_active)


class SiteAPITestCase(APITestCase):
    """CRUD on /api/sites/"""

    def setUp(self):
        self.list_url = reverse('sites:site-list')
        self.villa = Site.objects.create(
            name='Luxury Villa', location='Mumbai', start_date=date(2024, 1, 15)
        )
        self.office = Site.objects.create(
            name='Office Complex', location='Delhi', start_date=date(2024, 2, 1),
            status=Site.Status.ON_HOLD
        )

    def test_create_site(self):
        """
        Test: A new site starts active.

        Given: A name, location and start date
        When: Creating a site with blank contacts
        Then: The site is active and the contacts are stored as null
        """
        response = self.client.post(self.list_url, {
            'name': 'Boutique Hotel',
            'location': 'Goa',
            'start_date': '2024-03-01',
            'supervisor': '',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'active')
        self.assertEqual(response.data['status_display'], 'Active')
        self.assertIsNone(response.data['supervisor'])
        self.assertIsNone(response.data['end_date'])

    def test_create_rejects_end_before_start(self):
        response = self.client.post(self.list_url, {
            'name': 'Clinic',
            'location': 'Chennai',
            'start_date': '2024-03-10',
            'end_date': '2024-03-01',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('end_date', response.data)

    def test_partial_update_checks_existing_start_date(self):
        url = reverse('sites:site-detail', kwargs={'pk': self.villa.id})

        response = self.client.patch(url, {'end_date': '2023-12-31'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_complete_site(self):
        url = reverse('sites:site-detail', kwargs={'pk': self.villa.id})

        response = self.client.patch(url, {
            'status': 'completed', 'end_date': '2024-06-30'
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.villa.refresh_from_db()
        self.assertEqual(self.villa.status, Site.Status.COMPLETED)

    def test_list_newest_first(self):
        response = self.client.get(self.list_url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([s['id'] for s in response.data], [self.office.id, self.villa.id])

    def test_status_filter(self):
        response = self.client.get(self.list_url, {'status': 'on_hold'})
        self.assertEqual([s['id'] for s in response.data], [self.office.id])

    def test_unknown_status_filter_is_ignored(self):
        response = self.client.get(self.list_url, {'status': 'archived'})
        self.assertEqual(len(response.data), 2)

    def test_delete_keeps_usage_history(self):
        product = Product.objects.create(
            name='Cement', unit='kg', rate_per_unit=Decimal('50'), stock_quantity=Decimal('10')
        )
        UsageEvent.objects.create(site=self.villa, product=product, quantity_used=Decimal('1'))
        url = reverse('sites:site-detail', kwargs={'pk': self.villa.id})

        response = self.client.delete(url)

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Site.objects.filter(pk=self.villa.id).exists())
        self.assertEqual(UsageEvent.objects.filter(site_id=self.villa.id).count(), 1)
