"""
Tests for the material catalog.

Test Cases:
1. Stock flags and stock value on the model
2. Product CRUD through the API
3. Search and low stock filtering
4. Autocomplete
"""
from decimal import Decimal

from django.test import SimpleTestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from .models import Product


class ProductModelTestCase(SimpleTestCase):
    """Derived stock properties."""

    def test_low_stock_is_inclusive(self):
        product = Product(stock_quantity=Decimal('10'), low_stock_threshold=Decimal('10'))
        self.assertTrue(product.is_low_stock)
        self.assertFalse(product.is_out_of_stock)

    def test_out_of_stock(self):
        product = Product(stock_quantity=Decimal('0'), low_stock_threshold=Decimal('10'))
        self.assertTrue(product.is_out_of_stock)
        self.assertTrue(product.is_low_stock)

    def test_well_stocked(self):
        product = Product(stock_quantity=Decimal('10.5'), low_stock_threshold=Decimal('10'))
        self.assertFalse(product.is_low_stock)

    def test_stock_value(self):
        product = Product(stock_quantity=Decimal('12.5'), rate_per_unit=Decimal('18'))
        self.assertEqual(product.stock_value, Decimal('225'))

    def test_defaults(self):
        product = Product(name='Primer', unit='litre', rate_per_unit=Decimal('190'))
        self.assertEqual(product.stock_quantity, Decimal('0'))
        self.assertEqual(product.low_stock_threshold, Decimal('10'))


class ProductAPITestCase(APITestCase):
    """CRUD and filtering on /api/products/"""

    def setUp(self):
        self.cement = Product.objects.create(
            name='Cement OPC 53', unit='bag',
            rate_per_unit=Decimal('420'), stock_quantity=Decimal('200')
        )
        self.adhesive = Product.objects.create(
            name='Tile Adhesive', unit='kg',
            rate_per_unit=Decimal('18'), stock_quantity=Decimal('8')
        )
        self.list_url = reverse('inventory:product-list')

    def test_list_ordered_by_name(self):
        response = self.client.get(self.list_url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([p['name'] for p in response.data], ['Cement OPC 53', 'Tile Adhesive'])
        self.assertTrue(response.data[1]['is_low_stock'])

    def test_search_matches_name_or_unit(self):
        response = self.client.get(self.list_url, {'q': 'cement'})
        self.assertEqual([p['id'] for p in response.data], [self.cement.id])

        response = self.client.get(self.list_url, {'q': 'KG'})
        self.assertEqual([p['id'] for p in response.data], [self.adhesive.id])

    def test_low_stock_filter(self):
        response = self.client.get(self.list_url, {'low_stock': 'true'})
        self.assertEqual([p['id'] for p in response.data], [self.adhesive.id])

    def test_create_product(self):
        response = self.client.post(self.list_url, {
            'name': '  Wall Putty ',
            'unit': 'kg',
            'rate_per_unit': '24.00',
            'stock_quantity': '150',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        product = Product.objects.get(pk=response.data['id'])
        self.assertEqual(product.name, 'Wall Putty')
        self.assertEqual(product.low_stock_threshold, Decimal('10'))

    def test_create_rejects_negative_values(self):
        response = self.client.post(self.list_url, {
            'name': 'Primer',
            'unit': 'litre',
            'rate_per_unit': '-1',
            'stock_quantity': '-5',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('rate_per_unit', response.data)
        self.assertIn('stock_quantity', response.data)

    def test_create_rejects_blank_unit(self):
        response = self.client.post(self.list_url, {
            'name': 'Primer',
            'unit': '   ',
            'rate_per_unit': '190',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('unit', response.data)

    def test_update_stock(self):
        url = reverse('inventory:product-detail', kwargs={'pk': self.adhesive.id})

        response = self.client.patch(url, {'stock_quantity': '58.5'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_low_stock'])
        self.adhesive.refresh_from_db()
        self.assertEqual(self.adhesive.stock_quantity, Decimal('58.5'))

    def test_delete_product(self):
        url = reverse('inventory:product-detail', kwargs={'pk': self.cement.id})

        response = self.client.delete(url)

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Product.objects.filter(pk=self.cement.id).exists())

    def test_autocomplete(self):
        url = reverse('inventory:product-autocomplete')

        response = self.client.get(url, {'q': 'til'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['name'], 'Tile Adhesive')
        self.assertEqual(Decimal(response.data[0]['stock_quantity']), Decimal('8'))

    def test_autocomplete_requires_three_characters(self):
        url = reverse('inventory:product-autocomplete')

        response = self.client.get(url, {'q': 'ti'})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
