"""
Tests for Redis-based rate limiting.
"""
from unittest.mock import MagicMock, patch

import redis
from django.test import RequestFactory, SimpleTestCase, override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from . import rate_limiting


class ClientIPTestCase(SimpleTestCase):

    def test_forwarded_for_takes_first_address(self):
        request = RequestFactory().get('/', HTTP_X_FORWARDED_FOR='10.0.0.1, 10.0.0.2')
        self.assertEqual(rate_limiting.get_client_ip(request), '10.0.0.1')

    def test_remote_addr(self):
        request = RequestFactory().get('/', REMOTE_ADDR='192.168.1.5')
        self.assertEqual(rate_limiting.get_client_ip(request), '192.168.1.5')


def fake_redis(count, ttl=42):
    client = MagicMock()
    client.incr.return_value = count
    client.ttl.return_value = ttl
    return client


@override_settings(RATE_LIMIT_ENABLED=True)
class RateLimitTestCase(APITestCase):
    """Limits on the autocomplete and usage endpoints."""

    def setUp(self):
        self.autocomplete_url = reverse('inventory:product-autocomplete')

    def test_disabled_in_settings(self):
        with override_settings(RATE_LIMIT_ENABLED=False), \
                patch.object(rate_limiting, 'get_redis_client') as mock_client:
            response = self.client.get(self.autocomplete_url, {'q': 'cem'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        mock_client.assert_not_called()

    def test_under_limit_adds_headers(self):
        client = fake_redis(count=1)
        with patch.object(rate_limiting, 'get_redis_client', return_value=client):
            response = self.client.get(self.autocomplete_url, {'q': 'cem'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['X-RateLimit-Limit'], '20')
        self.assertEqual(response['X-RateLimit-Remaining'], '19')
        client.expire.assert_called_once()

    def test_over_limit_returns_429(self):
        with patch.object(rate_limiting, 'get_redis_client', return_value=fake_redis(count=21)):
            response = self.client.get(self.autocomplete_url, {'q': 'cem'})

        self.assertEqual(response.status_code, status.HTTP_429_TOO_MANY_REQUESTS)
        self.assertEqual(response['Retry-After'], '42')
        self.assertEqual(response.data['retry_after'], 42)

    def test_redis_unavailable_fails_open(self):
        with patch.object(rate_limiting, 'get_redis_client', return_value=None):
            response = self.client.get(self.autocomplete_url, {'q': 'cem'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_redis_error_fails_open(self):
        client = fake_redis(count=1)
        client.incr.side_effect = redis.ConnectionError('gone')
        with patch.object(rate_limiting, 'get_redis_client', return_value=client):
            response = self.client.get(self.autocomplete_url, {'q': 'cem'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_class_based_view_limit(self):
        url = reverse('usage:site-usage', kwargs={'site_id': 1})
        with patch.object(rate_limiting, 'get_redis_client', return_value=fake_redis(count=31)):
            response = self.client.get(url)

        self.assertEqual(response.status_code, status.HTTP_429_TOO_MANY_REQUESTS)
        self.assertEqual(response['X-RateLimit-Limit'], '30')
        self.assertEqual(response.data['error'], 'Rate limit exceeded')


class HealthCheckTestCase(SimpleTestCase):

    def test_health(self):
        response = self.client.get('/health/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'healthy')
