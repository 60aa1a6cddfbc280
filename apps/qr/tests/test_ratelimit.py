"""Tests for scan rate limiting helpers."""

from unittest.mock import patch

from django.core.cache import cache
from django.test import TestCase, RequestFactory, override_settings

from apps.qr.ratelimit import get_client_ip, is_rate_limited


class ClientIPTests(TestCase):

    def setUp(self):
        self.factory = RequestFactory()

    def test_remote_addr(self):
        request = self.factory.get('/qr-redirect', REMOTE_ADDR='192.0.2.10')
        self.assertEqual(get_client_ip(request), '192.0.2.10')

    def test_first_forwarded_hop(self):
        request = self.factory.get('/qr-redirect', HTTP_X_FORWARDED_FOR='203.0.113.7, 10.0.0.1')
        self.assertEqual(get_client_ip(request), '203.0.113.7')

    def test_ipv6_forwarded_hop(self):
        request = self.factory.get('/qr-redirect', HTTP_X_FORWARDED_FOR='2001:db8::1')
        self.assertEqual(get_client_ip(request), '2001:db8::1')

    def test_malformed_forwarded_hop_ignored(self):
        request = self.factory.get(
            '/qr-redirect',
            HTTP_X_FORWARDED_FOR='<script> with spaces',
            REMOTE_ADDR='192.0.2.10',
        )
        self.assertEqual(get_client_ip(request), '192.0.2.10')

    def test_nothing_usable(self):
        request = self.factory.get('/qr-redirect', REMOTE_ADDR='')
        self.assertEqual(get_client_ip(request), 'unknown')


class IsRateLimitedTests(TestCase):

    def setUp(self):
        cache.clear()

    @override_settings(QR_RATE_LIMIT_REQUESTS=2)
    def test_limit(self):
        self.assertFalse(is_rate_limited('192.0.2.1'))
        self.assertFalse(is_rate_limited('192.0.2.1'))
        self.assertTrue(is_rate_limited('192.0.2.1'))
        self.assertFalse(is_rate_limited('192.0.2.2'))

    def test_cache_error_fails_open(self):
        with patch('apps.qr.ratelimit.cache.add', side_effect=ConnectionError('cache down')):
            with self.assertLogs('apps.qr.ratelimit', level='WARNING'):
                self.assertFalse(is_rate_limited('192.0.2.1'))
