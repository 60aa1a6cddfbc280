"""Integration tests for the QR redirect endpoint."""

from datetime import timedelta
from unittest.mock import patch

from django.core.cache import cache
from django.db import DatabaseError
from django.test import TestCase, Client, override_settings
from django.urls import reverse
from django.utils import timezone

from apps.restaurants.models import Restaurant
from apps.qr.models import QRCode, ScanEvent

ZERO_UUID = '00000000-0000-0000-0000-000000000000'


class QRRedirectTests(TestCase):
    """Status mapping of the redirect endpoint."""

    def setUp(self):
        cache.clear()
        self.client = Client()
        self.restaurant = Restaurant.objects.create(name='Test Restaurant')
        self.qr = QRCode.objects.create(
            id='abc-123',
            restaurant=self.restaurant,
            name='Table 5',
            target_url='https://menu.example.com/table/5',
        )
        self.url = reverse('qr:redirect')

    def test_missing_id_returns_400(self):
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, 400)

    def test_empty_id_returns_400(self):
        response = self.client.get(self.url, {'id': ''})
        self.assertEqual(response.status_code, 400)

    def test_blank_id_returns_400(self):
        response = self.client.get(self.url, {'id': '   '})
        self.assertEqual(response.status_code, 400)

    def test_trailing_slash_without_id_returns_400(self):
        response = self.client.get('/qr-redirect/')
        self.assertEqual(response.status_code, 400)

    def test_zero_uuid_returns_404(self):
        response = self.client.get(self.url, {'id': ZERO_UUID})
        self.assertEqual(response.status_code, 404)

    def test_unknown_id_returns_404(self):
        response = self.client.get(self.url, {'id': 'does-not-exist'})
        self.assertEqual(response.status_code, 404)

    def test_active_qr_redirects(self):
        """Active code should redirect to its destination."""
        response = self.client.get(self.url, {'id': 'abc-123'})

        self.assertEqual(response.status_code, 302)
        self.assertEqual(response['Location'], 'https://menu.example.com/table/5')

    def test_location_is_absolute(self):
        response = self.client.get(self.url, {'id': self.qr.id})
        self.assertTrue(response['Location'].startswith('http'))

    def test_uuid_id_redirects(self):
        """Codes created without an explicit id get a UUID and resolve."""
        qr = QRCode.objects.create(
            restaurant=self.restaurant,
            name='Bar',
            target_url='https://menu.example.com/bar',
        )
        self.assertEqual(len(qr.id), 36)

        response = self.client.get(self.url, {'id': qr.id})
        self.assertEqual(response.status_code, 302)
        self.assertEqual(response['Location'], 'https://menu.example.com/bar')

    def test_id_in_path(self):
        response = self.client.get('/qr-redirect/abc-123')

        self.assertEqual(response.status_code, 302)
        self.assertEqual(response['Location'], 'https://menu.example.com/table/5')

    def test_id_in_path_with_trailing_slash(self):
        response = self.client.get('/qr-redirect/abc-123/')
        self.assertEqual(response.status_code, 302)

    def test_query_param_wins_over_path(self):
        response = self.client.get('/qr-redirect/abc-123', {'id': ZERO_UUID})
        self.assertEqual(response.status_code, 404)

    def test_unknown_id_in_path_returns_404(self):
        response = self.client.get(f'/qr-redirect/{ZERO_UUID}')
        self.assertEqual(response.status_code, 404)

    def test_repeated_requests_are_idempotent(self):
        first = self.client.get(self.url, {'id': 'abc-123'})
        second = self.client.get(self.url, {'id': 'abc-123'})

        self.assertEqual(first.status_code, second.status_code)
        self.assertEqual(first['Location'], second['Location'])

    def test_deactivated_qr_returns_404(self):
        """Inactive code is indistinguishable from a missing one."""
        response = self.client.get(self.url, {'id': 'abc-123'})
        self.assertEqual(response.status_code, 302)

        self.qr.is_active = False
        self.qr.save()

        response = self.client.get(self.url, {'id': 'abc-123'})
        self.assertEqual(response.status_code, 404)

    def test_expired_qr_returns_404(self):
        self.qr.expires_at = timezone.now() - timedelta(minutes=1)
        self.qr.save()

        response = self.client.get(self.url, {'id': 'abc-123'})
        self.assertEqual(response.status_code, 404)

    def test_not_yet_expired_qr_redirects(self):
        self.qr.expires_at = timezone.now() + timedelta(days=1)
        self.qr.save()

        response = self.client.get(self.url, {'id': 'abc-123'})
        self.assertEqual(response.status_code, 302)

    def test_inactive_restaurant_returns_404(self):
        self.restaurant.is_active = False
        self.restaurant.save()

        response = self.client.get(self.url, {'id': 'abc-123'})
        self.assertEqual(response.status_code, 404)

    @override_settings(APP_BASE_URL='https://app.example.com')
    def test_relative_target_resolved_to_absolute(self):
        self.qr.target_url = '/menu/table/5'
        self.qr.save()

        response = self.client.get(self.url, {'id': 'abc-123'})

        self.assertEqual(response.status_code, 302)
        self.assertEqual(response['Location'], 'https://app.example.com/menu/table/5')

    def test_store_error_returns_500(self):
        with patch('apps.qr.views.get_active_qr', side_effect=DatabaseError('connection lost')):
            response = self.client.get(self.url, {'id': 'abc-123'})

        self.assertEqual(response.status_code, 500)
        self.assertFalse(ScanEvent.objects.exists())

    def test_error_pages_are_html(self):
        response = self.client.get(self.url)
        self.assertEqual(response['Content-Type'], 'text/html')
        self.assertIn(b'Invalid QR Code', response.content)

    def test_cors_headers(self):
        response = self.client.get(self.url, {'id': 'abc-123'})
        self.assertEqual(response['Access-Control-Allow-Origin'], '*')

        response = self.client.get(self.url)
        self.assertEqual(response['Access-Control-Allow-Origin'], '*')

    def test_options_preflight(self):
        response = self.client.options(self.url)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response['Access-Control-Allow-Origin'], '*')
        self.assertIn('authorization', response['Access-Control-Allow-Headers'])

    def test_post_not_allowed(self):
        response = self.client.post(self.url, {'id': 'abc-123'})
        self.assertEqual(response.status_code, 405)


class QRRateLimitTests(TestCase):
    """Per-IP scan rate limiting."""

    def setUp(self):
        cache.clear()
        self.client = Client()
        restaurant = Restaurant.objects.create(name='Test Restaurant')
        self.qr = QRCode.objects.create(
            restaurant=restaurant,
            name='Table 1',
            target_url='https://menu.example.com/table/1',
        )
        self.url = reverse('qr:redirect')

    @override_settings(QR_RATE_LIMIT_REQUESTS=2)
    def test_rate_limit_returns_429(self):
        for _ in range(2):
            response = self.client.get(self.url, {'id': self.qr.id})
            self.assertEqual(response.status_code, 302)

        response = self.client.get(self.url, {'id': self.qr.id})
        self.assertEqual(response.status_code, 429)

    @override_settings(QR_RATE_LIMIT_REQUESTS=1)
    def test_rate_limit_is_per_ip(self):
        response = self.client.get(self.url, {'id': self.qr.id}, HTTP_X_FORWARDED_FOR='10.0.0.1')
        self.assertEqual(response.status_code, 302)

        response = self.client.get(self.url, {'id': self.qr.id}, HTTP_X_FORWARDED_FOR='10.0.0.2, 10.0.0.9')
        self.assertEqual(response.status_code, 302)

        response = self.client.get(self.url, {'id': self.qr.id}, HTTP_X_FORWARDED_FOR='10.0.0.1')
        self.assertEqual(response.status_code, 429)

    @override_settings(QR_RATE_LIMIT_REQUESTS=1)
    def test_missing_id_not_counted(self):
        """Validation happens before the rate limit."""
        for _ in range(3):
            response = self.client.get(self.url)
            self.assertEqual(response.status_code, 400)

        response = self.client.get(self.url, {'id': self.qr.id})
        self.assertEqual(response.status_code, 302)


class QRScanTrackingTests(TestCase):
    """Scan analytics recorded on redirect."""

    def setUp(self):
        cache.clear()
        self.client = Client()
        self.restaurant = Restaurant.objects.create(name='Test Restaurant')
        self.qr = QRCode.objects.create(
            restaurant=self.restaurant,
            name='Table 1',
            target_url='https://menu.example.com/table/1',
        )
        self.url = reverse('qr:redirect')

    def test_scan_recorded(self):
        response = self.client.get(
            self.url,
            {'id': self.qr.id},
            HTTP_USER_AGENT='Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X)',
            HTTP_REFERER='https://instagram.com/',
            HTTP_X_FORWARDED_FOR='203.0.113.7, 10.0.0.1',
        )
        self.assertEqual(response.status_code, 302)

        self.qr.refresh_from_db()
        self.assertEqual(self.qr.scan_count, 1)
        self.assertIsNotNone(self.qr.last_scanned_at)

        scan = ScanEvent.objects.get(qr=self.qr)
        self.assertEqual(scan.restaurant, self.restaurant)
        self.assertEqual(scan.device, ScanEvent.Device.MOBILE)
        self.assertEqual(scan.referrer, 'https://instagram.com/')
        self.assertEqual(scan.ip_address, '203.0.113.7')

    def test_multiple_scans_counted(self):
        for _ in range(5):
            self.client.get(self.url, {'id': self.qr.id})

        self.qr.refresh_from_db()
        self.assertEqual(self.qr.scan_count, 5)
        self.assertEqual(ScanEvent.objects.filter(qr=self.qr).count(), 5)

    def test_failed_lookups_not_recorded(self):
        self.client.get(self.url)
        self.client.get(self.url, {'id': ZERO_UUID})

        self.qr.is_active = False
        self.qr.save()
        self.client.get(self.url, {'id': self.qr.id})

        self.assertFalse(ScanEvent.objects.exists())
        self.qr.refresh_from_db()
        self.assertEqual(self.qr.scan_count, 0)

    def test_queue_failure_does_not_block_redirect(self):
        with patch('apps.qr.tasks.record_scan.delay', side_effect=RuntimeError('broker down')):
            response = self.client.get(self.url, {'id': self.qr.id})

        self.assertEqual(response.status_code, 302)
        self.assertEqual(response['Location'], 'https://menu.example.com/table/1')


class QRRateLimitResilienceTests(TestCase):
    """Rate limiting must not break redirects."""

    def setUp(self):
        cache.clear()
        self.client = Client()
        restaurant = Restaurant.objects.create(name='Test Restaurant')
        QRCode.objects.create(
            id='abc-123',
            restaurant=restaurant,
            name='Table 5',
            target_url='https://menu.example.com/table/5',
        )
        self.url = reverse('qr:redirect')

    def test_cache_outage_still_redirects(self):
        """Unreachable cache lets the scan through."""
        with patch('apps.qr.ratelimit.cache.add', side_effect=ConnectionError('cache down')):
            response = self.client.get(self.url, {'id': 'abc-123'})

        self.assertEqual(response.status_code, 302)
        self.assertEqual(response['Location'], 'https://menu.example.com/table/5')
        self.assertEqual(response['Access-Control-Allow-Origin'], '*')

    def test_cache_outage_on_incr_still_redirects(self):
        self.client.get(self.url, {'id': 'abc-123'})

        with patch('apps.qr.ratelimit.cache.incr', side_effect=ConnectionError('cache down')):
            response = self.client.get(self.url, {'id': 'abc-123'})

        self.assertEqual(response.status_code, 302)

    @override_settings(QR_RATE_LIMIT_REQUESTS=1)
    def test_malformed_forwarded_for_falls_back_to_remote_addr(self):
        """Garbage X-Forwarded-For values share the REMOTE_ADDR bucket."""
        response = self.client.get(
            self.url, {'id': 'abc-123'}, HTTP_X_FORWARDED_FOR='not an ip ' * 50,
        )
        self.assertEqual(response.status_code, 302)

        response = self.client.get(
            self.url, {'id': 'abc-123'}, HTTP_X_FORWARDED_FOR='something else',
        )
        self.assertEqual(response.status_code, 429)
