"""
Rate limiting for QR scans.

Fixed window counter per client IP kept in the Django cache, so the
limit is shared between workers when the cache is Redis.

Settings (in settings.py):
    QR_RATE_LIMIT_REQUESTS = 100  # max scans
    QR_RATE_LIMIT_WINDOW = 60     # per N seconds
"""
import logging

from django.conf import settings
from django.core.cache import cache
from django.core.exceptions import ValidationError
from django.core.validators import validate_ipv46_address

logger = logging.getLogger(__name__)

KEY_PREFIX = 'qr_rate'


def _valid_ip(value):
    try:
        validate_ipv46_address(value)
    except ValidationError:
        return None
    return value


def get_client_ip(request):
    """Extract client IP from request; malformed values become 'unknown'."""
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = _valid_ip(x_forwarded_for.split(',')[0].strip())
        if ip:
            return ip
    return _valid_ip(request.META.get('REMOTE_ADDR') or '') or 'unknown'


def is_rate_limited(ip):
    """
    Count this scan and report whether the IP exceeded its limit.

    Fails open: when the cache is unreachable the scan is allowed.
    """
    max_requests = getattr(settings, 'QR_RATE_LIMIT_REQUESTS', 100)
    window = getattr(settings, 'QR_RATE_LIMIT_WINDOW', 60)
    key = f'{KEY_PREFIX}:{ip}'

    try:
        # First scan in the window
        if cache.add(key, 1, window):
            return False

        try:
            count = cache.incr(key)
        except ValueError:
            # Expired between add() and incr()
            cache.set(key, 1, window)
            return False
    except Exception as e:
        logger.warning(f'Rate limit cache unavailable, allowing scan from {ip}: {e}')
        return False

    return count > max_requests
