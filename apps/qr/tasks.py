"""Celery tasks for QR scan tracking."""

import logging

from celery import shared_task
from django.core.exceptions import ValidationError
from django.core.validators import validate_ipv46_address

from .models import QRCode, ScanEvent
from .services import detect_device

logger = logging.getLogger(__name__)


@shared_task(ignore_result=True)
def record_scan(qr_id: str, user_agent: str = '', referrer: str = '', ip_address: str = None):
    """
    Store a scan event and bump the code's counters.

    Args:
        qr_id: Id of the scanned QRCode
        user_agent: Raw User-Agent header
        referrer: Raw Referer header
        ip_address: Client IP, if known
    """
    try:
        qr = QRCode.objects.get(id=qr_id)
    except QRCode.DoesNotExist:
        logger.warning(f'QR {qr_id} disappeared before its scan was recorded')
        return

    if ip_address:
        try:
            validate_ipv46_address(ip_address)
        except ValidationError:
            ip_address = None

    ScanEvent.objects.create(
        qr=qr,
        restaurant_id=qr.restaurant_id,
        device=detect_device(user_agent),
        user_agent=(user_agent or '')[:500],
        referrer=(referrer or '')[:500],
        ip_address=ip_address or None,
    )
    qr.increment_scans()
    logger.debug(f'Scan recorded for QR {qr_id}')
