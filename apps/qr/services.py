"""
QR code business logic.

Lookup used by the redirect endpoint, the management operations
(create / update / deactivate / bulk import), image rendering and
scan analytics. Views and admin stay thin and call into here.
"""
import logging
import re
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import timedelta
from io import BytesIO
from typing import Any, Optional

import pandas as pd
import qrcode
from django.conf import settings
from django.core.exceptions import ValidationError
from django.utils import timezone

from apps.restaurants.models import Restaurant
from .models import QRCode, ScanEvent

logger = logging.getLogger(__name__)

DEFAULT_APP_BASE_URL = 'https://qr-restaurant.lovable.app'

MOBILE_RE = re.compile(r'mobile|android|iphone|ipod', re.IGNORECASE)
TABLET_RE = re.compile(r'tablet|ipad', re.IGNORECASE)
COLOR_RE = re.compile(r'^#[0-9A-Fa-f]{6}$')

# Поля, которые можно менять после создания
EDITABLE_FIELDS = ('name', 'target_url', 'qr_type', 'expires_at', 'metadata', 'is_active')


# --- Redirect ---------------------------------------------------------------

def get_active_qr(qr_id: str) -> Optional[QRCode]:
    """Найти активный QR-код по id (или None)"""
    return QRCode.objects.resolvable().filter(id=qr_id).first()


def resolve_target_url(target_url: str) -> str:
    """Make a stored target absolute; relative paths hang off APP_BASE_URL."""
    if target_url.startswith(('http://', 'https://')):
        return target_url
    base_url = getattr(settings, 'APP_BASE_URL', DEFAULT_APP_BASE_URL).rstrip('/')
    separator = '' if target_url.startswith('/') else '/'
    return f'{base_url}{separator}{target_url}'


def detect_device(user_agent: str) -> str:
    """Rough device class from a User-Agent header."""
    if MOBILE_RE.search(user_agent or ''):
        return ScanEvent.Device.MOBILE
    if TABLET_RE.search(user_agent or ''):
        return ScanEvent.Device.TABLET
    return ScanEvent.Device.DESKTOP


def get_qr_value(qr: QRCode) -> str:
    """
    Value encoded into the printed code.

    Dynamic codes point at the redirect endpoint so the destination can
    change later; static codes carry the destination itself.
    """
    if qr.qr_type == QRCode.Type.DYNAMIC:
        base_url = getattr(settings, 'SITE_URL', 'http://localhost:8000').rstrip('/')
        return f'{base_url}/qr-redirect/{qr.id}'
    return resolve_target_url(qr.target_url)


# --- Management -------------------------------------------------------------

def create_qr_code(
    restaurant: Restaurant,
    name: str,
    target_url: str,
    qr_type: str = QRCode.Type.DYNAMIC,
    expires_at=None,
    metadata: Optional[dict] = None,
) -> QRCode:
    """Validate and store a new QR code. Raises ValidationError."""
    qr = QRCode(
        restaurant=restaurant,
        name=(name or '').strip(),
        target_url=(target_url or '').strip(),
        qr_type=qr_type,
        expires_at=expires_at,
        metadata=metadata or {},
    )
    qr.full_clean()
    qr.save()
    logger.info(f'QR {qr.id} created for restaurant {restaurant.slug}')
    return qr


def update_qr_code(qr: QRCode, **fields: Any) -> QRCode:
    """Partial update of editable fields. The id never changes."""
    unknown = set(fields) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f'Fields cannot be updated: {", ".join(sorted(unknown))}')

    for name, value in fields.items():
        setattr(qr, name, value)
    qr.full_clean()
    qr.save(update_fields=[*fields, 'updated_at'])
    return qr


def deactivate_qr_code(qr: QRCode) -> QRCode:
    """Мягкое удаление: код перестаёт работать, статистика сохраняется"""
    if qr.is_active:
        qr.is_active = False
        qr.save(update_fields=['is_active', 'updated_at'])
        logger.info(f'QR {qr.id} deactivated')
    return qr


@dataclass
class ImportResult:
    created: list = field(default_factory=list)
    skipped: int = 0

    @property
    def created_count(self) -> int:
        return len(self.created)


def _is_header(row) -> bool:
    """Первая строка - заголовок только если это ровно "name,url"."""
    cells = [str(cell).strip().lower() for cell in row[:2]]
    return cells == ['name', 'url']


def import_qr_codes_csv(restaurant: Restaurant, source) -> ImportResult:
    """
    Bulk-create dynamic QR codes from a "name,url" CSV.

    Args:
        restaurant: Owner of the new codes
        source: Path or file-like object

    Returns:
        ImportResult with created codes and the number of skipped rows
    """
    result = ImportResult()
    try:
        # Лишние поля в строке отбрасываем, как split(',') по первым двум
        df = pd.read_csv(
            source,
            header=None,
            dtype=str,
            engine='python',
            on_bad_lines=lambda fields: fields[:2],
            skipinitialspace=True,
            skip_blank_lines=True,
        ).fillna('')
    except pd.errors.EmptyDataError:
        return result

    rows = df.values.tolist()
    if rows and _is_header(rows[0]):
        rows = rows[1:]

    for row in rows:
        name = str(row[0]).strip()
        url = str(row[1]).strip() if len(row) > 1 else ''
        if not name or not url:
            result.skipped += 1
            continue
        try:
            result.created.append(create_qr_code(restaurant, name, url))
        except ValidationError as e:
            logger.warning(f'Skipping CSV row {name!r}: {e}')
            result.skipped += 1

    return result


# --- Rendering --------------------------------------------------------------

def _validate_color(color: Optional[str], default: str) -> str:
    if color and COLOR_RE.match(color.strip()):
        return color.strip()
    return default


def generate_qr_png(qr: QRCode, box_size: int = 10) -> bytes:
    """Render the QR code as PNG using colours from metadata."""
    metadata = qr.metadata or {}

    qr_image = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=box_size,
        border=2,
    )
    qr_image.add_data(get_qr_value(qr))
    qr_image.make(fit=True)

    img = qr_image.make_image(
        fill_color=_validate_color(metadata.get('fg_color'), '#000000'),
        back_color=_validate_color(metadata.get('bg_color'), '#FFFFFF'),
    )

    buffer = BytesIO()
    img.save(buffer, format='PNG')
    return buffer.getvalue()


# --- Analytics --------------------------------------------------------------

def get_scan_summary(restaurant: Restaurant, days: int = 14) -> dict:
    """Статистика сканирований ресторана"""
    scans = ScanEvent.objects.filter(restaurant=restaurant)
    today = timezone.localdate()
    start = today - timedelta(days=days - 1)

    daily = defaultdict(int)
    hourly = [0] * 24
    devices = defaultdict(int)

    for scan in scans.values('scanned_at', 'device'):
        local = timezone.localtime(scan['scanned_at'])
        devices[scan['device'] or 'Unknown'] += 1
        hourly[local.hour] += 1
        if local.date() >= start:
            daily[local.date()] += 1

    volume = []
    for offset in range(days):
        day = start + timedelta(days=offset)
        volume.append({'date': day.isoformat(), 'scans': daily.get(day, 0)})

    top_codes = (
        QRCode.objects.filter(restaurant=restaurant, is_active=True)
        .order_by('-scan_count', 'name')[:5]
    )

    return {
        'total_scans': sum(devices.values()),
        'today_scans': daily.get(today, 0),
        'volume': volume,
        'devices': dict(sorted(devices.items(), key=lambda x: -x[1])),
        'hourly': hourly,
        'top_codes': [
            {'id': qr.id, 'name': qr.name, 'scan_count': qr.scan_count}
            for qr in top_codes
        ],
    }
