import uuid
from urllib.parse import urlsplit

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F
from django.utils import timezone


def generate_qr_id():
    """Непрозрачный идентификатор нового QR-кода"""
    return str(uuid.uuid4())


def validate_target_url(value):
    """Ссылка: абсолютный http(s) URL или путь от корня приложения"""
    if value.startswith(('http://', 'https://')):
        if not urlsplit(value).netloc:
            raise ValidationError('В URL нет домена.', code='invalid_url')
        return
    if value.startswith('/'):
        return
    raise ValidationError(
        'Укажите абсолютный http(s) URL или путь, начинающийся с "/".',
        code='invalid_url',
    )


class QRCodeQuerySet(models.QuerySet):

    def resolvable(self):
        """QR-коды, по которым сейчас разрешён редирект"""
        now = timezone.now()
        return self.filter(
            is_active=True,
            restaurant__is_active=True,
        ).filter(
            models.Q(expires_at__isnull=True) | models.Q(expires_at__gt=now)
        )


class QRCode(models.Model):
    """QR-код с постоянным id и изменяемой ссылкой"""

    class Type(models.TextChoices):
        DYNAMIC = 'dynamic', 'Динамический (статистика, можно менять ссылку)'
        STATIC = 'static', 'Статический (прямая ссылка)'

    id = models.CharField(
        primary_key=True,
        max_length=64,
        default=generate_qr_id,
        editable=False,
    )
    restaurant = models.ForeignKey(
        'restaurants.Restaurant',
        on_delete=models.CASCADE,
        related_name='qr_codes',
        verbose_name='Ресторан'
    )

    name = models.CharField('Название', max_length=200)
    target_url = models.CharField(
        'Ссылка',
        max_length=2048,
        validators=[validate_target_url],
        help_text='Абсолютный URL или путь в приложении, например /menu/table/5'
    )
    qr_type = models.CharField('Тип', max_length=10, choices=Type.choices, default=Type.DYNAMIC)
    expires_at = models.DateTimeField('Истекает', blank=True, null=True)

    # fg_color, bg_color, frame_text
    metadata = models.JSONField('Оформление', default=dict, blank=True)

    # Статистика
    scan_count = models.PositiveIntegerField('Сканирований', default=0)
    last_scanned_at = models.DateTimeField('Последнее сканирование', blank=True, null=True)

    is_active = models.BooleanField('Активен', default=True)
    created_at = models.DateTimeField('Создан', auto_now_add=True)
    updated_at = models.DateTimeField('Обновлён', auto_now=True)

    objects = QRCodeQuerySet.as_manager()

    class Meta:
        verbose_name = 'QR-код'
        verbose_name_plural = 'QR-коды'
        ordering = ['-created_at']

    def __str__(self):
        return f'{self.name} ({self.id})'

    @property
    def is_expired(self):
        return self.expires_at is not None and self.expires_at <= timezone.now()

    def increment_scans(self):
        """Увеличить счётчик сканирований (атомарно)"""
        now = timezone.now()
        QRCode.objects.filter(pk=self.pk).update(
            scan_count=F('scan_count') + 1,
            last_scanned_at=now,
        )


class ScanEvent(models.Model):
    """Лог сканирования QR-кода"""

    class Device(models.TextChoices):
        MOBILE = 'Mobile', 'Телефон'
        TABLET = 'Tablet', 'Планшет'
        DESKTOP = 'Desktop', 'Компьютер'

    id = models.BigAutoField(primary_key=True)
    qr = models.ForeignKey(
        QRCode,
        on_delete=models.CASCADE,
        related_name='scan_events',
        verbose_name='QR-код'
    )
    restaurant = models.ForeignKey(
        'restaurants.Restaurant',
        on_delete=models.CASCADE,
        related_name='scan_events',
        verbose_name='Ресторан'
    )
    scanned_at = models.DateTimeField('Время', default=timezone.now, db_index=True)
    device = models.CharField('Устройство', max_length=10, choices=Device.choices, blank=True)
    user_agent = models.CharField('User Agent', max_length=500, blank=True)
    referrer = models.CharField('Источник', max_length=500, blank=True)
    ip_address = models.GenericIPAddressField('IP', blank=True, null=True)

    class Meta:
        verbose_name = 'Сканирование'
        verbose_name_plural = 'Сканирования'
        ordering = ['-scanned_at']

    def __str__(self):
        return f'{self.qr_id} @ {self.scanned_at}'
