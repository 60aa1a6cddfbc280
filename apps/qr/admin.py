from django.contrib import admin
from django.core.exceptions import PermissionDenied
from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from django.urls import path, reverse
from django.utils.html import format_html

from .models import QRCode, ScanEvent
from .services import deactivate_qr_code, generate_qr_png, get_qr_value


@admin.register(QRCode)
class QRCodeAdmin(admin.ModelAdmin):
    list_display = ('name', 'id', 'restaurant', 'qr_type', 'scan_count', 'is_active', 'expired', 'created_at')
    list_filter = ('is_active', 'qr_type', 'restaurant')
    search_fields = ('id', 'name', 'target_url', 'restaurant__name')
    readonly_fields = ('id', 'encoded_value', 'png_link', 'scan_count', 'last_scanned_at', 'created_at', 'updated_at')
    actions = ['deactivate']

    def get_urls(self):
        # Должен стоять раньше стандартного '<path:object_id>/'
        urls = [
            path(
                '<path:object_id>/png/',
                self.admin_site.admin_view(self.download_png),
                name='qr_qrcode_png',
            ),
        ]
        return urls + super().get_urls()

    def download_png(self, request, object_id):
        """PNG-файл QR-кода для печати"""
        qr = get_object_or_404(QRCode, pk=object_id)
        if not self.has_view_permission(request, qr):
            raise PermissionDenied

        response = HttpResponse(generate_qr_png(qr), content_type='image/png')
        response['Content-Disposition'] = f'attachment; filename="QR-{qr.pk}.png"'
        return response

    @admin.display(description='Закодированная ссылка')
    def encoded_value(self, obj):
        if not obj.pk:
            return '-'
        value = get_qr_value(obj)
        return format_html('<a href="{}" target="_blank">{}</a>', value, value)

    @admin.display(description='PNG')
    def png_link(self, obj):
        if not obj.pk:
            return '-'
        url = reverse('admin:qr_qrcode_png', args=[obj.pk])
        return format_html('<a href="{}">Скачать PNG</a>', url)

    @admin.display(description='Истёк', boolean=True)
    def expired(self, obj):
        return obj.is_expired

    @admin.action(description='Деактивировать выбранные QR-коды')
    def deactivate(self, request, queryset):
        for qr in queryset:
            deactivate_qr_code(qr)
        self.message_user(request, f'Деактивировано: {queryset.count()}')


@admin.register(ScanEvent)
class ScanEventAdmin(admin.ModelAdmin):
    list_display = ('qr', 'scanned_at', 'device', 'ip_address')
    list_filter = ('device', 'restaurant')
    date_hierarchy = 'scanned_at'
