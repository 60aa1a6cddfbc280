from django.contrib import admin
from django.utils.html import format_html, format_html_join

from apps.qr.services import get_scan_summary
from .models import Restaurant


@admin.register(Restaurant)
class RestaurantAdmin(admin.ModelAdmin):
    list_display = ('name', 'slug', 'is_active', 'created_at')
    list_filter = ('is_active',)
    search_fields = ('name', 'slug')
    prepopulated_fields = {'slug': ('name',)}
    readonly_fields = ('scan_summary',)

    @admin.display(description='Сканирования')
    def scan_summary(self, obj):
        """Сводка сканирований за 14 дней"""
        if not obj.pk:
            return '-'
        summary = get_scan_summary(obj)

        devices = format_html_join(
            ', ', '{}: {}', summary['devices'].items()
        ) or '-'
        top_codes = format_html_join(
            '', '<li>{} ({})</li>',
            ((code['name'], code['scan_count']) for code in summary['top_codes']),
        )
        return format_html(
            '<p>Всего сканирований: {}<br>Сегодня: {}<br>Устройства: {}</p>'
            '<p>Топ QR-кодов:</p><ul>{}</ul>',
            summary['total_scans'],
            summary['today_scans'],
            devices,
            top_codes,
        )
