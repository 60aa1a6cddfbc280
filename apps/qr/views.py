import logging

from django.db import DatabaseError
from django.http import HttpResponse, HttpResponseRedirect
from django.views import View

from .ratelimit import get_client_ip, is_rate_limited
from .services import get_active_qr, resolve_target_url

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Headers': 'authorization, x-client-info, apikey, content-type',
}

ERROR_PAGES = {
    400: ('Invalid QR Code', 'This QR code link is invalid.'),
    404: ('QR Code Not Found', 'This QR code does not exist or is no longer active.'),
    429: ('Too Many Requests', 'Please try again later.'),
    500: ('Error', 'Something went wrong.'),
}


class QRRedirectView(View):
    """
    Редирект по QR-коду на целевую ссылку.

    id берётся из ?id=..., иначе из последнего сегмента пути.
    Ответы: 400 без id, 404 для несуществующего или неактивного кода,
    302 с абсолютным Location.
    """

    http_method_names = ['get', 'head', 'options']

    def options(self, request, *args, **kwargs):
        return self.with_cors(HttpResponse())

    def get(self, request, qr_id=None):
        qr_id = (request.GET.get('id') or qr_id or '').strip()
        if not qr_id:
            return self.error_page(400)

        # Защита от ботов
        ip = get_client_ip(request)
        if is_rate_limited(ip):
            logger.warning(f'Scan rate limit hit for {ip}')
            return self.error_page(429)

        # Находим активный QR-код
        try:
            qr = get_active_qr(qr_id)
        except DatabaseError:
            logger.exception(f'QR lookup failed for {qr_id}')
            return self.error_page(500)

        if qr is None:
            return self.error_page(404)

        # Логируем сканирование
        self.log_scan(request, qr, ip)

        return self.with_cors(HttpResponseRedirect(resolve_target_url(qr.target_url)))

    def log_scan(self, request, qr, ip):
        """Поставить сканирование в очередь; ошибка не мешает редиректу"""
        from .tasks import record_scan

        try:
            record_scan.delay(
                qr.id,
                user_agent=request.META.get('HTTP_USER_AGENT', ''),
                referrer=request.META.get('HTTP_REFERER', ''),
                ip_address=None if ip == 'unknown' else ip,
            )
        except Exception as e:
            logger.warning(f'Could not queue scan for QR {qr.id}: {e}')

    def error_page(self, status):
        title, message = ERROR_PAGES[status]
        response = HttpResponse(
            f'<html><body><h1>{title}</h1><p>{message}</p></body></html>',
            status=status,
            content_type='text/html',
        )
        return self.with_cors(response)

    @staticmethod
    def with_cors(response):
        for header, value in CORS_HEADERS.items():
            response[header] = value
        return response
