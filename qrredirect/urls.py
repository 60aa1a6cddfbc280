"""URL configuration for qrredirect project."""

from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    # Django admin (management surface for restaurants and QR codes)
    path('admin/', admin.site.urls),

    # QR redirect: /qr-redirect?id=<ID> or /qr-redirect/<ID>
    path('', include('apps.qr.urls', namespace='qr')),
]
