from django.urls import path
from .views import QRRedirectView

app_name = 'qr'

urlpatterns = [
    # /qr-redirect?id=<ID>
    path('qr-redirect', QRRedirectView.as_view(), name='redirect'),
    path('qr-redirect/', QRRedirectView.as_view()),
    # /qr-redirect/<ID> (what dynamic codes encode)
    path('qr-redirect/<str:qr_id>', QRRedirectView.as_view(), name='redirect_by_path'),
    path('qr-redirect/<str:qr_id>/', QRRedirectView.as_view()),
]
