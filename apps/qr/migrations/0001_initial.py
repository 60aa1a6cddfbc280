import apps.qr.models
import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('restaurants', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='QRCode',
            fields=[
                ('id', models.CharField(default=apps.qr.models.generate_qr_id, editable=False, max_length=64, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=200, verbose_name='Название')),
                ('target_url', models.CharField(help_text='Абсолютный URL или путь в приложении, например /menu/table/5', max_length=2048, validators=[apps.qr.models.validate_target_url], verbose_name='Ссылка')),
                ('qr_type', models.CharField(choices=[('dynamic', 'Динамический (статистика, можно менять ссылку)'), ('static', 'Статический (прямая ссылка)')], default='dynamic', max_length=10, verbose_name='Тип')),
                ('expires_at', models.DateTimeField(blank=True, null=True, verbose_name='Истекает')),
                ('metadata', models.JSONField(blank=True, default=dict, verbose_name='Оформление')),
                ('scan_count', models.PositiveIntegerField(default=0, verbose_name='Сканирований')),
                ('last_scanned_at', models.DateTimeField(blank=True, null=True, verbose_name='Последнее сканирование')),
                ('is_active', models.BooleanField(default=True, verbose_name='Активен')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Создан')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Обновлён')),
                ('restaurant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='qr_codes', to='restaurants.restaurant', verbose_name='Ресторан')),
            ],
            options={
                'verbose_name': 'QR-код',
                'verbose_name_plural': 'QR-коды',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='ScanEvent',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('scanned_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name='Время')),
                ('device', models.CharField(blank=True, choices=[('Mobile', 'Телефон'), ('Tablet', 'Планшет'), ('Desktop', 'Компьютер')], max_length=10, verbose_name='Устройство')),
                ('user_agent', models.CharField(blank=True, max_length=500, verbose_name='User Agent')),
                ('referrer', models.CharField(blank=True, max_length=500, verbose_name='Источник')),
                ('ip_address', models.GenericIPAddressField(blank=True, null=True, verbose_name='IP')),
                ('qr', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='scan_events', to='qr.qrcode', verbose_name='QR-код')),
                ('restaurant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='scan_events', to='restaurants.restaurant', verbose_name='Ресторан')),
            ],
            options={
                'verbose_name': 'Сканирование',
                'verbose_name_plural': 'Сканирования',
                'ordering': ['-scanned_at'],
            },
        ),
    ]
