"""
Management command for bulk QR code creation from CSV.

Each row is "name,url"; a header row is detected and skipped.
"""
import pandas as pd
from django.core.management.base import BaseCommand, CommandError

from apps.qr.services import get_qr_value, import_qr_codes_csv
from apps.restaurants.models import Restaurant


class Command(BaseCommand):
    help = 'Create dynamic QR codes for a restaurant from a name,url CSV file'

    def add_arguments(self, parser):
        parser.add_argument('csv_path', help='Path to the CSV file')
        parser.add_argument('--restaurant', required=True, help='Restaurant slug')

    def handle(self, *args, **options):
        try:
            restaurant = Restaurant.objects.get(slug=options['restaurant'])
        except Restaurant.DoesNotExist:
            raise CommandError(f"Restaurant '{options['restaurant']}' not found")

        try:
            result = import_qr_codes_csv(restaurant, options['csv_path'])
        except FileNotFoundError:
            raise CommandError(f"File '{options['csv_path']}' not found")
        except pd.errors.ParserError as e:
            raise CommandError(f"Could not parse '{options['csv_path']}': {e}")

        for qr in result.created:
            self.stdout.write(f'  {qr.name}: {get_qr_value(qr)}')

        self.stdout.write(self.style.SUCCESS(
            f'Created {result.created_count} QR codes, skipped {result.skipped} rows'
        ))
