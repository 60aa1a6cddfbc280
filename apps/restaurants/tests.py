"""Tests for restaurants app."""

from django.test import TestCase

from .models import Restaurant


class RestaurantModelTests(TestCase):
    """Tests for Restaurant model."""

    def test_restaurant_creation(self):
        """Restaurant should be created active with auto-generated slug."""
        restaurant = Restaurant.objects.create(name='Café "Blue Door"')
        self.assertIsNotNone(restaurant.id)
        self.assertEqual(restaurant.slug, 'cafe-blue-door')
        self.assertTrue(restaurant.is_active)

    def test_restaurant_slug_uniqueness(self):
        """Duplicate restaurant names should get unique slugs."""
        first = Restaurant.objects.create(name='Test Bistro')
        second = Restaurant.objects.create(name='Test Bistro')
        third = Restaurant.objects.create(name='Test Bistro')

        self.assertEqual(first.slug, 'test-bistro')
        self.assertEqual(second.slug, 'test-bistro-1')
        self.assertEqual(third.slug, 'test-bistro-2')

    def test_transliterated_slug(self):
        """Non-latin names should be transliterated."""
        restaurant = Restaurant.objects.create(name='Кафе "У Вани"')
        self.assertEqual(restaurant.slug, 'kafe-u-vani')

    def test_explicit_slug_kept(self):
        restaurant = Restaurant.objects.create(name='Anything', slug='custom')
        self.assertEqual(restaurant.slug, 'custom')

    def test_str(self):
        self.assertEqual(str(Restaurant(name='Zappy')), 'Zappy')
