"""
Test suite for the shop app
Tests: cart add/replace/update/remove and wishlist
"""
from decimal import Decimal

from django.test import TestCase
from rest_framework import status

from storefront.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from storefront.shop.models import CartItem, WishlistItem


class CartAPITests(TestCase):
    """Test cart endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.product = TestDataFactory.create_product(price=Decimal('25.00'), quantity=4)
        self.other = TestDataFactory.create_product(price=Decimal('10.00'), quantity=10)

    def test_empty_cart(self):
        """A new user gets an empty cart"""
        response = self.client.get('/api/v1/cart/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['items'], [])
        self.assertEqual(response.data['subtotal'], '0.00')

    def test_add_item(self):
        """Adding creates a line and totals follow"""
        response = self.client.post('/api/v1/cart/items/', {'product_id': self.product.pk, 'quantity': 2}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['product_ids'], [self.product.pk])
        self.assertEqual(response.data['item_count'], 2)
        self.assertEqual(response.data['subtotal'], '50.00')

    def test_add_duplicate_conflict(self):
        """A product already in the cart is not added again"""
        self.client.post('/api/v1/cart/items/', {'product_id': self.product.pk}, format='json')
        response = self.client.post('/api/v1/cart/items/', {'product_id': self.product.pk}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(CartItem.objects.filter(cart__user=self.user).count(), 1)

    def test_add_clamps_to_stock(self):
        """Quantities above stock are clamped"""
        response = self.client.post('/api/v1/cart/items/', {'product_id': self.product.pk, 'quantity': 9}, format='json')
        self.assertEqual(response.data['item_count'], 4)

    def test_add_unavailable(self):
        """Inactive and sold-out products cannot be added"""
        inactive = TestDataFactory.create_product(status='inactive')
        sold_out = TestDataFactory.create_product(quantity=0)
        for product in (inactive, sold_out):
            response = self.client.post('/api/v1/cart/items/', {'product_id': product.pk}, format='json')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_add_missing_product(self):
        """Unknown products are a 404"""
        response = self.client.post('/api/v1/cart/items/', {'product_id': 99999}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_update_quantity(self):
        """PATCH changes the quantity; zero removes the line"""
        self.client.post('/api/v1/cart/items/', {'product_id': self.product.pk}, format='json')
        response = self.client.patch(f'/api/v1/cart/items/{self.product.pk}/', {'quantity': 3}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['item_count'], 3)

        response = self.client.patch(f'/api/v1/cart/items/{self.product.pk}/', {'quantity': 0}, format='json')
        self.assertEqual(response.data['items'], [])

    def test_remove_item(self):
        """DELETE removes a line; missing lines are a 404"""
        self.client.post('/api/v1/cart/items/', {'product_id': self.product.pk}, format='json')
        response = self.client.delete(f'/api/v1/cart/items/{self.product.pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['items'], [])
        response = self.client.delete(f'/api/v1/cart/items/{self.product.pk}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_replace_cart(self):
        """PUT replaces the cart and skips unavailable products"""
        inactive = TestDataFactory.create_product(status='inactive')
        self.client.post('/api/v1/cart/items/', {'product_id': self.other.pk}, format='json')
        response = self.client.put('/api/v1/cart/', {'items': [
            {'product_id': self.product.pk, 'quantity': 1},
            {'product_id': inactive.pk, 'quantity': 1},
            {'product_id': 99999, 'quantity': 1},
        ]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['product_ids'], [self.product.pk])
        self.assertEqual(sorted(response.data['skipped_product_ids']), sorted([inactive.pk, 99999]))

    def test_clear_cart(self):
        """DELETE empties the cart"""
        self.client.post('/api/v1/cart/items/', {'product_id': self.product.pk}, format='json')
        response = self.client.delete('/api/v1/cart/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['item_count'], 0)

    def test_requires_login(self):
        """Anonymous users have no cart"""
        self.client.logout()
        response = self.client.get('/api/v1/cart/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class WishlistAPITests(TestCase):
    """Test wishlist endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.product = TestDataFactory.create_product()

    def test_add_and_list(self):
        """Added products show up in the list and the check endpoint"""
        response = self.client.post(f'/api/v1/wishlist/{self.product.pk}/')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        response = self.client.get('/api/v1/wishlist/')
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['items'][0]['product']['id'], self.product.pk)

        response = self.client.get(f'/api/v1/wishlist/{self.product.pk}/check/')
        self.assertTrue(response.data['in_wishlist'])

    def test_duplicate_rejected(self):
        """A product can be wishlisted once"""
        self.client.post(f'/api/v1/wishlist/{self.product.pk}/')
        response = self.client.post(f'/api/v1/wishlist/{self.product.pk}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(WishlistItem.objects.filter(user=self.user).count(), 1)

    def test_remove(self):
        """Removing works once, then 404s"""
        self.client.post(f'/api/v1/wishlist/{self.product.pk}/')
        response = self.client.delete(f'/api/v1/wishlist/{self.product.pk}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        response = self.client.delete(f'/api/v1/wishlist/{self.product.pk}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_wishlists_are_per_user(self):
        """Other users' wishlists are not visible"""
        WishlistItem.objects.create(user=TestDataFactory.create_user(), product=self.product)
        response = self.client.get('/api/v1/wishlist/')
        self.assertEqual(response.data['count'], 0)
        response = self.client.get(f'/api/v1/wishlist/{self.product.pk}/check/')
        self.assertFalse(response.data['in_wishlist'])

    def test_clear(self):
        """DELETE on the list clears it"""
        self.client.post(f'/api/v1/wishlist/{self.product.pk}/')
        response = self.client.delete('/api/v1/wishlist/')
        self.assertEqual(response.data['count'], 0)
        self.assertFalse(WishlistItem.objects.filter(user=self.user).exists())
