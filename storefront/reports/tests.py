"""
Test suite for the reports app
Tests: admin dashboard numbers
"""
from decimal import Decimal

from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status

from storefront.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from storefront.orders import services


@override_settings(ORDER_TAX_RATE='0.00', ORDER_SHIPPING_FLAT='0.00')
class AdminDashboardAPITests(TestCase):
    """Test the admin dashboard"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.customer = TestDataFactory.create_user()
        self.seller = TestDataFactory.create_seller()
        self.product = TestDataFactory.create_product(seller=self.seller, price=Decimal('15.00'))
        TestDataFactory.create_product(seller=self.seller, status='draft')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_dashboard(self):
        """Counts cover everything; revenue counts delivered orders only"""
        delivered = TestDataFactory.create_order(self.customer, products=[self.product], quantity=2)
        for next_status in ('confirmed', 'processing', 'shipped', 'delivered'):
            services.update_status(delivered, next_status)
            delivered.refresh_from_db()
        TestDataFactory.create_order(self.customer, products=[self.product])

        response = self.client.get('/api/v1/admin/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        stats = response.data['stats']
        self.assertEqual(stats['total_users'], 3)
        self.assertEqual(stats['total_customers'], 1)
        self.assertEqual(stats['total_sellers'], 1)
        self.assertEqual(stats['total_products'], 2)
        self.assertEqual(stats['active_products'], 1)
        self.assertEqual(stats['total_orders'], 2)
        self.assertEqual(stats['pending_orders'], 1)
        self.assertEqual(stats['total_revenue'], 30.0)

        self.assertEqual(len(response.data['recent_orders']), 2)
        self.assertEqual([row['id'] for row in response.data['top_products']], [self.product.pk])
        self.assertEqual(response.data['monthly_revenue'], [
            {'month': timezone.localtime().strftime('%Y-%m'), 'revenue': 30.0, 'orders': 1}
        ])

    def test_empty_dashboard(self):
        """No orders means zero revenue and an empty monthly series"""
        response = self.client.get('/api/v1/admin/dashboard/')
        self.assertEqual(response.data['stats']['total_revenue'], 0.0)
        self.assertEqual(response.data['monthly_revenue'], [])

    def test_non_admin_forbidden(self):
        """Sellers and customers cannot open the admin dashboard"""
        for user in (self.customer, self.seller):
            self.client.authenticate_user(user)
            response = self.client.get('/api/v1/admin/dashboard/')
            self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
