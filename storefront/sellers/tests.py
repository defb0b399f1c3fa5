"""
Test suite for the sellers app
Tests: store profile, nearby sellers, storefront, vendor panel, seller approval
"""
from decimal import Decimal

from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient

from storefront.core.models import AuditLog
from storefront.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from storefront.orders import services as order_services
from storefront.orders.models import Order
from storefront.sellers import geo
from storefront.sellers.models import SellerDetails

# Bengaluru MG Road
ORIGIN = (12.9716, 77.5946)


class GeoTests(TestCase):
    """Test distance helpers"""

    def test_haversine_zero(self):
        """A point is zero km from itself"""
        self.assertEqual(geo.haversine_km(*ORIGIN, *ORIGIN), 0)

    def test_haversine_known_distance(self):
        """Bengaluru to Mysuru is roughly 125 km"""
        distance = geo.haversine_km(*ORIGIN, 12.2958, 76.6394)
        self.assertAlmostEqual(distance, 127, delta=5)

    def test_validate_coordinates(self):
        """Out-of-range values raise ValueError"""
        geo.validate_coordinates(-90, 180)
        with self.assertRaises(ValueError):
            geo.validate_coordinates(91, 0)
        with self.assertRaises(ValueError):
            geo.validate_coordinates(0, -181)

    def test_bounding_box_near_pole(self):
        """Longitude bounds are dropped when the box reaches a pole"""
        min_lat, max_lat, min_lng, max_lng = geo.bounding_box(89.99, 0, 50)
        self.assertEqual(max_lat, 90.0)
        self.assertIsNone(min_lng)
        self.assertIsNone(max_lng)

    def test_find_nearby_sorted_and_excludes_suspended(self):
        """Results are nearest first; suspended sellers and sellers without location are skipped"""
        far = TestDataFactory.create_seller(latitude=12.99, longitude=77.60)
        near = TestDataFactory.create_seller(latitude=12.972, longitude=77.595)
        suspended = TestDataFactory.create_seller(latitude=12.9717, longitude=77.5947)
        suspended.is_suspended = True
        suspended.save()
        TestDataFactory.create_seller()

        matches = geo.find_nearby_sellers(*ORIGIN, radius_km=5)
        self.assertEqual([details.user for details, _ in matches], [near, far])


class SellerDetailsAPITests(TestCase):
    """Test the seller's own store profile"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.seller = TestDataFactory.create_seller(with_details=False)
        self.client.authenticate_user(self.seller)

    def payload(self, **overrides):
        data = {
            'seller_name': 'Ravi Kumar',
            'store_name': 'Ravi Electronics',
            'phone': '9876543210',
            'street': '1 Brigade Road',
            'city': 'Bengaluru',
            'state': 'Karnataka',
            'pincode': '560025',
            'latitude': 12.9719,
            'longitude': 77.6070,
            'gst_number': '29abcde1234f1z5',
        }
        data.update(overrides)
        return data

    def test_get_without_profile(self):
        """GET returns null before the profile exists"""
        response = self.client.get('/api/v1/sellers/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNone(response.data)

    def test_create_then_update(self):
        """First PUT creates (201); later writes update (200)"""
        response = self.client.put('/api/v1/sellers/me/', self.payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['gst_number'], '29ABCDE1234F1Z5')
        self.assertTrue(response.data['has_location'])
        self.assertFalse(response.data['is_approved'])

        response = self.client.patch('/api/v1/sellers/me/', {'store_name': 'Ravi Mobiles'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(SellerDetails.objects.get(user=self.seller).store_name, 'Ravi Mobiles')

    def test_invalid_pincode(self):
        """Pincodes must be six digits"""
        response = self.client.put('/api/v1/sellers/me/', self.payload(pincode='5600'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('pincode', response.data)

    def test_latitude_without_longitude(self):
        """Coordinates come in pairs"""
        response = self.client.put('/api/v1/sellers/me/', self.payload(longitude=None), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_seller_cannot_self_approve(self):
        """is_approved is read-only"""
        self.client.put('/api/v1/sellers/me/', self.payload(is_approved=True), format='json')
        self.assertFalse(SellerDetails.objects.get(user=self.seller).is_approved)

    def test_customer_forbidden(self):
        """Customers have no store profile"""
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.get('/api/v1/sellers/me/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class NearbySellersAPITests(TestCase):
    """Test the nearby sellers search"""

    def setUp(self):
        self.client = APIClient()
        self.near = TestDataFactory.create_seller(latitude=12.9750, longitude=77.6000)
        self.further = TestDataFactory.create_seller(latitude=12.9900, longitude=77.6100)
        self.distant = TestDataFactory.create_seller(latitude=13.1986, longitude=77.7066)

    def test_default_radius(self):
        """Without ?radius= the 5 km default applies; results are nearest first"""
        response = self.client.get('/api/v1/sellers/nearby/', {'lat': ORIGIN[0], 'lng': ORIGIN[1]})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)
        self.assertEqual([row['user']['id'] for row in response.data['results']], [self.near.pk, self.further.pk])
        self.assertLessEqual(response.data['results'][0]['distance_km'], response.data['results'][1]['distance_km'])
        self.assertEqual(response.data['search_params']['radius'], 5)

    def test_larger_radius(self):
        """A wider radius picks up the airport-area seller"""
        response = self.client.get('/api/v1/sellers/nearby/', {'lat': ORIGIN[0], 'lng': ORIGIN[1], 'radius': 50})
        self.assertEqual(response.data['count'], 3)

    def test_missing_coordinates(self):
        """lat and lng are both required"""
        response = self.client.get('/api/v1/sellers/nearby/', {'lat': ORIGIN[0]})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Latitude and longitude are required')

    def test_non_numeric(self):
        """Unparsable values are rejected"""
        response = self.client.get('/api/v1/sellers/nearby/', {'lat': 'north', 'lng': ORIGIN[1]})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Invalid coordinates or radius values')

    def test_non_finite_values(self):
        """nan and inf are rejected like any unparsable value"""
        for params in ({'radius': 'nan'}, {'radius': 'inf'}, {'lat': 'nan'}):
            query = dict({'lat': ORIGIN[0], 'lng': ORIGIN[1]}, **params)
            response = self.client.get('/api/v1/sellers/nearby/', query)
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
            self.assertEqual(response.data['error'], 'Invalid coordinates or radius values')

    def test_radius_bounds(self):
        """Radius must be in (0, 500]"""
        for radius in (0, -3, 501):
            response = self.client.get('/api/v1/sellers/nearby/', {'lat': ORIGIN[0], 'lng': ORIGIN[1], 'radius': radius})
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_out_of_range(self):
        """Latitude beyond 90 is rejected"""
        response = self.client.get('/api/v1/sellers/nearby/', {'lat': 120, 'lng': ORIGIN[1]})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Latitude must be between -90 and 90')


class SellerStorefrontAPITests(TestCase):
    """Test the public store page"""

    def test_storefront(self):
        """Only active products are listed"""
        seller = TestDataFactory.create_seller()
        product = TestDataFactory.create_product(seller=seller)
        TestDataFactory.create_product(seller=seller, status='draft')
        response = APIClient().get(f'/api/v1/sellers/{seller.pk}/storefront/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([item['id'] for item in response.data['results']], [product.pk])
        self.assertEqual(response.data['seller']['details']['store_name'], f'Store {seller.username}')

    def test_suspended_seller_hidden(self):
        """Suspended sellers have no storefront"""
        seller = TestDataFactory.create_seller()
        seller.is_suspended = True
        seller.save()
        response = APIClient().get(f'/api/v1/sellers/{seller.pk}/storefront/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_customer_is_not_a_store(self):
        """Customer ids 404"""
        customer = TestDataFactory.create_user()
        response = APIClient().get(f'/api/v1/sellers/{customer.pk}/storefront/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class VendorPanelAPITests(TestCase):
    """Test the seller's products, orders, dashboard and analytics"""

    def setUp(self):
        self.seller = TestDataFactory.create_seller()
        self.other_seller = TestDataFactory.create_seller()
        self.customer = TestDataFactory.create_user()
        self.mine = TestDataFactory.create_product(name='My Kettle', seller=self.seller, price=Decimal('40.00'), quantity=5)
        self.theirs = TestDataFactory.create_product(name='Their Toaster', seller=self.other_seller, price=Decimal('60.00'))
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.seller)

    def test_vendor_products(self):
        """Only my products, in any status"""
        draft = TestDataFactory.create_product(seller=self.seller, status='draft')
        response = self.client.get('/api/v1/vendor/products/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual({item['id'] for item in response.data['results']}, {self.mine.pk, draft.pk})

        response = self.client.get('/api/v1/vendor/products/', {'search': 'kettle'})
        self.assertEqual([item['id'] for item in response.data['results']], [self.mine.pk])

    def test_vendor_orders_only_my_lines(self):
        """Mixed orders show only my lines and my total"""
        order = TestDataFactory.create_order(self.customer, products=[self.mine, self.theirs], quantity=2)
        TestDataFactory.create_order(self.customer, products=[self.theirs])

        response = self.client.get('/api/v1/vendor/orders/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['results']), 1)
        result = response.data['results'][0]
        self.assertEqual(result['id'], order.pk)
        self.assertEqual([item['product'] for item in result['seller_items']], [self.mine.pk])
        self.assertEqual(result['seller_total'], Decimal('80.00'))

    def test_vendor_dashboard(self):
        """Revenue counts delivered orders only"""
        delivered = TestDataFactory.create_order(self.customer, products=[self.mine])
        for next_status in ('confirmed', 'processing', 'shipped', 'delivered'):
            delivered = order_services.update_status(delivered, next_status)
        TestDataFactory.create_order(self.customer, products=[self.mine])

        response = self.client.get('/api/v1/vendor/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        stats = response.data['stats']
        self.assertEqual(stats['total_products'], 1)
        self.assertEqual(stats['total_orders'], 2)
        self.assertEqual(stats['pending_orders'], 1)
        self.assertEqual(stats['total_revenue'], 40.0)
        self.assertEqual(stats['low_stock_products'], 1)
        self.assertEqual(len(response.data['monthly_revenue']), 1)
        self.assertEqual(response.data['monthly_revenue'][0]['revenue'], 40.0)

    def test_vendor_analytics(self):
        """Analytics accept known periods only"""
        TestDataFactory.create_order(self.customer, products=[self.mine])
        response = self.client.get('/api/v1/vendor/analytics/', {'period': '7d'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['orders_by_status'], [{'status': Order.STATUS_PENDING, 'count': 1}])

        response = self.client.get('/api/v1/vendor/analytics/', {'period': 'forever'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_customer_forbidden(self):
        """Customers cannot open the vendor panel"""
        self.client.authenticate_user(self.customer)
        response = self.client.get('/api/v1/vendor/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class AdminSellerAPITests(TestCase):
    """Test seller administration"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.seller = TestDataFactory.create_seller(store_name='Green Grocers')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_list_and_filter(self):
        """Sellers can be filtered by approval and searched by store name"""
        TestDataFactory.create_seller(with_details=False)
        response = self.client.get('/api/v1/admin/sellers/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pagination']['total'], 2)

        response = self.client.get('/api/v1/admin/sellers/', {'search': 'grocers'})
        self.assertEqual([row['id'] for row in response.data['results']], [self.seller.pk])

    def test_approve_and_revoke(self):
        """Approval is recorded and audited"""
        response = self.client.post(f'/api/v1/admin/sellers/{self.seller.pk}/approve/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_approved'])
        self.assertIsNotNone(response.data['approved_at'])
        self.assertTrue(AuditLog.objects.filter(action='seller_approve').exists())

        response = self.client.get('/api/v1/admin/sellers/', {'is_approved': 'true'})
        self.assertEqual(response.data['pagination']['total'], 1)

        response = self.client.post(f'/api/v1/admin/sellers/{self.seller.pk}/approve/', {'approved': False}, format='json')
        self.assertFalse(response.data['is_approved'])
        self.assertIsNone(response.data['approved_at'])

    def test_approve_without_details(self):
        """Sellers who never created a profile cannot be approved"""
        bare = TestDataFactory.create_seller(with_details=False)
        response = self.client.post(f'/api/v1/admin/sellers/{bare.pk}/approve/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_seller_cannot_approve(self):
        """Only admins approve"""
        self.client.authenticate_user(self.seller)
        response = self.client.post(f'/api/v1/admin/sellers/{self.seller.pk}/approve/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
