"""
Test suite for the merchandising app
Tests: display ordering, banners, homepage sections and their public payloads
"""
from datetime import timedelta
from unittest import mock

from django.core.cache import cache
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from storefront.core.image_host import ImageHostError
from storefront.core.models import AuditLog
from storefront.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from storefront.merchandising.models import Banner, HomepageSection
from storefront.merchandising.ordering import (
    ReorderError, apply_orders, move_item, parse_order_payload, sequential_orders
)


class OrderingTests(TestCase):
    """Test the list move and reorder helpers"""

    def setUp(self):
        self.items = [{'id': 1}, {'id': 2}, {'id': 3}]

    def ids(self, items):
        return [item['id'] for item in items]

    def test_move_up(self):
        """Moving the middle item up swaps it with its predecessor"""
        items, moved = move_item(self.items, 2, 'up')
        self.assertTrue(moved)
        self.assertEqual(self.ids(items), [2, 1, 3])
        self.assertEqual(sequential_orders(items), [(2, 0), (1, 1), (3, 2)])

    def test_move_down(self):
        """Moving down swaps with the successor"""
        items, moved = move_item(self.items, 1, 'down')
        self.assertTrue(moved)
        self.assertEqual(self.ids(items), [2, 1, 3])

    def test_boundary_moves_are_noops(self):
        """First-up and last-down leave the list as it was"""
        items, moved = move_item(self.items, 1, 'up')
        self.assertFalse(moved)
        self.assertEqual(self.ids(items), [1, 2, 3])
        items, moved = move_item(self.items, 3, 'down')
        self.assertFalse(moved)
        self.assertEqual(self.ids(items), [1, 2, 3])

    def test_input_not_mutated(self):
        """The caller's list is untouched"""
        move_item(self.items, 2, 'up')
        self.assertEqual(self.ids(self.items), [1, 2, 3])

    def test_unknown_item_or_direction(self):
        """Bad ids and directions raise ReorderError"""
        with self.assertRaises(ReorderError):
            move_item(self.items, 9, 'up')
        with self.assertRaises(ReorderError):
            move_item(self.items, 2, 'left')

    def test_parse_order_payload(self):
        """Lists and {"orders": [...]} wrappers are accepted"""
        self.assertEqual(parse_order_payload([{'id': 1, 'order': 1}, {'id': '2', 'order': '0'}]), [(1, 1), (2, 0)])
        self.assertEqual(parse_order_payload({'orders': [{'id': 3, 'order': 0}]}), [(3, 0)])

    def test_parse_order_payload_rejects(self):
        """Empty, malformed, negative and duplicate entries are rejected"""
        bad_payloads = [
            [],
            {},
            'not a list',
            [{'id': 1}],
            [{'id': 'x', 'order': 0}],
            [{'id': 1, 'order': -1}],
            [{'id': 1, 'order': 0}, {'id': 1, 'order': 1}],
        ]
        for payload in bad_payloads:
            with self.assertRaises(ReorderError):
                parse_order_payload(payload)

    def test_apply_orders_requires_existing_ids(self):
        """Unknown ids abort the whole update"""
        banner = TestDataFactory.create_banner(order=0)
        with self.assertRaises(ReorderError):
            apply_orders(Banner, [(banner.pk, 5), (banner.pk + 100, 6)])
        banner.refresh_from_db()
        self.assertEqual(banner.order, 0)


class BannerModelTests(TestCase):
    """Test the banner display window"""

    def test_active_window(self):
        """active() honours is_active, start and end dates and sorts by priority"""
        now = timezone.now()
        low = TestDataFactory.create_banner(title='Low', priority=1)
        high = TestDataFactory.create_banner(title='High', priority=9)
        TestDataFactory.create_banner(title='Off', is_active=False)
        TestDataFactory.create_banner(title='Future', start_date=now + timedelta(days=1))
        TestDataFactory.create_banner(title='Expired', start_date=now - timedelta(days=3), end_date=now - timedelta(days=1))
        open_ended = TestDataFactory.create_banner(title='Window', priority=5, end_date=now + timedelta(days=1))

        self.assertEqual(list(Banner.objects.active()), [high, open_ended, low])
        self.assertTrue(open_ended.is_currently_active())


class BannerAdminAPITests(TestCase):
    """Test banner administration"""

    def setUp(self):
        cache.clear()
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)
        self.a = TestDataFactory.create_banner(title='A', order=0)
        self.b = TestDataFactory.create_banner(title='B', order=1)
        self.c = TestDataFactory.create_banner(title='C', order=2)

    def payload(self, **overrides):
        data = {
            'title': 'Summer Sale',
            'description': 'Up to 50% off',
            'image_url': 'https://images.example.com/summer.jpg',
            'button_text': 'Shop Now',
            'button_link': '/products?category=fashion',
            'category': 'fashion',
        }
        data.update(overrides)
        return data

    def orders(self):
        return list(Banner.objects.order_by('order').values_list('title', 'order'))

    def test_create_appends(self):
        """New banners go after the last one"""
        response = self.client.post('/api/v1/admin/banners/', self.payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['order'], 3)
        self.assertTrue(response.data['is_currently_active'])
        self.assertTrue(AuditLog.objects.filter(action='create', model_name='Banner').exists())

    def test_blank_fields_rejected(self):
        """Title, description, button text and button link are required"""
        for field in ('title', 'description', 'button_text', 'button_link'):
            response = self.client.post('/api/v1/admin/banners/', self.payload(**{field: ''}), format='json')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, field)
            self.assertIn(field, response.data)

    def test_end_before_start_rejected(self):
        """end_date must follow start_date"""
        now = timezone.now()
        response = self.client.post('/api/v1/admin/banners/', self.payload(
            start_date=now.isoformat(), end_date=(now - timedelta(days=1)).isoformat()
        ), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('end_date', response.data)

    def test_list_filters(self):
        """is_active narrows the admin list"""
        self.b.is_active = False
        self.b.save()
        response = self.client.get('/api/v1/admin/banners/', {'is_active': 'false'})
        self.assertEqual([row['id'] for row in response.data['results']], [self.b.pk])

    def test_update(self):
        """PATCH changes only the sent fields"""
        response = self.client.patch(f'/api/v1/admin/banners/{self.a.pk}/', {'title': 'A2'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.a.refresh_from_db()
        self.assertEqual(self.a.title, 'A2')
        self.assertEqual(self.a.order, 0)

    def test_toggle_flips_only_target(self):
        """Toggling one banner leaves the others alone"""
        response = self.client.post(f'/api/v1/admin/banners/{self.b.pk}/toggle/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_active'])
        self.assertEqual(
            dict(Banner.objects.values_list('title', 'is_active')),
            {'A': True, 'B': False, 'C': True}
        )

        response = self.client.post(f'/api/v1/admin/banners/{self.b.pk}/toggle/')
        self.assertTrue(response.data['is_active'])

    def test_move_up(self):
        """Moving B up yields B, A, C numbered 0..2"""
        response = self.client.post(f'/api/v1/admin/banners/{self.b.pk}/move/', {'direction': 'up'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['moved'])
        self.assertEqual([row['title'] for row in response.data['results']], ['B', 'A', 'C'])
        self.assertEqual(self.orders(), [('B', 0), ('A', 1), ('C', 2)])

    def test_move_renumbers_gaps(self):
        """A move closes gaps left by deletes"""
        self.c.order = 7
        self.c.save()
        self.client.post(f'/api/v1/admin/banners/{self.c.pk}/move/', {'direction': 'up'}, format='json')
        self.assertEqual(self.orders(), [('A', 0), ('C', 1), ('B', 2)])

    def test_move_at_boundary(self):
        """The first banner cannot move up; nothing changes"""
        response = self.client.post(f'/api/v1/admin/banners/{self.a.pk}/move/', {'direction': 'up'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['moved'])
        self.assertEqual(self.orders(), [('A', 0), ('B', 1), ('C', 2)])

    def test_move_invalid(self):
        """Bad directions are a 400 and unknown banners a 404"""
        response = self.client.post(f'/api/v1/admin/banners/{self.a.pk}/move/', {'direction': 'sideways'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.client.post('/api/v1/admin/banners/99999/move/', {'direction': 'up'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_reorder(self):
        """A client-computed array is persisted as sent"""
        response = self.client.put('/api/v1/admin/banners/reorder/', [
            {'id': self.a.pk, 'order': 2},
            {'id': self.b.pk, 'order': 0},
            {'id': self.c.pk, 'order': 1},
        ], format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['title'] for row in response.data['results']], ['B', 'C', 'A'])

    def test_reorder_invalid(self):
        """Malformed or unknown entries leave orders unchanged"""
        payloads = [
            [],
            [{'id': self.a.pk, 'order': -1}],
            [{'id': self.a.pk, 'order': 1}, {'id': self.a.pk, 'order': 2}],
            [{'id': self.a.pk, 'order': 2}, {'id': 99999, 'order': 0}],
        ]
        for payload in payloads:
            response = self.client.put('/api/v1/admin/banners/reorder/', payload, format='json')
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self.orders(), [('A', 0), ('B', 1), ('C', 2)])

    @mock.patch('storefront.merchandising.views.image_host.is_configured', return_value=True)
    @mock.patch('storefront.merchandising.views.image_host.delete_image')
    def test_delete_survives_image_host_failure(self, mock_delete, mock_configured):
        """The banner is deleted even when its image cannot be removed"""
        self.a.image_public_id = 'banners/a'
        self.a.save()
        mock_delete.side_effect = ImageHostError('Image host unavailable')
        response = self.client.delete(f'/api/v1/admin/banners/{self.a.pk}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        mock_delete.assert_called_once_with('banners/a')
        self.assertFalse(Banner.objects.filter(pk=self.a.pk).exists())

    def test_non_admin_forbidden(self):
        """Customers and sellers cannot manage banners"""
        for user in (TestDataFactory.create_user(), TestDataFactory.create_seller()):
            self.client.authenticate_user(user)
            response = self.client.post(f'/api/v1/admin/banners/{self.a.pk}/toggle/')
            self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class PublicBannerAPITests(TestCase):
    """Test the public banner feed"""

    def setUp(self):
        cache.clear()
        self.client = APIClient()

    def test_only_active_window(self):
        """Inactive, future and expired banners are hidden"""
        now = timezone.now()
        live = TestDataFactory.create_banner(title='Live')
        TestDataFactory.create_banner(title='Off', is_active=False)
        TestDataFactory.create_banner(title='Future', start_date=now + timedelta(hours=2))
        TestDataFactory.create_banner(title='Expired', start_date=now - timedelta(days=2), end_date=now - timedelta(hours=1))
        response = self.client.get('/api/v1/banners/active/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['id'] for row in response.data], [live.pk])

    def test_cache_invalidated_on_change(self):
        """Toggling a banner is visible on the next read"""
        banner = TestDataFactory.create_banner(title='Live')
        self.assertEqual(len(self.client.get('/api/v1/banners/active/').data), 1)

        admin_client = AuthenticatedAPIClient()
        admin_client.authenticate_user(TestDataFactory.create_admin())
        admin_client.post(f'/api/v1/admin/banners/{banner.pk}/toggle/')

        self.assertEqual(len(self.client.get('/api/v1/banners/active/').data), 0)


class HomepageSectionAdminAPITests(TestCase):
    """Test homepage section administration"""

    def setUp(self):
        cache.clear()
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)
        self.p1 = TestDataFactory.create_product(name='P1')
        self.p2 = TestDataFactory.create_product(name='P2')
        self.p3 = TestDataFactory.create_product(name='P3')

    def product_ids(self, response):
        return [product['id'] for product in response.data['products']]

    def test_create_with_products(self):
        """Creation stores the author, lowercases the category and keeps product order"""
        response = self.client.post('/api/v1/admin/homepage-sections/', {
            'title': 'Trending Electronics',
            'type': 'category',
            'category': 'Electronics',
            'product_ids': [self.p2.pk, self.p1.pk],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(self.product_ids(response), [self.p2.pk, self.p1.pk])
        self.assertEqual(response.data['category'], 'electronics')
        self.assertEqual(response.data['created_by'], self.admin.pk)
        self.assertEqual(response.data['order'], 0)

    def test_create_unknown_product(self):
        """Unknown product ids are rejected"""
        response = self.client.post('/api/v1/admin/homepage-sections/', {
            'title': 'Broken', 'product_ids': [self.p1.pk, 99999]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('product_ids', response.data)

    def test_set_products_truncates(self):
        """PUT keeps the first max_products ids"""
        section = TestDataFactory.create_section(max_products=2)
        response = self.client.put(f'/api/v1/admin/homepage-sections/{section.pk}/products/', {
            'product_ids': [self.p3.pk, self.p1.pk, self.p2.pk]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.product_ids(response), [self.p3.pk, self.p1.pk])

    def test_add_product_keeps_newest(self):
        """Adding to a full section drops the oldest entry"""
        section = TestDataFactory.create_section(max_products=2, products=[self.p1, self.p2])
        response = self.client.post(f'/api/v1/admin/homepage-sections/{section.pk}/products/', {
            'product_id': self.p3.pk
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.product_ids(response), [self.p2.pk, self.p3.pk])

    def test_add_existing_product_is_idempotent(self):
        """Adding a product twice keeps one entry"""
        section = TestDataFactory.create_section(products=[self.p1])
        response = self.client.post(f'/api/v1/admin/homepage-sections/{section.pk}/products/', {
            'product_id': self.p1.pk
        }, format='json')
        self.assertEqual(self.product_ids(response), [self.p1.pk])

    def test_add_missing_product(self):
        """Unknown products are a 400"""
        section = TestDataFactory.create_section()
        response = self.client.post(f'/api/v1/admin/homepage-sections/{section.pk}/products/', {
            'product_id': 99999
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_remove_product(self):
        """Removing keeps the remaining order; removing an absent product is a 404"""
        section = TestDataFactory.create_section(products=[self.p1, self.p2, self.p3])
        response = self.client.delete(f'/api/v1/admin/homepage-sections/{section.pk}/products/{self.p2.pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.product_ids(response), [self.p1.pk, self.p3.pk])

        response = self.client.delete(f'/api/v1/admin/homepage-sections/{section.pk}/products/{self.p2.pk}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'Product not in section')

    def test_shrinking_max_products_trims(self):
        """Lowering max_products drops products past the new limit"""
        section = TestDataFactory.create_section(products=[self.p1, self.p2, self.p3])
        response = self.client.patch(f'/api/v1/admin/homepage-sections/{section.pk}/', {'max_products': 1}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.product_ids(response), [self.p1.pk])
        self.assertEqual(response.data['last_modified_by'], self.admin.pk)

    def test_toggle_and_move(self):
        """Sections toggle visibility and move like banners"""
        first = TestDataFactory.create_section(title='First', order=0)
        second = TestDataFactory.create_section(title='Second', order=1)

        response = self.client.post(f'/api/v1/admin/homepage-sections/{first.pk}/toggle/')
        self.assertFalse(response.data['is_visible'])
        second.refresh_from_db()
        self.assertTrue(second.is_visible)

        response = self.client.post(f'/api/v1/admin/homepage-sections/{second.pk}/move/', {'direction': 'up'}, format='json')
        self.assertTrue(response.data['moved'])
        self.assertEqual(
            list(HomepageSection.objects.order_by('order').values_list('title', 'order')),
            [('Second', 0), ('First', 1)]
        )

        response = self.client.post(f'/api/v1/admin/homepage-sections/{first.pk}/move/', {'direction': 'down'}, format='json')
        self.assertFalse(response.data['moved'])

    def test_reorder(self):
        """Bulk reorder persists the client's order"""
        first = TestDataFactory.create_section(title='First', order=0)
        second = TestDataFactory.create_section(title='Second', order=1)
        response = self.client.put('/api/v1/admin/homepage-sections/reorder/', {
            'orders': [{'id': first.pk, 'order': 1}, {'id': second.pk, 'order': 0}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['title'] for row in response.data['results']], ['Second', 'First'])

    def test_list_includes_hidden(self):
        """The admin list shows hidden sections"""
        TestDataFactory.create_section(is_visible=False)
        response = self.client.get('/api/v1/admin/homepage-sections/')
        self.assertEqual(len(response.data), 1)


class PublicHomepageSectionAPITests(TestCase):
    """Test the public homepage sections payload"""

    def setUp(self):
        cache.clear()
        self.client = APIClient()
        self.instant = TestDataFactory.create_product(name='Milk', deliver_instant=True)
        self.standard = TestDataFactory.create_product(name='Sofa')
        self.draft = TestDataFactory.create_product(name='Draft', status='draft')
        self.visible = TestDataFactory.create_section(
            title='Daily', order=0, products=[self.instant, self.standard, self.draft]
        )
        TestDataFactory.create_section(title='Hidden', order=1, is_visible=False, products=[self.instant])

    def test_visible_sections_only(self):
        """Hidden sections and inactive products are left out"""
        response = self.client.get('/api/v1/homepage-sections/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['title'] for row in response.data['results']], ['Daily'])
        self.assertEqual(
            [product['id'] for product in response.data['results'][0]['products']],
            [self.instant.pk, self.standard.pk]
        )
        self.assertIsNone(response.data['delivery_mode'])

    def test_delivery_filter(self):
        """?delivery= keeps only products offering the mode"""
        response = self.client.get('/api/v1/homepage-sections/', {'delivery': 'instant'})
        self.assertEqual([product['id'] for product in response.data['results'][0]['products']], [self.instant.pk])
        self.assertEqual(response.data['delivery_mode'], 'instant')

    def test_session_mode(self):
        """The session delivery mode applies when no parameter is sent"""
        self.client.put('/api/v1/delivery-mode/', {'mode': 'instant'}, format='json')
        response = self.client.get('/api/v1/homepage-sections/')
        self.assertEqual([product['id'] for product in response.data['results'][0]['products']], [self.instant.pk])

    def test_invalid_delivery(self):
        """Unknown modes are a 400"""
        response = self.client.get('/api/v1/homepage-sections/', {'delivery': 'rocket'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_product_change_invalidates(self):
        """Deactivating a product drops it from the cached payload"""
        self.client.get('/api/v1/homepage-sections/')
        self.standard.status = 'inactive'
        self.standard.save()
        response = self.client.get('/api/v1/homepage-sections/')
        self.assertEqual([product['id'] for product in response.data['results'][0]['products']], [self.instant.pk])
