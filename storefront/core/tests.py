"""
Test suite for the core app
Tests: registration, JWT login, profile, admin user management, audit log and the image host client
"""
from unittest import mock

import cloudinary.exceptions
from django.core.cache import cache
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.test import APIClient

from storefront.core import image_host
from storefront.core.cache_utils import bump_cache_version, cached_payload, get_cache_version
from storefront.core.models import AuditLog, User
from storefront.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from storefront.core.utils import month_window_start, paginate, parse_bool, parse_float, parse_int

IMAGE_HOST_SETTINGS = {
    'IMAGE_HOST_CLOUD_NAME': 'demo',
    'IMAGE_HOST_API_KEY': '123456',
    'IMAGE_HOST_API_SECRET': 'shh-secret',
    'IMAGE_HOST_UPLOAD_PRESET': 'ecommerce_products',
    'IMAGE_HOST_FOLDER': 'ecommerce-products',
}

STRONG_PASSWORD = 'Str0ng-Pass!42'


class AuthAPITests(TestCase):
    """Test registration, login and token handling"""

    def setUp(self):
        self.client = APIClient()

    def test_register_customer(self):
        """Registering returns the user and a token pair"""
        data = {
            'username': 'newcustomer',
            'email': 'New.Customer@Example.com',
            'password': STRONG_PASSWORD,
            'password_confirm': STRONG_PASSWORD,
        }
        response = self.client.post('/api/v1/auth/register/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)
        self.assertEqual(response.data['user']['role'], User.ROLE_CUSTOMER)
        self.assertEqual(User.objects.get(username='newcustomer').email, 'new.customer@example.com')

    def test_register_seller(self):
        """Sellers can self-register"""
        data = {
            'username': 'newseller',
            'email': 'seller@example.com',
            'password': STRONG_PASSWORD,
            'password_confirm': STRONG_PASSWORD,
            'role': 'seller',
        }
        response = self.client.post('/api/v1/auth/register/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['user']['role'], User.ROLE_SELLER)

    def test_register_admin_role_rejected(self):
        """The admin role cannot be self-assigned"""
        data = {
            'username': 'sneaky',
            'email': 'sneaky@example.com',
            'password': STRONG_PASSWORD,
            'password_confirm': STRONG_PASSWORD,
            'role': 'admin',
        }
        response = self.client.post('/api/v1/auth/register/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('role', response.data)
        self.assertFalse(User.objects.filter(username='sneaky').exists())

    def test_register_password_mismatch(self):
        """Mismatched passwords are rejected"""
        data = {
            'username': 'mismatch',
            'email': 'mismatch@example.com',
            'password': STRONG_PASSWORD,
            'password_confirm': STRONG_PASSWORD + 'x',
        }
        response = self.client.post('/api/v1/auth/register/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('password', response.data)

    def test_register_duplicate_email(self):
        """An email can only be registered once, case-insensitively"""
        TestDataFactory.create_user(username='existing', email='taken@example.com')
        data = {
            'username': 'another',
            'email': 'TAKEN@example.com',
            'password': STRONG_PASSWORD,
            'password_confirm': STRONG_PASSWORD,
        }
        response = self.client.post('/api/v1/auth/register/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', response.data)

    def test_login_with_username(self):
        """Login returns access, refresh and the user"""
        TestDataFactory.create_user(username='shopper', password='testpass123')
        response = self.client.post('/api/v1/auth/login/', {'username': 'shopper', 'password': 'testpass123'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertEqual(response.data['user']['username'], 'shopper')

    def test_login_with_email(self):
        """The email address works in the username field"""
        TestDataFactory.create_user(username='emailer', email='emailer@example.com', password='testpass123')
        response = self.client.post('/api/v1/auth/login/', {'username': 'emailer@example.com', 'password': 'testpass123'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user']['username'], 'emailer')

    def test_login_wrong_password(self):
        """Wrong credentials are rejected"""
        TestDataFactory.create_user(username='shopper', password='testpass123')
        response = self.client.post('/api/v1/auth/login/', {'username': 'shopper', 'password': 'nope'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_login_suspended_user(self):
        """Suspended accounts cannot sign in"""
        TestDataFactory.create_user(username='banned', password='testpass123', is_suspended=True)
        response = self.client.post('/api/v1/auth/login/', {'username': 'banned', 'password': 'testpass123'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh_token(self):
        """A refresh token yields a new access token"""
        TestDataFactory.create_user(username='shopper', password='testpass123')
        login = self.client.post('/api/v1/auth/login/', {'username': 'shopper', 'password': 'testpass123'}, format='json')
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': login.data['refresh']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)

    def test_refresh_invalid_token(self):
        """A garbage refresh token is rejected"""
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': 'not-a-token'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class ProfileAPITests(TestCase):
    """Test the current-user endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user(username='profiled', password='testpass123')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_get_me(self):
        """Profile includes role capability flags"""
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['username'], 'profiled')
        self.assertFalse(response.data['is_admin'])
        self.assertFalse(response.data['can_access_vendor_panel'])

    def test_seller_capabilities(self):
        """Sellers can open the vendor panel but not the admin panel"""
        seller = TestDataFactory.create_seller()
        self.client.authenticate_user(seller)
        response = self.client.get('/api/v1/auth/me/')
        self.assertTrue(response.data['is_seller'])
        self.assertTrue(response.data['can_access_vendor_panel'])
        self.assertFalse(response.data['can_access_admin_panel'])

    def test_update_profile(self):
        """Profile fields can be patched"""
        response = self.client.patch('/api/v1/auth/me/', {'first_name': 'Asha', 'phone': '9998887776'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertEqual(self.user.first_name, 'Asha')
        self.assertEqual(self.user.phone, '9998887776')

    def test_profile_cannot_change_role(self):
        """Role is not a profile field"""
        self.client.patch('/api/v1/auth/me/', {'role': 'admin'}, format='json')
        self.user.refresh_from_db()
        self.assertEqual(self.user.role, User.ROLE_CUSTOMER)

    def test_change_password(self):
        """Changing the password requires the current one"""
        response = self.client.post('/api/v1/auth/change-password/', {
            'current_password': 'testpass123', 'new_password': STRONG_PASSWORD
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password(STRONG_PASSWORD))

    def test_change_password_wrong_current(self):
        """A wrong current password is rejected"""
        response = self.client.post('/api/v1/auth/change-password/', {
            'current_password': 'wrong', 'new_password': STRONG_PASSWORD
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_suspended_token_rejected(self):
        """A token issued before suspension stops working"""
        User.objects.filter(pk=self.user.pk).update(is_suspended=True)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_unauthenticated(self):
        """Anonymous requests are rejected"""
        response = APIClient().get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class AdminUserAPITests(TestCase):
    """Test admin user management"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.customer = TestDataFactory.create_user(username='alice')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_list_users(self):
        """Admins can list users with pagination"""
        response = self.client.get('/api/v1/admin/users/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pagination']['total'], 2)

    def test_list_users_filter_role(self):
        """Users can be filtered by role"""
        TestDataFactory.create_seller()
        response = self.client.get('/api/v1/admin/users/', {'role': 'seller'})
        self.assertEqual(response.data['pagination']['total'], 1)
        self.assertEqual(response.data['results'][0]['role'], 'seller')

    def test_list_users_search(self):
        """Search matches username and email"""
        response = self.client.get('/api/v1/admin/users/', {'search': 'alice'})
        self.assertEqual(response.data['pagination']['total'], 1)

    def test_non_admin_forbidden(self):
        """Customers cannot reach admin endpoints"""
        self.client.authenticate_user(self.customer)
        response = self.client.get('/api/v1/admin/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_change_role(self):
        """Role changes are audited"""
        response = self.client.patch(f'/api/v1/admin/users/{self.customer.pk}/', {'role': 'seller'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.customer.refresh_from_db()
        self.assertEqual(self.customer.role, User.ROLE_SELLER)
        self.assertTrue(AuditLog.objects.filter(model_name='User', object_id=str(self.customer.pk), action='update').exists())

    def test_cannot_change_own_role(self):
        """An admin cannot demote themself"""
        response = self.client.patch(f'/api/v1/admin/users/{self.admin.pk}/', {'role': 'customer'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_suspend_and_reinstate(self):
        """Suspension toggles is_suspended"""
        response = self.client.post(f'/api/v1/admin/users/{self.customer.pk}/suspend/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_suspended'])

        response = self.client.post(f'/api/v1/admin/users/{self.customer.pk}/suspend/', {'suspended': False}, format='json')
        self.assertFalse(response.data['is_suspended'])
        self.assertEqual(AuditLog.objects.filter(action='user_suspend').count(), 2)

    def test_cannot_suspend_self(self):
        """An admin cannot suspend their own account"""
        response = self.client.post(f'/api/v1/admin/users/{self.admin.pk}/suspend/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_user(self):
        """Users without orders can be deleted"""
        response = self.client.delete(f'/api/v1/admin/users/{self.customer.pk}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(User.objects.filter(pk=self.customer.pk).exists())

    def test_delete_user_with_orders(self):
        """Users with orders must be suspended instead"""
        TestDataFactory.create_order(self.customer)
        response = self.client.delete(f'/api/v1/admin/users/{self.customer.pk}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(User.objects.filter(pk=self.customer.pk).exists())

    def test_cannot_delete_self(self):
        """An admin cannot delete their own account"""
        response = self.client.delete(f'/api/v1/admin/users/{self.admin.pk}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_audit_log_list(self):
        """Audit entries are listed newest first and filterable"""
        self.client.post(f'/api/v1/admin/users/{self.customer.pk}/suspend/', {}, format='json')
        response = self.client.get('/api/v1/admin/audit-logs/', {'action': 'user_suspend'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['results']), 1)
        self.assertEqual(response.data['results'][0]['object_name'], 'alice')


class UtilsTests(TestCase):
    """Test query-parameter and pagination helpers"""

    def test_parse_int_clamps(self):
        """Values are clamped into range and bad input falls back to the default"""
        self.assertEqual(parse_int('500', default=20, minimum=1, maximum=100), 100)
        self.assertEqual(parse_int('0', default=20, minimum=1), 1)
        self.assertEqual(parse_int('abc', default=20), 20)

    def test_parse_bool(self):
        """Common truthy spellings are accepted"""
        self.assertTrue(parse_bool('true'))
        self.assertTrue(parse_bool('1'))
        self.assertFalse(parse_bool('false'))
        self.assertIsNone(parse_bool(''))

    def test_parse_float_rejects_non_finite(self):
        """nan and inf fall back to the default like unparsable input"""
        self.assertEqual(parse_float('12.5'), 12.5)
        self.assertIsNone(parse_float('nan'))
        self.assertIsNone(parse_float('-inf'))
        self.assertEqual(parse_float('inf', default=5), 5)

    def test_paginate_list(self):
        """paginate slices lists and reports the page count"""
        request = mock.Mock(query_params={'page': '2', 'limit': '3'})
        page_items, pagination = paginate(list(range(10)), request)
        self.assertEqual(page_items, [3, 4, 5])
        self.assertEqual(pagination, {'page': 2, 'limit': 3, 'total': 10, 'pages': 4})

    def test_month_window_start(self):
        """The window starts on the first day of the month eleven months back"""
        from datetime import datetime, timezone as dt_timezone
        now = datetime(2024, 3, 15, 12, 30, tzinfo=dt_timezone.utc)
        start = month_window_start(12, now=now)
        self.assertEqual((start.year, start.month, start.day, start.hour), (2023, 4, 1, 0))


class CacheUtilsTests(TestCase):
    """Test versioned payload caching"""

    def setUp(self):
        cache.clear()
        self.calls = []

        @cached_payload('tests', cache_ttl=60)
        def build(value):
            self.calls.append(value)
            return {'value': value}

        self.build = build

    def test_hit_after_miss(self):
        """The second call is served from the cache"""
        self.assertEqual(self.build(1), {'value': 1})
        self.assertEqual(self.build(1), {'value': 1})
        self.assertEqual(self.calls, [1])

    def test_arguments_in_key(self):
        """Different arguments are cached separately"""
        self.build(1)
        self.build(2)
        self.assertEqual(self.calls, [1, 2])

    def test_bump_invalidates(self):
        """Bumping the namespace version forces a rebuild"""
        self.build(1)
        version = get_cache_version('tests')
        self.assertEqual(bump_cache_version('tests'), version + 1)
        self.build(1)
        self.assertEqual(self.calls, [1, 1])

    @mock.patch('storefront.core.cache_utils.time')
    def test_bump_without_version_key(self, mock_time):
        """A missing version key restarts from the clock, not from a small number"""
        mock_time.time.return_value = 1700000000.0
        self.assertEqual(bump_cache_version('fresh'), 1700000000000)

    def test_evicted_version_does_not_revive_old_entries(self):
        """Entries cached before the version key was evicted stay unreachable"""
        with mock.patch('storefront.core.cache_utils.time') as mock_time:
            mock_time.time.return_value = 1000.0
            self.build(1)
            bump_cache_version('tests')
            self.build(1)
        cache.delete('cache_version:tests')
        bump_cache_version('tests')
        self.build(1)
        self.assertEqual(self.calls, [1, 1, 1])




@override_settings(**IMAGE_HOST_SETTINGS)
class ImageHostTests(TestCase):
    """Test the image host client with the SDK calls mocked"""

    @mock.patch('cloudinary.uploader.unsigned_upload')
    def test_upload_image(self, mock_upload):
        """Uploads use the unsigned preset and return the secure URL"""
        mock_upload.return_value = {
            'public_id': 'ecommerce-products/abc', 'secure_url': 'https://res.cloudinary.com/demo/abc.jpg',
            'width': 800, 'height': 600,
        }
        upload = SimpleUploadedFile('photo.jpg', b'data', content_type='image/jpeg')
        result = image_host.upload_image(upload)

        self.assertEqual(result['public_id'], 'ecommerce-products/abc')
        self.assertEqual(result['url'], 'https://res.cloudinary.com/demo/abc.jpg')
        mock_upload.assert_called_once_with(upload, 'ecommerce_products', folder='ecommerce-products')

    @mock.patch('cloudinary.uploader.unsigned_upload')
    def test_upload_error(self, mock_upload):
        """SDK errors surface as ImageHostError with the host's message"""
        mock_upload.side_effect = cloudinary.exceptions.BadRequest('Upload preset not found')
        with self.assertRaises(image_host.ImageHostError) as ctx:
            image_host.upload_image(SimpleUploadedFile('photo.jpg', b'data'))
        self.assertIn('Upload preset not found', str(ctx.exception))

    @override_settings(IMAGE_HOST_CLOUD_NAME='')
    def test_upload_not_configured(self):
        """Uploading without a cloud name fails before calling the host"""
        with mock.patch('cloudinary.uploader.unsigned_upload') as mock_upload:
            with self.assertRaises(image_host.ImageHostError):
                image_host.upload_image(SimpleUploadedFile('photo.jpg', b'data'))
            mock_upload.assert_not_called()

    @mock.patch('cloudinary.uploader.unsigned_upload')
    def test_upload_multiple_first_is_primary(self, mock_upload):
        """Multiple uploads keep order and flag the first image primary"""
        mock_upload.side_effect = lambda file_obj, preset, folder: {
            'public_id': file_obj.name, 'secure_url': f'https://images.example.com/{file_obj.name}',
        }
        files = [SimpleUploadedFile(f'{i}.jpg', b'data') for i in range(3)]
        results = image_host.upload_multiple_images(files)
        self.assertEqual([r['public_id'] for r in results], ['0.jpg', '1.jpg', '2.jpg'])
        self.assertEqual([r['is_primary'] for r in results], [True, False, False])

    @mock.patch('cloudinary.uploader.destroy')
    @mock.patch('cloudinary.uploader.unsigned_upload')
    def test_upload_multiple_rolls_back_on_failure(self, mock_upload, mock_destroy):
        """One failed upload removes the images that did upload, then raises"""
        def upload(file_obj, preset, folder):
            if file_obj.name == 'bad.jpg':
                raise cloudinary.exceptions.Error('Invalid image file')
            return {'public_id': f'ecommerce-products/{file_obj.name}', 'secure_url': 'https://images.example.com/x.jpg'}

        mock_upload.side_effect = upload
        mock_destroy.return_value = {'result': 'ok'}
        files = [SimpleUploadedFile(name, b'data') for name in ('a.jpg', 'bad.jpg', 'c.jpg')]

        with self.assertRaises(image_host.ImageHostError) as ctx:
            image_host.upload_multiple_images(files)

        self.assertIn('Invalid image file', str(ctx.exception))
        destroyed = {call.args[0] for call in mock_destroy.call_args_list}
        self.assertEqual(destroyed, {'ecommerce-products/a.jpg', 'ecommerce-products/c.jpg'})

    @mock.patch('cloudinary.uploader.destroy')
    def test_delete_image(self, mock_destroy):
        """Deletes go through the SDK's signed destroy call"""
        mock_destroy.return_value = {'result': 'ok'}
        self.assertEqual(image_host.delete_image('ecommerce-products/abc')['result'], 'ok')
        mock_destroy.assert_called_once_with('ecommerce-products/abc')

    @mock.patch('cloudinary.uploader.destroy')
    def test_delete_not_found_is_success(self, mock_destroy):
        """An image already gone counts as deleted"""
        mock_destroy.return_value = {'result': 'not found'}
        self.assertEqual(image_host.delete_image('gone')['result'], 'not found')

    @mock.patch('cloudinary.uploader.destroy')
    def test_delete_refused(self, mock_destroy):
        """Any other result raises"""
        mock_destroy.return_value = {'result': 'error'}
        with self.assertRaises(image_host.ImageHostError):
            image_host.delete_image('abc')

    @mock.patch('cloudinary.uploader.destroy')
    def test_delete_sdk_error(self, mock_destroy):
        mock_destroy.side_effect = cloudinary.exceptions.Error('Server returned unexpected status code - 500')
        with self.assertRaises(image_host.ImageHostError):
            image_host.delete_image('abc')

    @override_settings(IMAGE_HOST_API_SECRET='')
    def test_delete_requires_credentials(self):
        """Deleting without credentials fails before any request"""
        with mock.patch('cloudinary.uploader.destroy') as mock_destroy:
            with self.assertRaises(image_host.ImageHostError):
                image_host.delete_image('abc')
            mock_destroy.assert_not_called()

    def test_optimized_url(self):
        """Optimised URLs carry automatic format and quality plus extra options"""
        url = image_host.get_optimized_image_url('folder/pic', width=300)
        self.assertTrue(url.startswith('https://res.cloudinary.com/demo/image/upload/'))
        for part in ('f_auto', 'q_auto', 'w_300'):
            self.assertIn(part, url)
        self.assertTrue(url.endswith('/folder/pic'))

    def test_responsive_urls(self):
        """Four square fill variants are produced"""
        variants = image_host.get_responsive_image_urls('pic')
        self.assertEqual([v['width'] for v in variants], [200, 400, 800, 1200])
        for part in ('c_fill', 'h_200', 'w_200'):
            self.assertIn(part, variants[0]['url'])


@override_settings(**IMAGE_HOST_SETTINGS)
class ImageAPITests(TestCase):
    """Test the upload/delete/variants endpoints"""

    def setUp(self):
        self.seller = TestDataFactory.create_seller()
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()

    @mock.patch('cloudinary.uploader.unsigned_upload')
    def test_seller_upload(self, mock_upload):
        """Sellers can upload images"""
        mock_upload.return_value = {'public_id': 'p1', 'secure_url': 'https://images.example.com/p1.jpg'}
        self.client.authenticate_user(self.seller)
        response = self.client.post('/api/v1/uploads/images/', {
            'files': [SimpleUploadedFile('a.jpg', b'a', content_type='image/jpeg')]
        }, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['images'][0]['public_id'], 'p1')
        self.assertTrue(response.data['images'][0]['is_primary'])

    def test_customer_upload_forbidden(self):
        """Customers cannot upload"""
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.post('/api/v1/uploads/images/', {
            'files': [SimpleUploadedFile('a.jpg', b'a')]
        }, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_upload_without_files(self):
        """An empty upload is rejected"""
        self.client.authenticate_user(self.seller)
        response = self.client.post('/api/v1/uploads/images/', {}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @mock.patch('cloudinary.uploader.destroy')
    def test_admin_delete_host_failure(self, mock_destroy):
        """Host failures are reported as 502"""
        mock_destroy.side_effect = cloudinary.exceptions.Error('boom')
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/uploads/images/delete/', {'public_id': 'abc'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertEqual(response.data['error'], 'boom')

    @mock.patch('cloudinary.uploader.destroy')
    def test_admin_delete(self, mock_destroy):
        """Admins can delete images and the delete is audited"""
        mock_destroy.return_value = {'result': 'ok'}
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/uploads/images/delete/', {'public_id': 'abc'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(AuditLog.objects.filter(action='image_delete', object_id='abc').exists())

    def test_variants_public(self):
        """Variant URLs need no authentication"""
        response = APIClient().get('/api/v1/uploads/images/variants/', {'public_id': 'pic'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['responsive']), 4)
