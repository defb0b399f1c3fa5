"""
Test suite for the catalog app
Tests: delivery-mode switch and theme, product listing filters, geolocation, ownership and images
"""
from decimal import Decimal
from unittest import mock

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient

from storefront.catalog import delivery
from storefront.catalog.models import Category, Product, ProductImage
from storefront.core.models import AuditLog
from storefront.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from storefront.core.image_host import ImageHostError


class DeliveryModuleTests(TestCase):
    """Test delivery-mode helpers"""

    def test_normalize_valid_modes(self):
        """Known modes pass through unchanged"""
        for mode in ('instant', 'nextDay', 'standard'):
            self.assertEqual(delivery.normalize_delivery_mode(mode), mode)

    def test_normalize_rejects_unknown(self):
        """Anything else raises, including near misses and non-strings"""
        for value in ('express', 'nextday', '', None, 1, '"><script>'):
            with self.assertRaises(delivery.InvalidDeliveryMode):
                delivery.normalize_delivery_mode(value)

    def test_theme_values(self):
        """Each mode has its own brand colour"""
        self.assertEqual(delivery.get_theme('instant')['brand'], '#16a34a')
        self.assertEqual(delivery.get_theme('nextDay')['brand'], '#f59e0b')
        self.assertEqual(delivery.get_theme('standard')['brand'], '#2563eb')

    def test_css_variables(self):
        """Theme keys map to CSS custom properties"""
        variables = delivery.get_css_variables('instant')
        self.assertEqual(variables['--brand'], '#16a34a')
        self.assertEqual(variables['--navbar-bg'], '#dcfce7')

    def test_render_theme_css(self):
        """The stylesheet has one block per mode and the default styles bare :root"""
        css = delivery.render_theme_css()
        self.assertIn(':root, :root[data-delivery="standard"] {', css)
        self.assertIn(':root[data-delivery="instant"] {', css)
        self.assertIn(':root[data-delivery="nextDay"] {', css)
        self.assertIn('--brand: #f59e0b;', css)

    def test_filter_by_delivery(self):
        """Only products offering the mode match"""
        instant = TestDataFactory.create_product(deliver_instant=True)
        TestDataFactory.create_product()
        matched = delivery.filter_by_delivery(Product.objects.all(), 'instant')
        self.assertEqual(list(matched), [instant])


class DeliveryModeAPITests(TestCase):
    """Test the session delivery-mode endpoints"""

    def setUp(self):
        self.client = APIClient()

    def test_default_mode(self):
        """A new session is on standard"""
        response = self.client.get('/api/v1/delivery-mode/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['mode'], 'standard')
        self.assertEqual(response['X-Delivery-Mode'], 'standard')

    def test_switch_mode(self):
        """Switching persists for the session and is echoed in the header"""
        response = self.client.put('/api/v1/delivery-mode/', {'mode': 'instant'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['mode'], 'instant')
        self.assertEqual(response.data['theme']['brand'], '#16a34a')
        self.assertEqual(response['X-Delivery-Mode'], 'instant')

        response = self.client.get('/api/v1/delivery-mode/')
        self.assertEqual(response.data['mode'], 'instant')

    def test_invalid_mode_rejected(self):
        """Invalid values are rejected and never stored"""
        self.client.put('/api/v1/delivery-mode/', {'mode': 'nextDay'}, format='json')
        response = self.client.put('/api/v1/delivery-mode/', {'mode': 'warp-speed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['modes'], ['instant', 'nextDay', 'standard'])
        self.assertEqual(response['X-Delivery-Mode'], 'nextDay')

    def test_theme_css(self):
        """The theme stylesheet is served as CSS"""
        response = self.client.get('/api/v1/delivery-mode/theme.css')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response['Content-Type'].startswith('text/css'))
        self.assertIn(b'data-delivery="instant"', response.content)


class CategoryAPITests(TestCase):
    """Test category endpoints"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()

    def test_public_list_hides_inactive(self):
        """Anonymous listings only include active categories"""
        Category.objects.create(name='Visible')
        Category.objects.create(name='Hidden', is_active=False)
        response = APIClient().get('/api/v1/categories/')
        self.assertEqual([c['name'] for c in response.data], ['Visible'])

    def test_admin_create(self):
        """Admins create categories with a generated slug"""
        self.client.authenticate_user(self.admin)
        response = self.client.post('/api/v1/categories/', {'name': 'Home & Kitchen'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['slug'], 'home-kitchen')

    def test_customer_cannot_create(self):
        """Non-admins cannot write categories"""
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.post('/api/v1/categories/', {'name': 'Nope'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class ProductModelTests(TestCase):
    """Test Product model helpers"""

    def test_slug_is_unique(self):
        """Products with the same name get distinct slugs"""
        first = TestDataFactory.create_product(name='Blue Shirt')
        second = TestDataFactory.create_product(name='Blue Shirt')
        self.assertEqual(first.slug, 'blue-shirt')
        self.assertEqual(second.slug, 'blue-shirt-2')

    def test_stock_flags(self):
        """In-stock and low-stock follow quantity and threshold"""
        product = TestDataFactory.create_product(quantity=5)
        self.assertTrue(product.is_in_stock)
        self.assertTrue(product.is_low_stock)
        product.quantity = 0
        self.assertFalse(product.is_in_stock)
        product.allow_backorder = True
        self.assertTrue(product.is_in_stock)

    def test_available_quantity(self):
        """Requested quantities are clamped to stock unless untracked"""
        product = TestDataFactory.create_product(quantity=3)
        self.assertEqual(product.available_quantity(5), 3)
        product.track_quantity = False
        self.assertEqual(product.available_quantity(5), 5)

    def test_normalize_primary_image(self):
        """The first image becomes primary when none is flagged"""
        product = TestDataFactory.create_product()
        first = TestDataFactory.create_product_image(product, position=0)
        TestDataFactory.create_product_image(product, position=1)
        product.normalize_primary_image()
        first.refresh_from_db()
        self.assertTrue(first.is_primary)
        self.assertEqual(product.images.filter(is_primary=True).count(), 1)


class ProductListAPITests(TestCase):
    """Test the public product listing"""

    def setUp(self):
        self.client = APIClient()
        self.electronics = TestDataFactory.create_category(name='Electronics')
        self.phone = TestDataFactory.create_product(
            name='Smart Phone', category=self.electronics, price=Decimal('500.00'),
            deliver_instant=True, featured=True
        )
        self.laptop = TestDataFactory.create_product(
            name='Laptop Pro', category=self.electronics, price=Decimal('1500.00'), deliver_next_day=True
        )
        self.book = TestDataFactory.create_product(name='Cook Book', price=Decimal('20.00'))
        TestDataFactory.create_product(name='Draft Thing', status=Product.STATUS_DRAFT)

    def ids(self, response):
        return {item['id'] for item in response.data['results']}

    def test_only_active_listed(self):
        """Draft products never appear publicly"""
        response = self.client.get('/api/v1/products/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.ids(response), {self.phone.pk, self.laptop.pk, self.book.pk})
        self.assertEqual(response.data['pagination']['total'], 3)

    def test_search(self):
        """Search matches words in the name"""
        response = self.client.get('/api/v1/products/', {'search': 'laptop'})
        self.assertEqual(self.ids(response), {self.laptop.pk})

    def test_category_by_slug(self):
        """Category accepts a slug"""
        response = self.client.get('/api/v1/products/', {'category': 'electronics'})
        self.assertEqual(self.ids(response), {self.phone.pk, self.laptop.pk})

    def test_price_range(self):
        """min_price and max_price bound the price"""
        response = self.client.get('/api/v1/products/', {'min_price': '100', 'max_price': '1000'})
        self.assertEqual(self.ids(response), {self.phone.pk})

    def test_sort_price_low(self):
        """price_low sorts ascending"""
        response = self.client.get('/api/v1/products/', {'sort_by': 'price_low'})
        self.assertEqual([item['id'] for item in response.data['results']], [self.book.pk, self.phone.pk, self.laptop.pk])

    def test_invalid_sort(self):
        """Unknown sort keys are rejected"""
        response = self.client.get('/api/v1/products/', {'sort_by': 'random'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delivery_filter(self):
        """?delivery= keeps products offering that mode"""
        response = self.client.get('/api/v1/products/', {'delivery': 'instant'})
        self.assertEqual(self.ids(response), {self.phone.pk})
        self.assertEqual(response.data['delivery_mode'], 'instant')

    def test_invalid_delivery_filter(self):
        """An invalid ?delivery= is a 400"""
        response = self.client.get('/api/v1/products/', {'delivery': 'teleport'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_session_delivery_mode_filters(self):
        """A chosen session mode filters listings without a query parameter"""
        self.client.put('/api/v1/delivery-mode/', {'mode': 'nextDay'}, format='json')
        response = self.client.get('/api/v1/products/')
        self.assertEqual(self.ids(response), {self.laptop.pk})

    def test_pagination(self):
        """page and limit slice the results"""
        response = self.client.get('/api/v1/products/', {'limit': 2, 'page': 2})
        self.assertEqual(len(response.data['results']), 1)
        self.assertEqual(response.data['pagination']['pages'], 2)

    def test_featured(self):
        """Featured endpoint lists featured active products"""
        response = self.client.get('/api/v1/products/featured/')
        self.assertEqual([item['id'] for item in response.data], [self.phone.pk])

    def test_batch_preserves_order(self):
        """Batch fetch keeps the requested order and skips inactive ids"""
        response = self.client.get('/api/v1/products/batch/', {'ids': f'{self.book.pk},{self.phone.pk},99999'})
        self.assertEqual([item['id'] for item in response.data], [self.book.pk, self.phone.pk])

    def test_detail_by_slug(self):
        """Active products can be fetched by slug"""
        response = self.client.get(f'/api/v1/products/slug/{self.phone.slug}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['delivery_options'], {'instant': True, 'nextDay': False, 'standard': True})


class ProductGeoAPITests(TestCase):
    """Test location-based product filtering"""

    def setUp(self):
        self.client = APIClient()
        # Bengaluru city centre and a seller ~3 km away; another in Mysuru (~125 km)
        self.near_seller = TestDataFactory.create_seller(latitude=12.9716, longitude=77.6200)
        self.far_seller = TestDataFactory.create_seller(latitude=12.2958, longitude=76.6394, pincode='570001')
        self.near_product = TestDataFactory.create_product(seller=self.near_seller)
        self.far_product = TestDataFactory.create_product(seller=self.far_seller)

    def test_radius_filter(self):
        """Only products of sellers inside the radius are listed, with distances"""
        response = self.client.get('/api/v1/products/', {'lat': 12.9716, 'lng': 77.5946, 'radius_km': 10})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([item['id'] for item in response.data['results']], [self.near_product.pk])
        self.assertLess(response.data['results'][0]['distance_km'], 5)

    def test_sort_by_distance(self):
        """distance sorting puts the nearest seller first"""
        response = self.client.get('/api/v1/products/', {
            'lat': 12.9716, 'lng': 77.5946, 'radius_km': 200, 'sort_by': 'distance'
        })
        self.assertEqual([item['id'] for item in response.data['results']], [self.near_product.pk, self.far_product.pk])

    def test_distance_sort_requires_location(self):
        """Sorting by distance without coordinates is a 400"""
        response = self.client.get('/api/v1/products/', {'sort_by': 'distance'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_invalid_latitude(self):
        """Out-of-range coordinates are rejected"""
        response = self.client.get('/api/v1/products/', {'lat': 95, 'lng': 77.5})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_pincode_filter(self):
        """pincode matches the seller's pincode"""
        response = self.client.get('/api/v1/products/', {'pincode': '570001'})
        self.assertEqual([item['id'] for item in response.data['results']], [self.far_product.pk])


class ProductManagementAPITests(TestCase):
    """Test product create/update/delete and ownership"""

    def setUp(self):
        self.seller = TestDataFactory.create_seller()
        self.other_seller = TestDataFactory.create_seller()
        self.admin = TestDataFactory.create_admin()
        self.category = TestDataFactory.create_category()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.seller)

    def product_payload(self, **overrides):
        data = {
            'name': 'Wireless Earbuds',
            'description': 'Noise cancelling earbuds',
            'price': '79.99',
            'category': self.category.pk,
            'status': 'active',
            'quantity': 25,
            'delivery_options': {'instant': True, 'nextDay': True, 'standard': True},
            'images': [
                {'public_id': 'p/1', 'url': 'https://res.cloudinary.com/demo/p/1.jpg'},
                {'public_id': 'p/2', 'url': 'https://res.cloudinary.com/demo/p/2.jpg'},
            ],
        }
        data.update(overrides)
        return data

    def test_seller_creates_product(self):
        """The creator becomes the seller and the first image is primary"""
        response = self.client.post('/api/v1/products/', self.product_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        product = Product.objects.get(pk=response.data['id'])
        self.assertEqual(product.seller, self.seller)
        self.assertEqual(product.slug, 'wireless-earbuds')
        self.assertTrue(product.deliver_instant)
        self.assertEqual([image.is_primary for image in product.images.all()], [True, False])

    def test_customer_cannot_create(self):
        """Customers cannot create products"""
        self.client.authenticate_user(TestDataFactory.create_user())
        response = self.client.post('/api/v1/products/', self.product_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_two_primary_images_rejected(self):
        """At most one image may be flagged primary"""
        payload = self.product_payload(images=[
            {'public_id': 'a', 'url': 'https://images.example.com/a.jpg', 'is_primary': True},
            {'public_id': 'b', 'url': 'https://images.example.com/b.jpg', 'is_primary': True},
        ])
        response = self.client.post('/api/v1/products/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_compare_price_below_price_rejected(self):
        """compare_price cannot undercut price"""
        response = self.client.post('/api/v1/products/', self.product_payload(compare_price='10.00'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_invalid_delivery_options_rejected(self):
        """Unknown delivery keys are rejected"""
        response = self.client.post('/api/v1/products/', self.product_payload(delivery_options={'drone': True}), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_owner_updates_product(self):
        """Owners can update; status changes are audited"""
        product = TestDataFactory.create_product(seller=self.seller)
        response = self.client.patch(f'/api/v1/products/{product.pk}/', {'status': 'inactive'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(AuditLog.objects.filter(action='status_change', object_id=str(product.pk)).exists())

    def test_update_replaces_images(self):
        """Sending images replaces the product's images"""
        product = TestDataFactory.create_product(seller=self.seller)
        TestDataFactory.create_product_image(product, public_id='old')
        response = self.client.patch(f'/api/v1/products/{product.pk}/', {
            'images': [{'public_id': 'new', 'url': 'https://images.example.com/new.jpg'}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([image['public_id'] for image in response.data['images']], ['new'])

    @mock.patch('storefront.catalog.views.image_host.is_configured', return_value=True)
    @mock.patch('storefront.catalog.views.image_host.delete_image')
    def test_update_deletes_replaced_hosted_images(self, mock_delete, mock_configured):
        """Images dropped by a replace are removed from the host; kept ones are not"""
        product = TestDataFactory.create_product(seller=self.seller)
        TestDataFactory.create_product_image(product, public_id='keep', is_primary=True)
        TestDataFactory.create_product_image(product, public_id='drop', position=1)
        response = self.client.patch(f'/api/v1/products/{product.pk}/', {
            'images': [
                {'public_id': 'keep', 'url': 'https://images.example.com/keep.jpg'},
                {'public_id': 'new', 'url': 'https://images.example.com/new.jpg'},
            ]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        mock_delete.assert_called_once_with('drop')
        self.assertFalse(AuditLog.objects.filter(action='update', object_id=str(product.pk)).exists())

    @mock.patch('storefront.catalog.views.image_host.is_configured', return_value=True)
    @mock.patch('storefront.catalog.views.image_host.delete_image')
    def test_update_records_images_the_host_kept(self, mock_delete, mock_configured):
        """A failed host delete during a replace is audited as an orphan"""
        mock_delete.side_effect = ImageHostError('Image host unavailable')
        product = TestDataFactory.create_product(seller=self.seller)
        TestDataFactory.create_product_image(product, public_id='old')
        response = self.client.patch(f'/api/v1/products/{product.pk}/', {
            'images': [{'public_id': 'new', 'url': 'https://images.example.com/new.jpg'}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        log = AuditLog.objects.get(action='update', object_id=str(product.pk))
        self.assertEqual(log.changes, {'orphaned_images': ['old']})

    @mock.patch('storefront.catalog.views.image_host.delete_image')
    def test_update_without_images_leaves_host_alone(self, mock_delete):
        """Updates that do not send images never touch hosted files"""
        product = TestDataFactory.create_product(seller=self.seller)
        TestDataFactory.create_product_image(product, public_id='old')
        response = self.client.patch(f'/api/v1/products/{product.pk}/', {'price': '12.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        mock_delete.assert_not_called()

    def test_other_seller_cannot_update(self):
        """Sellers cannot touch other sellers' products"""
        product = TestDataFactory.create_product(seller=self.other_seller)
        response = self.client.patch(f'/api/v1/products/{product.pk}/', {'price': '1.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_can_update_any(self):
        """Admins manage every product"""
        product = TestDataFactory.create_product(seller=self.other_seller)
        self.client.authenticate_user(self.admin)
        response = self.client.patch(f'/api/v1/products/{product.pk}/', {'featured': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_inactive_product_hidden(self):
        """Inactive products are only visible to their owner or admins"""
        product = TestDataFactory.create_product(seller=self.seller, status=Product.STATUS_INACTIVE)
        self.assertEqual(APIClient().get(f'/api/v1/products/{product.pk}/').status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(self.client.get(f'/api/v1/products/{product.pk}/').status_code, status.HTTP_200_OK)

    def test_delete_product(self):
        """Owners can delete their products"""
        product = TestDataFactory.create_product(seller=self.seller)
        response = self.client.delete(f'/api/v1/products/{product.pk}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Product.objects.filter(pk=product.pk).exists())

    def test_admin_product_list_includes_drafts(self):
        """The admin listing shows every status"""
        TestDataFactory.create_product(status=Product.STATUS_DRAFT)
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/admin/products/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pagination']['total'], 1)


class ProductImageAPITests(TestCase):
    """Test attaching, promoting and deleting product images"""

    def setUp(self):
        self.seller = TestDataFactory.create_seller()
        self.product = TestDataFactory.create_product(seller=self.seller)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.seller)

    def test_attach_hosted_images(self):
        """JSON images are appended; the first becomes primary"""
        response = self.client.post(f'/api/v1/products/{self.product.pk}/images/', {
            'images': [{'public_id': 'a', 'url': 'https://images.example.com/a.jpg'}, {'public_id': 'b', 'url': 'https://images.example.com/b.jpg'}]
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual([image['is_primary'] for image in response.data], [True, False])

    def test_set_primary(self):
        """PATCH moves the primary flag"""
        first = TestDataFactory.create_product_image(self.product, is_primary=True, position=0)
        second = TestDataFactory.create_product_image(self.product, position=1)
        response = self.client.patch(f'/api/v1/products/{self.product.pk}/images/{second.pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        first.refresh_from_db()
        second.refresh_from_db()
        self.assertFalse(first.is_primary)
        self.assertTrue(second.is_primary)

    @mock.patch('storefront.catalog.views.image_host.delete_image')
    def test_delete_image(self, mock_delete):
        """Deleting removes the hosted file, then the record, and re-elects a primary"""
        first = TestDataFactory.create_product_image(self.product, public_id='a', is_primary=True, position=0)
        second = TestDataFactory.create_product_image(self.product, public_id='b', position=1)
        response = self.client.delete(f'/api/v1/products/{self.product.pk}/images/{first.pk}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        mock_delete.assert_called_once_with('a')
        second.refresh_from_db()
        self.assertTrue(second.is_primary)

    @mock.patch('storefront.catalog.views.image_host.delete_image')
    def test_delete_image_host_failure_keeps_record(self, mock_delete):
        """A failed remote delete is a 502 and the record stays"""
        mock_delete.side_effect = ImageHostError('Image host unavailable')
        image = TestDataFactory.create_product_image(self.product, public_id='a')
        response = self.client.delete(f'/api/v1/products/{self.product.pk}/images/{image.pk}/')
        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertTrue(ProductImage.objects.filter(pk=image.pk).exists())

    @mock.patch('storefront.catalog.views.image_host.upload_multiple_images')
    def test_upload_files(self, mock_upload):
        """Multipart files are uploaded and attached"""
        mock_upload.return_value = [
            {'public_id': 'u1', 'url': 'https://images.example.com/u1.jpg', 'is_primary': True},
        ]
        response = self.client.post(f'/api/v1/products/{self.product.pk}/images/', {
            'files': [SimpleUploadedFile('u1.jpg', b'data', content_type='image/jpeg')]
        }, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(self.product.images.get().public_id, 'u1')
