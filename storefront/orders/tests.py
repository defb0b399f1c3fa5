"""
Test suite for the orders app
Tests: checkout, stock handling, status lifecycle, tracking, returns and order APIs
"""
from datetime import timedelta
from decimal import Decimal

from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status

from storefront.core.test_utils import DEFAULT_ADDRESS, TestDataFactory, AuthenticatedAPIClient
from storefront.orders import services
from storefront.orders.models import Order, ReturnRequest
from storefront.shop.models import Cart, CartItem


@override_settings(ORDER_TAX_RATE='0.10', ORDER_SHIPPING_FLAT='0.00')
class OrderServiceTests(TestCase):
    """Test the order service layer"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.product = TestDataFactory.create_product(price=Decimal('20.00'), quantity=5)

    def place(self, quantity=1, **kwargs):
        return services.create_order(
            self.user, [{'product_id': self.product.pk, 'quantity': quantity}],
            dict(DEFAULT_ADDRESS), 'cash_on_delivery', **kwargs
        )

    def test_calculate_totals(self):
        """Tax is applied to the subtotal"""
        self.assertEqual(services.calculate_totals(Decimal('100.00')), (Decimal('0.00'), Decimal('10.00'), Decimal('110.00')))

    @override_settings(ORDER_SHIPPING_FLAT='5.00')
    def test_calculate_totals_with_shipping(self):
        """Flat shipping is added; discounts never exceed the subtotal"""
        shipping, tax, total = services.calculate_totals(Decimal('50.00'), Decimal('10.00'))
        self.assertEqual(shipping, Decimal('5.00'))
        self.assertEqual(total, Decimal('50.00'))

    def test_create_order(self):
        """Checkout snapshots prices and decrements stock"""
        order = self.place(quantity=2)
        self.assertRegex(order.order_number, r'^ORD-\d{8}-[0-9A-F]{8}$')
        self.assertEqual(order.status, Order.STATUS_PENDING)
        self.assertEqual(order.subtotal, Decimal('40.00'))
        self.assertEqual(order.tax, Decimal('4.00'))
        self.assertEqual(order.total, Decimal('44.00'))
        item = order.items.get()
        self.assertEqual(item.product_name, self.product.name)
        self.assertEqual(item.price, Decimal('20.00'))
        self.assertEqual(item.seller_id, self.product.seller_id)

        self.product.refresh_from_db()
        self.assertEqual(self.product.quantity, 3)
        self.assertEqual(self.product.sales_count, 2)
        self.assertEqual(order.status_history.get().to_status, Order.STATUS_PENDING)

    def test_repeated_lines_are_merged(self):
        """Two lines for the same product become one"""
        order = services.create_order(
            self.user,
            [{'product_id': self.product.pk, 'quantity': 1}, {'product_id': self.product.pk, 'quantity': 2}],
            dict(DEFAULT_ADDRESS), 'cash_on_delivery'
        )
        self.assertEqual(order.items.get().quantity, 3)

    def test_insufficient_stock(self):
        """Orders beyond stock are refused and nothing changes"""
        with self.assertRaises(services.OrderError):
            self.place(quantity=6)
        self.product.refresh_from_db()
        self.assertEqual(self.product.quantity, 5)
        self.assertFalse(Order.objects.exists())

    def test_inactive_product(self):
        """Only active products can be ordered"""
        self.product.status = 'inactive'
        self.product.save()
        with self.assertRaises(services.OrderError):
            self.place()

    def test_missing_product(self):
        """Unknown products raise with a 404 status"""
        with self.assertRaises(services.OrderError) as ctx:
            services.create_order(self.user, [{'product_id': 99999, 'quantity': 1}], dict(DEFAULT_ADDRESS), 'paypal')
        self.assertEqual(ctx.exception.status_code, 404)

    def test_delivery_mode_must_be_offered(self):
        """Products must offer the chosen delivery mode"""
        with self.assertRaises(services.OrderError):
            self.place(delivery_mode='instant')
        self.product.deliver_instant = True
        self.product.save()
        self.assertEqual(self.place(delivery_mode='instant').delivery_mode, 'instant')

    def test_lifecycle(self):
        """pending -> confirmed -> processing -> shipped -> delivered, COD is paid on delivery"""
        order = self.place()
        for next_status in ('confirmed', 'processing', 'shipped', 'delivered'):
            order = services.update_status(order, next_status)
        self.assertEqual(order.status, Order.STATUS_DELIVERED)
        self.assertIsNotNone(order.shipped_at)
        self.assertIsNotNone(order.delivered_at)
        self.assertEqual(order.payment_status, Order.PAYMENT_COMPLETED)
        self.assertEqual(order.status_history.count(), 5)

    def test_invalid_transition(self):
        """Skipping steps or going backwards is refused"""
        order = self.place()
        with self.assertRaises(services.OrderError):
            services.update_status(order, Order.STATUS_SHIPPED)
        with self.assertRaises(services.OrderError):
            services.update_status(order, Order.STATUS_PENDING)
        with self.assertRaises(services.OrderError):
            services.update_status(order, 'lost')

    def test_cancel_restores_stock(self):
        """Cancelling puts stock and sales counters back"""
        order = self.place(quantity=2)
        order = services.cancel_order(order, self.user)
        self.assertEqual(order.status, Order.STATUS_CANCELLED)
        self.product.refresh_from_db()
        self.assertEqual(self.product.quantity, 5)
        self.assertEqual(self.product.sales_count, 0)

    def test_second_cancel_of_stale_copy_is_refused(self):
        """Two copies loaded before either cancel: only the first one restores stock"""
        order = self.place(quantity=2)
        first = Order.objects.get(pk=order.pk)
        second = Order.objects.get(pk=order.pk)

        services.cancel_order(first, self.user)
        with self.assertRaises(services.OrderError):
            services.cancel_order(second, self.user)

        self.product.refresh_from_db()
        self.assertEqual(self.product.quantity, 5)
        self.assertEqual(self.product.sales_count, 0)
        self.assertEqual(
            list(order.status_history.values_list('from_status', 'to_status')),
            [('', 'pending'), ('pending', 'cancelled')]
        )

    def test_stale_status_update_is_checked_against_current_row(self):
        """An admin update from an outdated copy cannot cancel twice"""
        order = self.place(quantity=2)
        stale = Order.objects.get(pk=order.pk)
        services.update_status(order, Order.STATUS_CANCELLED)
        with self.assertRaises(services.OrderError):
            services.update_status(stale, Order.STATUS_CANCELLED)
        self.product.refresh_from_db()
        self.assertEqual(self.product.quantity, 5)

    def test_cannot_cancel_shipped(self):
        """Customers cannot cancel once shipped"""
        order = self.place()
        for next_status in ('confirmed', 'processing', 'shipped'):
            order = services.update_status(order, next_status)
        with self.assertRaises(services.OrderError):
            services.cancel_order(order, self.user)

    def test_add_tracking_ships(self):
        """Tracking on a processing order marks it shipped"""
        order = self.place()
        for next_status in ('confirmed', 'processing'):
            order = services.update_status(order, next_status)
        order = services.add_tracking(order, 'BlueDart', 'BD123456')
        self.assertEqual(order.status, Order.STATUS_SHIPPED)
        self.assertEqual(order.tracking_number, 'BD123456')

    def test_add_tracking_requires_processing(self):
        """Pending orders cannot get tracking"""
        with self.assertRaises(services.OrderError):
            services.add_tracking(self.place(), 'BlueDart', 'BD1')

    def test_returns(self):
        """Returns need a delivered order inside its window, one pending at a time"""
        order = self.place()
        with self.assertRaises(services.OrderError):
            services.request_return(order, self.user, 'Damaged')

        for next_status in ('confirmed', 'processing', 'shipped', 'delivered'):
            order = services.update_status(order, next_status)
        return_request = services.request_return(order, self.user, 'Damaged', 'Box was crushed')
        self.assertEqual(return_request.status, 'pending')

        with self.assertRaises(services.OrderError) as ctx:
            services.request_return(order, self.user, 'Damaged')
        self.assertEqual(ctx.exception.status_code, 409)

    def test_return_window_expired(self):
        """Returns after the window are refused"""
        order = self.place()
        for next_status in ('confirmed', 'processing', 'shipped', 'delivered'):
            order = services.update_status(order, next_status)
        order.delivered_at = timezone.now() - timedelta(days=order.return_window_days + 1)
        order.save()
        with self.assertRaises(services.OrderError):
            services.request_return(order, self.user, 'Changed my mind')


@override_settings(ORDER_TAX_RATE='0.10', ORDER_SHIPPING_FLAT='0.00')
class OrderAPITests(TestCase):
    """Test customer order endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.product = TestDataFactory.create_product(price=Decimal('30.00'), quantity=10)

    def payload(self, **overrides):
        data = {
            'items': [{'product_id': self.product.pk, 'quantity': 2}],
            'shipping_address': dict(DEFAULT_ADDRESS),
            'payment_method': 'cash_on_delivery',
        }
        data.update(overrides)
        return data

    def test_place_order(self):
        """Checkout returns the full order"""
        response = self.client.post('/api/v1/orders/', self.payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['total'], '66.00')
        self.assertEqual(response.data['item_count'], 2)
        self.assertEqual(response.data['shipping_address']['city'], 'Bengaluru')
        self.assertEqual(response.data['billing_address']['city'], 'Bengaluru')

    def test_missing_items(self):
        """Items are required unless ordering from the cart"""
        response = self.client.post('/api/v1/orders/', self.payload(items=[]), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_invalid_address(self):
        """Addresses need street, city and zip code"""
        response = self.client.post('/api/v1/orders/', self.payload(shipping_address={'city': 'Pune'}), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('shipping_address', response.data)

    def test_insufficient_stock(self):
        """Stock errors surface as 400"""
        response = self.client.post('/api/v1/orders/', self.payload(items=[{'product_id': self.product.pk, 'quantity': 50}]), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Insufficient stock', response.data['error'])

    def test_order_from_cart(self):
        """from_cart orders the cart and empties it"""
        cart = Cart.objects.create(user=self.user)
        CartItem.objects.create(cart=cart, product=self.product, quantity=3)
        payload = self.payload(from_cart=True)
        del payload['items']
        response = self.client.post('/api/v1/orders/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['item_count'], 3)
        self.assertFalse(cart.items.exists())

    def test_order_from_empty_cart(self):
        """An empty cart cannot be checked out"""
        response = self.client.post('/api/v1/orders/', {
            'from_cart': True, 'shipping_address': dict(DEFAULT_ADDRESS), 'payment_method': 'paypal'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Cart is empty')

    def test_session_delivery_mode_applies(self):
        """Without delivery_mode the session mode is used"""
        self.client.put('/api/v1/delivery-mode/', {'mode': 'instant'}, format='json')
        response = self.client.post('/api/v1/orders/', self.payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post('/api/v1/orders/', self.payload(delivery_mode='standard'), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_list_only_mine(self):
        """Customers see their own orders"""
        mine = TestDataFactory.create_order(self.user, products=[self.product])
        TestDataFactory.create_order(TestDataFactory.create_user(), products=[self.product])
        response = self.client.get('/api/v1/orders/')
        self.assertEqual([row['id'] for row in response.data['results']], [mine.pk])

    def test_other_users_order_forbidden(self):
        """Orders of other customers are off limits"""
        order = TestDataFactory.create_order(TestDataFactory.create_user(), products=[self.product])
        response = self.client.get(f'/api/v1/orders/{order.pk}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = self.client.post(f'/api/v1/orders/{order.pk}/cancel/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_cancel(self):
        """Customers cancel their pending orders"""
        order = TestDataFactory.create_order(self.user, products=[self.product], quantity=4)
        response = self.client.post(f'/api/v1/orders/{order.pk}/cancel/', {'reason': 'Ordered by mistake'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'cancelled')
        self.assertEqual(response.data['status_history'][-1]['notes'], 'Ordered by mistake')
        self.product.refresh_from_db()
        self.assertEqual(self.product.quantity, 10)

    def test_track(self):
        """Tracking returns the status history"""
        order = TestDataFactory.create_order(self.user, products=[self.product])
        response = self.client.get(f'/api/v1/orders/{order.pk}/track/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([entry['status'] for entry in response.data['history']], ['pending'])

    def test_return_request(self):
        """Delivered orders can be returned by their owner"""
        order = TestDataFactory.create_order(self.user, products=[self.product])
        for next_status in ('confirmed', 'processing', 'shipped', 'delivered'):
            order = services.update_status(order, next_status)
        response = self.client.post(f'/api/v1/orders/{order.pk}/return/', {'reason': 'Wrong size'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(ReturnRequest.objects.filter(order=order).exists())


class AdminOrderAPITests(TestCase):
    """Test admin order endpoints"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.customer = TestDataFactory.create_user()
        self.order = TestDataFactory.create_order(self.customer)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_list_and_filter(self):
        """Admins see all orders and can filter by status"""
        response = self.client.get('/api/v1/admin/orders/')
        self.assertEqual(response.data['pagination']['total'], 1)
        response = self.client.get('/api/v1/admin/orders/', {'status': 'delivered'})
        self.assertEqual(response.data['pagination']['total'], 0)

    def test_status_update(self):
        """Valid transitions are applied and recorded"""
        response = self.client.patch(f'/api/v1/admin/orders/{self.order.pk}/status/', {'status': 'confirmed', 'notes': 'Stock checked'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'confirmed')
        self.assertEqual(response.data['status_history'][-1]['changed_by'], self.admin.pk)

    def test_invalid_status_update(self):
        """Invalid transitions are a 400"""
        response = self.client.patch(f'/api/v1/admin/orders/{self.order.pk}/status/', {'status': 'delivered'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_tracking(self):
        """Adding tracking to a processing order ships it"""
        for next_status in ('confirmed', 'processing'):
            self.order = services.update_status(self.order, next_status)
        response = self.client.post(f'/api/v1/admin/orders/{self.order.pk}/tracking/', {
            'carrier': 'Delhivery', 'tracking_number': 'DL998877'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'shipped')

    def test_customer_forbidden(self):
        """Customers cannot change order status"""
        self.client.authenticate_user(self.customer)
        response = self.client.patch(f'/api/v1/admin/orders/{self.order.pk}/status/', {'status': 'confirmed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
