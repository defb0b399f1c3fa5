"""
Order lifecycle: checkout, status transitions, cancellation, tracking and
returns. Every function that touches stock locks the product rows.
"""
import logging
import uuid
from collections import OrderedDict
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from storefront.catalog.delivery import (
    DEFAULT_DELIVERY_MODE, normalize_delivery_mode, product_supports_delivery
)
from storefront.catalog.models import Product
from .models import Order, OrderItem, OrderStatusHistory, ReturnRequest

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal('0.01')

ALLOWED_TRANSITIONS = {
    Order.STATUS_PENDING: {Order.STATUS_CONFIRMED, Order.STATUS_CANCELLED},
    Order.STATUS_CONFIRMED: {Order.STATUS_PROCESSING, Order.STATUS_CANCELLED},
    Order.STATUS_PROCESSING: {Order.STATUS_SHIPPED, Order.STATUS_CANCELLED},
    Order.STATUS_SHIPPED: {Order.STATUS_DELIVERED},
    Order.STATUS_DELIVERED: {Order.STATUS_REFUNDED},
    Order.STATUS_CANCELLED: set(),
    Order.STATUS_REFUNDED: set(),
}

CUSTOMER_CANCELLABLE = {Order.STATUS_PENDING, Order.STATUS_CONFIRMED}


class OrderError(Exception):
    """Checkout or lifecycle rule violation; status_code is the HTTP status to answer with"""

    def __init__(self, message, status_code=400):
        super().__init__(message)
        self.status_code = status_code


def get_tax_rate():
    return Decimal(str(getattr(settings, 'ORDER_TAX_RATE', '0.10')))


def get_flat_shipping():
    return Decimal(str(getattr(settings, 'ORDER_SHIPPING_FLAT', '0.00')))


def generate_order_number():
    """ORD-YYYYMMDD-XXXXXXXX, retried until unused"""
    while True:
        order_number = f"ORD-{timezone.now().strftime('%Y%m%d')}-{str(uuid.uuid4())[:8].upper()}"
        if not Order.objects.filter(order_number=order_number).exists():
            return order_number


def calculate_totals(subtotal, discount=Decimal('0.00')):
    """(shipping, tax, total) for a subtotal"""
    subtotal = Decimal(subtotal)
    discount = min(Decimal(discount), subtotal)
    shipping = get_flat_shipping() if subtotal > 0 else Decimal('0.00')
    tax = (subtotal * get_tax_rate()).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    total = (subtotal + shipping + tax - discount).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    return shipping, tax, total


def _merge_lines(items):
    """Sum quantities of repeated products, keeping first-seen order"""
    merged = OrderedDict()
    for line in items:
        product_id = int(line['product_id'])
        quantity = int(line.get('quantity', 1))
        if quantity < 1:
            raise OrderError('Quantity must be at least 1')
        entry = merged.setdefault(product_id, {'quantity': 0, 'variant': line.get('variant')})
        entry['quantity'] += quantity
    return merged


def record_status(order, from_status, to_status, user=None, notes=''):
    return OrderStatusHistory.objects.create(
        order=order, from_status=from_status or '', to_status=to_status,
        changed_by=user if user and user.is_authenticated else None, notes=notes or ''
    )


def _restore_stock(order):
    product_ids = [item.product_id for item in order.items.all() if item.product_id]
    products = Product.objects.select_for_update().in_bulk(product_ids)
    for item in order.items.all():
        product = products.get(item.product_id)
        if not product:
            continue
        if product.track_quantity:
            product.quantity = F('quantity') + item.quantity
        product.sales_count = F('sales_count') - item.quantity
        product.sales_total = F('sales_total') - item.total
        product.save(update_fields=['quantity', 'sales_count', 'sales_total', 'updated_at'])


def create_order(user, items, shipping_address, payment_method, billing_address=None,
                 customer_notes='', delivery_mode=DEFAULT_DELIVERY_MODE, discount=Decimal('0.00')):
    """
    Create an order from [{product_id, quantity, variant?}] lines.

    Products must be active, offer the delivery mode and have enough stock.
    Prices are snapshotted and stock is decremented in the same transaction.
    """
    if not items:
        raise OrderError('Order must contain at least one item')
    delivery_mode = normalize_delivery_mode(delivery_mode)
    lines = _merge_lines(items)

    with transaction.atomic():
        products = Product.objects.select_for_update().prefetch_related('images').in_bulk(list(lines))

        subtotal = Decimal('0.00')
        prepared = []
        for product_id, line in lines.items():
            product = products.get(product_id)
            if product is None:
                raise OrderError(f'Product not found: {product_id}', status_code=404)
            if product.status != Product.STATUS_ACTIVE:
                raise OrderError(f'Product is not available: {product.name}')
            if not product_supports_delivery(product, delivery_mode):
                raise OrderError(f'{product.name} is not available for {delivery_mode} delivery')
            quantity = line['quantity']
            if product.available_quantity(quantity) < quantity:
                raise OrderError(f'Insufficient stock for {product.name}. Available: {product.quantity}')
            line_total = (product.price * quantity).quantize(TWO_PLACES)
            subtotal += line_total
            prepared.append((product, quantity, line.get('variant'), line_total))

        shipping, tax, total = calculate_totals(subtotal, discount)
        order = Order.objects.create(
            order_number=generate_order_number(),
            user=user,
            delivery_mode=delivery_mode,
            shipping_address=shipping_address,
            billing_address=billing_address or shipping_address,
            payment_method=payment_method,
            payment_amount=total,
            currency=getattr(settings, 'ORDER_CURRENCY', 'USD'),
            subtotal=subtotal,
            shipping_cost=shipping,
            tax=tax,
            discount=min(Decimal(discount), subtotal),
            total=total,
            customer_notes=customer_notes or '',
        )

        for product, quantity, variant, line_total in prepared:
            image = product.primary_image
            OrderItem.objects.create(
                order=order,
                product=product,
                seller_id=product.seller_id,
                product_name=product.name,
                image_url=image.url if image else '',
                variant=variant,
                quantity=quantity,
                price=product.price,
                total=line_total,
            )
            if product.track_quantity:
                product.quantity = F('quantity') - quantity
            product.sales_count = F('sales_count') + quantity
            product.sales_total = F('sales_total') + line_total
            product.save(update_fields=['quantity', 'sales_count', 'sales_total', 'updated_at'])

        record_status(order, '', Order.STATUS_PENDING, user, 'Order placed')

    logger.info(f"Order {order.order_number} created for {user.username}: total {order.total}")
    return order


def create_order_from_cart(user, shipping_address, payment_method, **kwargs):
    """Check out the user's cart and empty it"""
    from storefront.shop.models import Cart

    cart = Cart.objects.filter(user=user).prefetch_related('items').first()
    if cart is None or not cart.items.exists():
        raise OrderError('Cart is empty')

    items = [{'product_id': item.product_id, 'quantity': item.quantity} for item in cart.items.all()]
    with transaction.atomic():
        order = create_order(user, items, shipping_address, payment_method, **kwargs)
        cart.items.all().delete()
    return order


def update_status(order, new_status, user=None, notes=''):
    """
    Move an order along ALLOWED_TRANSITIONS, recording history and the
    shipped/delivered/refunded timestamps. Cancelling restores stock.

    Transition rules are checked against the locked row, so two requests
    racing on the same order cannot both apply.
    """
    if new_status not in dict(Order.STATUS_CHOICES):
        raise OrderError(f'Invalid status: {new_status}')

    with transaction.atomic():
        order = Order.objects.select_for_update().get(pk=order.pk)
        previous = order.status
        if new_status == previous:
            raise OrderError(f'Order is already {new_status}')
        if new_status not in ALLOWED_TRANSITIONS.get(previous, set()):
            raise OrderError(f'Cannot change order status from {previous} to {new_status}')

        now = timezone.now()
        order.status = new_status

        if new_status == Order.STATUS_SHIPPED and not order.shipped_at:
            order.shipped_at = now
        elif new_status == Order.STATUS_DELIVERED:
            order.delivered_at = now
            if order.payment_method == 'cash_on_delivery' and order.payment_status == Order.PAYMENT_PENDING:
                order.payment_status = Order.PAYMENT_COMPLETED
                order.paid_at = now
        elif new_status in (Order.STATUS_CANCELLED, Order.STATUS_REFUNDED):
            if new_status == Order.STATUS_CANCELLED:
                _restore_stock(order)
            if order.payment_status == Order.PAYMENT_COMPLETED or new_status == Order.STATUS_REFUNDED:
                order.refund_amount = order.total
            order.payment_status = Order.PAYMENT_REFUNDED
            order.refunded_at = now

        order.save()
        record_status(order, previous, new_status, user, notes)

    logger.info(f"Order {order.order_number}: {previous} -> {new_status}")
    return order


def cancel_order(order, user, reason=''):
    """Customer cancellation; only pending or confirmed orders qualify"""
    with transaction.atomic():
        order = Order.objects.select_for_update().get(pk=order.pk)
        if order.status not in CUSTOMER_CANCELLABLE:
            raise OrderError(f'Order cannot be cancelled in {order.status} status')
        return update_status(order, Order.STATUS_CANCELLED, user, reason or 'Cancelled by customer')


def add_tracking(order, carrier, tracking_number, tracking_url='', user=None):
    """Attach tracking details; a processing order moves to shipped"""
    if not carrier or not tracking_number:
        raise OrderError('Carrier and tracking number are required')

    with transaction.atomic():
        order = Order.objects.select_for_update().get(pk=order.pk)
        if order.status not in (Order.STATUS_PROCESSING, Order.STATUS_SHIPPED):
            raise OrderError(f'Tracking can only be added to processing or shipped orders (current: {order.status})')

        order.carrier = carrier
        order.tracking_number = tracking_number
        order.tracking_url = tracking_url or ''
        order.save(update_fields=['carrier', 'tracking_number', 'tracking_url', 'updated_at'])

        if order.status == Order.STATUS_PROCESSING:
            order = update_status(order, Order.STATUS_SHIPPED, user, f'Shipped via {carrier} ({tracking_number})')
    return order


def return_deadline(order):
    if not order.delivered_at:
        return None
    return order.delivered_at + timedelta(days=order.return_window_days)


def request_return(order, user, reason, description=''):
    """Open a return request on a delivered order still inside its return window"""
    if not reason:
        raise OrderError('A return reason is required')

    with transaction.atomic():
        order = Order.objects.select_for_update().get(pk=order.pk)
        if order.status != Order.STATUS_DELIVERED:
            raise OrderError('Only delivered orders can be returned')
        if not order.is_returnable:
            raise OrderError('This order is not returnable')
        deadline = return_deadline(order)
        if deadline and timezone.now() > deadline:
            raise OrderError(f'Return window of {order.return_window_days} days has expired')
        if order.return_requests.filter(status='pending').exists():
            raise OrderError('A return request is already pending for this order', status_code=409)

        return_request = ReturnRequest.objects.create(
            order=order, requested_by=user, reason=reason, description=description or ''
        )
    logger.info(f"Return requested for order {order.order_number}")
    return return_request
