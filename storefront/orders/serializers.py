from rest_framework import serializers
from storefront.catalog.delivery import DELIVERY_MODE_CHOICES
from .models import Order, OrderItem, OrderStatusHistory, ReturnRequest


class AddressSerializer(serializers.Serializer):
    full_name = serializers.CharField(max_length=100)
    street = serializers.CharField(max_length=255)
    city = serializers.CharField(max_length=100)
    state = serializers.CharField(max_length=100)
    zip_code = serializers.CharField(max_length=20)
    country = serializers.CharField(max_length=100, default='India')
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True)


class OrderLineSerializer(serializers.Serializer):
    product_id = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(min_value=1, default=1)
    variant = serializers.DictField(required=False, allow_null=True)


class OrderCreateSerializer(serializers.Serializer):
    """Checkout payload: explicit items, or from_cart=true to use the caller's cart"""
    items = OrderLineSerializer(many=True, required=False)
    from_cart = serializers.BooleanField(default=False)
    shipping_address = AddressSerializer()
    billing_address = AddressSerializer(required=False)
    payment_method = serializers.ChoiceField(choices=Order.PAYMENT_METHOD_CHOICES)
    delivery_mode = serializers.ChoiceField(choices=DELIVERY_MODE_CHOICES, required=False)
    customer_notes = serializers.CharField(max_length=500, required=False, allow_blank=True)

    def validate(self, attrs):
        if not attrs.get('from_cart') and not attrs.get('items'):
            raise serializers.ValidationError({'items': 'Provide order items or set from_cart.'})
        return attrs


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = ['id', 'product', 'seller', 'product_name', 'image_url', 'variant', 'quantity', 'price', 'total']


class OrderStatusHistorySerializer(serializers.ModelSerializer):
    changed_by_name = serializers.CharField(source='changed_by.username', read_only=True, default=None)

    class Meta:
        model = OrderStatusHistory
        fields = ['from_status', 'to_status', 'notes', 'changed_by', 'changed_by_name', 'changed_at']


class ReturnRequestSerializer(serializers.ModelSerializer):
    class Meta:
        model = ReturnRequest
        fields = ['id', 'order', 'reason', 'description', 'status', 'created_at']
        read_only_fields = ['order', 'status', 'created_at']


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)
    status_history = OrderStatusHistorySerializer(many=True, read_only=True)
    customer_name = serializers.CharField(source='user.display_name', read_only=True)
    customer_email = serializers.CharField(source='user.email', read_only=True)
    item_count = serializers.IntegerField(read_only=True)

    class Meta:
        model = Order
        fields = ['id', 'order_number', 'user', 'customer_name', 'customer_email', 'status', 'delivery_mode',
                  'shipping_address', 'billing_address',
                  'payment_method', 'payment_status', 'transaction_id', 'payment_amount', 'currency',
                  'paid_at', 'refunded_at', 'refund_amount',
                  'subtotal', 'shipping_cost', 'tax', 'discount', 'total',
                  'carrier', 'tracking_number', 'tracking_url', 'shipped_at', 'delivered_at',
                  'customer_notes', 'is_returnable', 'return_window_days',
                  'items', 'item_count', 'status_history', 'created_at', 'updated_at']
        read_only_fields = fields


class OrderListSerializer(serializers.ModelSerializer):
    item_count = serializers.IntegerField(read_only=True)
    customer_name = serializers.CharField(source='user.display_name', read_only=True)

    class Meta:
        model = Order
        fields = ['id', 'order_number', 'customer_name', 'status', 'payment_status', 'payment_method',
                  'delivery_mode', 'total', 'item_count', 'created_at']
        read_only_fields = fields


class OrderStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Order.STATUS_CHOICES)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=1000)


class TrackingSerializer(serializers.Serializer):
    carrier = serializers.CharField(max_length=100)
    tracking_number = serializers.CharField(max_length=100)
    tracking_url = serializers.URLField(required=False, allow_blank=True)
