from rest_framework import serializers

from storefront.catalog.models import Product
from storefront.orders.models import Order
from .models import Review


class ReviewSerializer(serializers.ModelSerializer):
    product = serializers.PrimaryKeyRelatedField(queryset=Product.objects.all())
    order = serializers.PrimaryKeyRelatedField(queryset=Order.objects.all(), required=False, allow_null=True)
    product_name = serializers.CharField(source='product.name', read_only=True)
    user_name = serializers.CharField(source='user.display_name', read_only=True)
    user_avatar = serializers.CharField(source='user.avatar_url', read_only=True)
    is_helpful = serializers.SerializerMethodField()
    response = serializers.SerializerMethodField()

    class Meta:
        model = Review
        fields = ['id', 'product', 'product_name', 'order', 'user', 'user_name', 'user_avatar',
                  'rating', 'title', 'comment', 'status', 'verified', 'helpful_count', 'is_helpful',
                  'response', 'created_at', 'updated_at']
        read_only_fields = ['user', 'status', 'verified', 'helpful_count', 'created_at', 'updated_at']

    def get_is_helpful(self, obj):
        request = self.context.get('request')
        if not request or not request.user.is_authenticated:
            return False
        return obj.helpful_users.filter(pk=request.user.pk).exists()

    def get_response(self, obj):
        if not obj.response_text:
            return None
        return {
            'text': obj.response_text,
            'responded_by': obj.responded_by.display_name if obj.responded_by else None,
            'responded_at': obj.responded_at,
        }

    def validate(self, attrs):
        if self.instance is not None:
            # Product and order are fixed once reviewed
            attrs.pop('product', None)
            attrs.pop('order', None)
            return attrs

        user = self.context['request'].user
        product = attrs['product']
        order = attrs.get('order')
        if order is None:
            raise serializers.ValidationError({'order': 'This field is required.'})
        if Review.objects.filter(user=user, product=product).exists():
            raise serializers.ValidationError({'product': 'You have already reviewed this product'})
        if order.user_id != user.id or order.status != Order.STATUS_DELIVERED:
            raise serializers.ValidationError({'order': 'Order not found or not delivered'})
        if not order.items.filter(product=product).exists():
            raise serializers.ValidationError({'product': 'Product not found in order'})

        attrs['verified'] = True
        return attrs


class ReviewResponseSerializer(serializers.Serializer):
    text = serializers.CharField(max_length=500)


class ReviewModerationSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[Review.STATUS_APPROVED, Review.STATUS_REJECTED])
