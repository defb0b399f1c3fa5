import re

from rest_framework import serializers

from storefront.core.models import User
from .models import SellerDetails

PINCODE_RE = re.compile(r'^\d{6}$')


class SellerDetailsSerializer(serializers.ModelSerializer):
    address = serializers.DictField(read_only=True)
    has_location = serializers.BooleanField(read_only=True)
    username = serializers.CharField(source='user.username', read_only=True)
    email = serializers.EmailField(source='user.email', read_only=True)

    class Meta:
        model = SellerDetails
        fields = ['id', 'user', 'username', 'email', 'seller_name', 'store_name', 'phone',
                  'street', 'city', 'state', 'pincode', 'country', 'address',
                  'latitude', 'longitude', 'has_location', 'service_radius_km', 'gst_number',
                  'is_approved', 'approved_at', 'created_at', 'updated_at']
        read_only_fields = ['user', 'is_approved', 'approved_at', 'created_at', 'updated_at']

    def validate_pincode(self, value):
        value = (value or '').strip()
        if value and not PINCODE_RE.match(value):
            raise serializers.ValidationError('Pincode must be 6 digits')
        return value

    def validate_gst_number(self, value):
        return (value or '').strip().upper()

    def validate(self, attrs):
        latitude = attrs.get('latitude', getattr(self.instance, 'latitude', None))
        longitude = attrs.get('longitude', getattr(self.instance, 'longitude', None))
        if (latitude is None) != (longitude is None):
            raise serializers.ValidationError('Latitude and longitude must be provided together')
        return attrs


class NearbySellerSerializer(serializers.ModelSerializer):
    """Nearby search result; distance_km comes from the serializer context"""
    address = serializers.DictField(read_only=True)
    distance_km = serializers.SerializerMethodField()
    user = serializers.SerializerMethodField()

    class Meta:
        model = SellerDetails
        fields = ['id', 'seller_name', 'store_name', 'phone', 'address', 'pincode', 'latitude',
                  'longitude', 'service_radius_km', 'gst_number', 'is_approved', 'distance_km', 'user']
        read_only_fields = fields

    def get_distance_km(self, obj):
        distance = self.context.get('distances', {}).get(obj.pk)
        return round(distance, 2) if distance is not None else None

    def get_user(self, obj):
        return {
            'id': obj.user_id,
            'name': obj.user.display_name,
            'email': obj.user.email,
            'avatar_url': obj.user.avatar_url,
            'joined_at': obj.user.date_joined,
        }


class AdminSellerSerializer(serializers.ModelSerializer):
    """Seller account with its store profile, for the admin seller list"""
    seller_details = SellerDetailsSerializer(read_only=True, allow_null=True)
    product_count = serializers.IntegerField(read_only=True, default=0)

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'first_name', 'last_name', 'phone', 'is_active',
                  'is_suspended', 'date_joined', 'seller_details', 'product_count']
        read_only_fields = fields
