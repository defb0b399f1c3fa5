from rest_framework import serializers

from storefront.catalog.models import Product
from storefront.catalog.serializers import ProductListSerializer
from .models import Banner, HomepageSection


class BannerSerializer(serializers.ModelSerializer):
    is_currently_active = serializers.SerializerMethodField()

    class Meta:
        model = Banner
        fields = ['id', 'title', 'description', 'image_url', 'image_public_id', 'button_text',
                  'button_link', 'is_active', 'order', 'start_date', 'end_date', 'target_audience',
                  'category', 'priority', 'is_currently_active', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def get_is_currently_active(self, obj):
        return obj.is_currently_active()

    def validate(self, attrs):
        start_date = attrs.get('start_date', getattr(self.instance, 'start_date', None))
        end_date = attrs.get('end_date', getattr(self.instance, 'end_date', None))
        if start_date and end_date and end_date <= start_date:
            raise serializers.ValidationError({'end_date': 'End date must be after start date'})
        return attrs


class HomepageSectionSerializer(serializers.ModelSerializer):
    products = serializers.SerializerMethodField()
    product_ids = serializers.ListField(
        child=serializers.IntegerField(min_value=1), write_only=True, required=False
    )
    created_by_name = serializers.CharField(source='created_by.display_name', read_only=True, default=None)
    last_modified_by_name = serializers.CharField(source='last_modified_by.display_name', read_only=True, default=None)

    class Meta:
        model = HomepageSection
        fields = ['id', 'title', 'description', 'type', 'category', 'products', 'product_ids',
                  'max_products', 'is_visible', 'order', 'banner_image_public_id', 'banner_image_url',
                  'banner_link', 'banner_text', 'created_by', 'created_by_name', 'last_modified_by',
                  'last_modified_by_name', 'created_at', 'updated_at']
        read_only_fields = ['created_by', 'last_modified_by', 'created_at', 'updated_at']

    def get_products(self, obj):
        products = self.context.get('products_by_section', {}).get(obj.pk)
        if products is None:
            products = obj.ordered_products().select_related('category', 'seller').prefetch_related('images')
        return ProductListSerializer(products, many=True).data

    def validate_category(self, value):
        return (value or '').strip().lower()

    def validate_product_ids(self, value):
        ids = list(dict.fromkeys(value))
        existing = set(Product.objects.filter(pk__in=ids).values_list('pk', flat=True))
        missing = [product_id for product_id in ids if product_id not in existing]
        if missing:
            raise serializers.ValidationError(f'Products not found: {missing}')
        return ids

    def create(self, validated_data):
        product_ids = validated_data.pop('product_ids', None)
        section = super().create(validated_data)
        if product_ids is not None:
            section.set_products(product_ids)
        return section

    def update(self, instance, validated_data):
        product_ids = validated_data.pop('product_ids', None)
        section = super().update(instance, validated_data)
        if product_ids is not None:
            section.set_products(product_ids)
        elif 'max_products' in validated_data:
            # Shrinking max_products trims the tail
            section.set_products(section.product_ids())
        return section


class SectionProductSerializer(serializers.Serializer):
    product_id = serializers.IntegerField(min_value=1)


class SectionProductOrderSerializer(serializers.Serializer):
    product_ids = serializers.ListField(child=serializers.IntegerField(min_value=1), allow_empty=False)

    def validate_product_ids(self, value):
        ids = list(dict.fromkeys(value))
        existing = set(Product.objects.filter(pk__in=ids).values_list('pk', flat=True))
        missing = [product_id for product_id in ids if product_id not in existing]
        if missing:
            raise serializers.ValidationError(f'Products not found: {missing}')
        return ids


class MoveSerializer(serializers.Serializer):
    direction = serializers.ChoiceField(choices=['up', 'down'])
