from rest_framework import serializers
from .models import Category, Product, ProductImage
from .delivery import DELIVERY_FIELD_MAP


class CategorySerializer(serializers.ModelSerializer):
    product_count = serializers.IntegerField(read_only=True, required=False)

    class Meta:
        model = Category
        fields = ['id', 'name', 'slug', 'description', 'is_active', 'product_count', 'created_at', 'updated_at']
        read_only_fields = ['slug', 'created_at', 'updated_at']


class ProductImageSerializer(serializers.ModelSerializer):
    class Meta:
        model = ProductImage
        fields = ['id', 'public_id', 'url', 'alt', 'is_primary', 'position']
        read_only_fields = ['id', 'position']


class DeliveryOptionsField(serializers.Field):
    """
    Exposes the three deliver_* columns as
    {"instant": bool, "nextDay": bool, "standard": bool}.
    """

    def __init__(self, **kwargs):
        kwargs['source'] = '*'
        super().__init__(**kwargs)

    def to_representation(self, product):
        return {mode: getattr(product, field) for mode, field in DELIVERY_FIELD_MAP.items()}

    def to_internal_value(self, data):
        if not isinstance(data, dict):
            raise serializers.ValidationError('Expected an object keyed by delivery mode.')
        unknown = set(data) - set(DELIVERY_FIELD_MAP)
        if unknown:
            raise serializers.ValidationError(f"Unknown delivery mode(s): {', '.join(sorted(unknown))}")
        result = {}
        for mode, value in data.items():
            if not isinstance(value, bool):
                raise serializers.ValidationError(f"'{mode}' must be true or false.")
            result[DELIVERY_FIELD_MAP[mode]] = value
        return result


class ProductListSerializer(serializers.ModelSerializer):
    """Compact product card used by listings, carts and homepage sections"""
    category_name = serializers.CharField(source='category.name', read_only=True, default=None)
    seller_name = serializers.SerializerMethodField()
    primary_image = serializers.SerializerMethodField()
    delivery_options = DeliveryOptionsField(read_only=True)
    is_in_stock = serializers.BooleanField(read_only=True)

    class Meta:
        model = Product
        fields = ['id', 'name', 'slug', 'short_description', 'price', 'compare_price',
                  'category', 'category_name', 'brand', 'status', 'featured', 'seller', 'seller_name',
                  'primary_image', 'delivery_options', 'is_in_stock', 'quantity',
                  'rating_average', 'rating_count', 'sales_count', 'created_at']
        read_only_fields = fields

    def get_seller_name(self, obj):
        if not obj.seller:
            return None
        details = getattr(obj.seller, 'seller_details', None)
        if details and details.store_name:
            return details.store_name
        return obj.seller.display_name

    def get_primary_image(self, obj):
        image = obj.primary_image
        return ProductImageSerializer(image).data if image else None


class ProductSerializer(serializers.ModelSerializer):
    category_name = serializers.CharField(source='category.name', read_only=True, default=None)
    seller_name = serializers.CharField(source='seller.display_name', read_only=True, default=None)
    images = ProductImageSerializer(many=True, required=False)
    delivery_options = DeliveryOptionsField(required=False)
    is_in_stock = serializers.BooleanField(read_only=True)
    is_low_stock = serializers.BooleanField(read_only=True)

    class Meta:
        model = Product
        fields = ['id', 'name', 'slug', 'description', 'short_description', 'price', 'compare_price',
                  'cost_price', 'sku', 'category', 'category_name', 'brand', 'tags', 'status', 'featured',
                  'track_quantity', 'quantity', 'low_stock_threshold', 'allow_backorder',
                  'delivery_options', 'images', 'seller', 'seller_name',
                  'is_in_stock', 'is_low_stock', 'rating_average', 'rating_count',
                  'sales_count', 'sales_total', 'created_at', 'updated_at']
        read_only_fields = ['slug', 'seller', 'rating_average', 'rating_count', 'sales_count',
                            'sales_total', 'created_at', 'updated_at']

    def validate_tags(self, value):
        if not isinstance(value, list) or not all(isinstance(tag, str) for tag in value):
            raise serializers.ValidationError('Tags must be a list of strings.')
        return [tag.strip().lower() for tag in value if tag.strip()]

    def validate(self, attrs):
        compare_price = attrs.get('compare_price', getattr(self.instance, 'compare_price', None))
        price = attrs.get('price', getattr(self.instance, 'price', None))
        if compare_price is not None and price is not None and compare_price < price:
            raise serializers.ValidationError({'compare_price': 'Compare price must not be lower than the price.'})

        images = attrs.get('images')
        if images is not None and sum(1 for image in images if image.get('is_primary')) > 1:
            raise serializers.ValidationError({'images': 'Only one image can be primary.'})
        return attrs

    def _save_images(self, product, images):
        product.images.all().delete()
        for position, image in enumerate(images):
            ProductImage.objects.create(product=product, position=position, **image)
        product.normalize_primary_image()

    def create(self, validated_data):
        images = validated_data.pop('images', [])
        product = Product.objects.create(**validated_data)
        self._save_images(product, images)
        return product

    def update(self, instance, validated_data):
        images = validated_data.pop('images', None)
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        instance.save()
        if images is not None:
            self._save_images(instance, images)
            # Drop images prefetched before the replace
            getattr(instance, '_prefetched_objects_cache', {}).pop('images', None)
        return instance
