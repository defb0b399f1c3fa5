from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils.text import slugify
from decimal import Decimal


def unique_slug(model, value, instance_pk=None, max_length=120):
    """Slugify value and append -2, -3, ... until it is unused by another row"""
    base = (slugify(value) or 'item')[:max_length - 8]
    slug = base
    counter = 2
    queryset = model.objects.all()
    if instance_pk:
        queryset = queryset.exclude(pk=instance_pk)
    while queryset.filter(slug=slug).exists():
        slug = f"{base}-{counter}"
        counter += 1
    return slug


class Category(models.Model):
    """Product categories"""
    name = models.CharField(max_length=100, unique=True)
    slug = models.SlugField(max_length=120, unique=True, blank=True)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = unique_slug(Category, self.name, self.pk)
        super().save(*args, **kwargs)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'categories'
        verbose_name_plural = 'categories'
        ordering = ['name']


class Product(models.Model):
    """A seller's product listing"""
    STATUS_DRAFT = 'draft'
    STATUS_ACTIVE = 'active'
    STATUS_INACTIVE = 'inactive'
    STATUS_ARCHIVED = 'archived'
    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Draft'),
        (STATUS_ACTIVE, 'Active'),
        (STATUS_INACTIVE, 'Inactive'),
        (STATUS_ARCHIVED, 'Archived'),
    ]

    name = models.CharField(max_length=100, db_index=True)
    slug = models.SlugField(max_length=120, unique=True, blank=True)
    description = models.TextField(max_length=2000)
    short_description = models.CharField(max_length=200, blank=True)
    price = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(Decimal('0'))])
    compare_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True, validators=[MinValueValidator(Decimal('0'))])
    cost_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True, validators=[MinValueValidator(Decimal('0'))])
    sku = models.CharField(max_length=100, unique=True, null=True, blank=True)
    category = models.ForeignKey(Category, on_delete=models.SET_NULL, null=True, blank=True, related_name='products')
    brand = models.CharField(max_length=100, blank=True)
    tags = models.JSONField(default=list, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_DRAFT, db_index=True)
    featured = models.BooleanField(default=False, db_index=True)

    # Inventory
    track_quantity = models.BooleanField(default=True)
    quantity = models.PositiveIntegerField(default=0)
    low_stock_threshold = models.PositiveIntegerField(default=10)
    allow_backorder = models.BooleanField(default=False)

    # Delivery options offered for this product
    deliver_instant = models.BooleanField(default=False)
    deliver_next_day = models.BooleanField(default=False)
    deliver_standard = models.BooleanField(default=True)

    seller = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='products')

    rating_average = models.DecimalField(max_digits=3, decimal_places=1, default=Decimal('0'))
    rating_count = models.PositiveIntegerField(default=0)
    sales_count = models.PositiveIntegerField(default=0)
    sales_total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = unique_slug(Product, self.name, self.pk)
        if self.sku == '':
            self.sku = None
        super().save(*args, **kwargs)

    def __str__(self):
        return self.name

    @property
    def primary_image(self):
        images = list(self.images.all())
        for image in images:
            if image.is_primary:
                return image
        return images[0] if images else None

    @property
    def is_in_stock(self):
        if not self.track_quantity or self.allow_backorder:
            return True
        return self.quantity > 0

    @property
    def is_low_stock(self):
        return self.track_quantity and 0 < self.quantity <= self.low_stock_threshold

    def available_quantity(self, requested):
        """How many of `requested` units can be sold right now"""
        if not self.track_quantity or self.allow_backorder:
            return requested
        return max(0, min(requested, self.quantity))

    def normalize_primary_image(self):
        """Keep exactly one primary image: the first flagged one, or the first image"""
        images = list(self.images.order_by('position', 'id'))
        if not images:
            return
        primary = next((image for image in images if image.is_primary), images[0])
        for image in images:
            should_be_primary = image.pk == primary.pk
            if image.is_primary != should_be_primary:
                image.is_primary = should_be_primary
                image.save(update_fields=['is_primary'])

    class Meta:
        db_table = 'products'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'category'], name='products_status_cat_idx'),
            models.Index(fields=['seller', 'status'], name='products_seller_idx'),
            models.Index(fields=['-created_at'], name='products_created_idx'),
        ]


class ProductImage(models.Model):
    """Image hosted on the image host, attached to a product"""
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='images')
    public_id = models.CharField(max_length=255, blank=True)
    url = models.URLField(max_length=500)
    alt = models.CharField(max_length=200, blank=True)
    is_primary = models.BooleanField(default=False)
    position = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.product.name} image {self.position}"

    class Meta:
        db_table = 'product_images'
        ordering = ['position', 'id']
