from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models, transaction
from django.db.models import Q
from django.utils import timezone

from storefront.catalog.models import Product


class BannerQuerySet(models.QuerySet):
    def active(self, now=None):
        """Banners switched on and inside their display window, in display order"""
        now = now or timezone.now()
        return self.filter(
            is_active=True,
            start_date__lte=now,
        ).filter(
            Q(end_date__isnull=True) | Q(end_date__gte=now)
        ).order_by('-priority', 'order', '-created_at')


class Banner(models.Model):
    """Homepage hero banner"""
    AUDIENCE_CHOICES = [
        ('all', 'All'),
        ('new_users', 'New Users'),
        ('returning_users', 'Returning Users'),
        ('premium_users', 'Premium Users'),
    ]
    CATEGORY_CHOICES = [
        ('electronics', 'Electronics'),
        ('fashion', 'Fashion'),
        ('home', 'Home'),
        ('beauty', 'Beauty'),
        ('sports', 'Sports'),
        ('books', 'Books'),
        ('general', 'General'),
    ]

    title = models.CharField(max_length=100)
    description = models.CharField(max_length=200)
    image_url = models.URLField(max_length=500)
    image_public_id = models.CharField(max_length=255, blank=True)
    button_text = models.CharField(max_length=50, default='Shop Now')
    button_link = models.CharField(max_length=500, default='/products')
    is_active = models.BooleanField(default=True, db_index=True)
    order = models.IntegerField(default=0)
    start_date = models.DateTimeField(default=timezone.now)
    end_date = models.DateTimeField(null=True, blank=True)
    target_audience = models.CharField(max_length=20, choices=AUDIENCE_CHOICES, default='all')
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES, default='general')
    priority = models.PositiveSmallIntegerField(default=1, validators=[MinValueValidator(1), MaxValueValidator(10)])
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = BannerQuerySet.as_manager()

    def __str__(self):
        return self.title

    def clean(self):
        if self.end_date and self.start_date and self.end_date <= self.start_date:
            raise ValidationError({'end_date': 'End date must be after start date'})

    def is_currently_active(self, now=None):
        now = now or timezone.now()
        if not self.is_active or self.start_date > now:
            return False
        return self.end_date is None or self.end_date >= now

    class Meta:
        db_table = 'banners'
        ordering = ['order', 'created_at', 'id']
        indexes = [
            models.Index(fields=['is_active', 'start_date', 'end_date'], name='banners_window_idx'),
            models.Index(fields=['order'], name='banners_order_idx'),
        ]


class HomepageSection(models.Model):
    """Admin-curated block of products on the landing page"""
    TYPE_CATEGORY = 'category'
    TYPE_FEATURED = 'featured'
    TYPE_CUSTOM = 'custom'
    TYPE_BANNER = 'banner'
    TYPE_CHOICES = [
        (TYPE_CATEGORY, 'Category'),
        (TYPE_FEATURED, 'Featured'),
        (TYPE_CUSTOM, 'Custom'),
        (TYPE_BANNER, 'Banner'),
    ]

    title = models.CharField(max_length=100)
    description = models.CharField(max_length=500, blank=True)
    type = models.CharField(max_length=20, choices=TYPE_CHOICES, default=TYPE_CATEGORY)
    category = models.CharField(max_length=100, blank=True)
    products = models.ManyToManyField(Product, through='HomepageSectionProduct', related_name='homepage_sections', blank=True)
    max_products = models.PositiveSmallIntegerField(default=6, validators=[MinValueValidator(1), MaxValueValidator(20)])
    is_visible = models.BooleanField(default=True, db_index=True)
    order = models.PositiveIntegerField(default=0)
    banner_image_public_id = models.CharField(max_length=255, blank=True)
    banner_image_url = models.URLField(max_length=500, blank=True)
    banner_link = models.CharField(max_length=500, blank=True)
    banner_text = models.CharField(max_length=200, blank=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='created_sections')
    last_modified_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='modified_sections')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.title

    def save(self, *args, **kwargs):
        self.category = (self.category or '').strip().lower()
        super().save(*args, **kwargs)

    def ordered_products(self):
        return Product.objects.filter(
            section_entries__section=self
        ).order_by('section_entries__position')

    def product_ids(self):
        return list(self.entries.order_by('position').values_list('product_id', flat=True))

    def set_products(self, product_ids):
        """Replace the product list; keeps the first max_products ids, duplicates dropped"""
        ids = list(dict.fromkeys(product_ids))[:self.max_products]
        with transaction.atomic():
            self.entries.all().delete()
            HomepageSectionProduct.objects.bulk_create([
                HomepageSectionProduct(section=self, product_id=product_id, position=position)
                for position, product_id in enumerate(ids)
            ])
        return ids

    def add_product(self, product_id):
        """Append a product if absent, then keep only the newest max_products"""
        ids = self.product_ids()
        if product_id not in ids:
            ids.append(product_id)
        return self.set_products(ids[-self.max_products:])

    def remove_product(self, product_id):
        ids = [existing for existing in self.product_ids() if existing != product_id]
        return self.set_products(ids)

    class Meta:
        db_table = 'homepage_sections'
        ordering = ['order', 'created_at', 'id']
        indexes = [
            models.Index(fields=['is_visible', 'order'], name='sections_visible_order_idx'),
        ]


class HomepageSectionProduct(models.Model):
    """Position of a product inside a homepage section"""
    section = models.ForeignKey(HomepageSection, on_delete=models.CASCADE, related_name='entries')
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='section_entries')
    position = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = 'homepage_section_products'
        ordering = ['position', 'id']
        constraints = [
            models.UniqueConstraint(fields=['section', 'product'], name='unique_section_product'),
        ]
