from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Avg, Count

from storefront.catalog.models import Product


class Review(models.Model):
    """
    Product review by a customer who received the product.

    New and edited reviews wait for moderation; only approved reviews count
    towards the product rating.
    """
    STATUS_PENDING = 'pending'
    STATUS_APPROVED = 'approved'
    STATUS_REJECTED = 'rejected'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_APPROVED, 'Approved'),
        (STATUS_REJECTED, 'Rejected'),
    ]

    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='reviews')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='reviews')
    order = models.ForeignKey('orders.Order', on_delete=models.SET_NULL, null=True, blank=True, related_name='reviews')
    rating = models.PositiveSmallIntegerField(validators=[MinValueValidator(1), MaxValueValidator(5)])
    title = models.CharField(max_length=100)
    comment = models.TextField(max_length=1000)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    verified = models.BooleanField(default=False)

    helpful_users = models.ManyToManyField(settings.AUTH_USER_MODEL, blank=True, related_name='helpful_reviews')
    helpful_count = models.PositiveIntegerField(default=0)

    # Seller or admin reply
    response_text = models.TextField(max_length=500, blank=True)
    responded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='review_responses'
    )
    responded_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.rating}/5 for {self.product.name} by {self.user}"

    class Meta:
        db_table = 'reviews'
        ordering = ['-created_at', '-id']
        constraints = [
            models.UniqueConstraint(fields=['user', 'product'], name='unique_review_per_product'),
        ]
        indexes = [
            models.Index(fields=['product', 'status'], name='reviews_product_status_idx'),
        ]


def rating_summary(product_id):
    """Average (one decimal), count and 1..5 star distribution of approved reviews"""
    approved = Review.objects.filter(product_id=product_id, status=Review.STATUS_APPROVED)
    totals = approved.aggregate(average=Avg('rating'), count=Count('id'))

    distribution = {star: 0 for star in range(1, 6)}
    for row in approved.order_by().values('rating').annotate(total=Count('id')):
        distribution[row['rating']] = row['total']

    average = Decimal(str(totals['average'] or 0)).quantize(Decimal('0.1'), rounding=ROUND_HALF_UP)
    return {'average': average, 'count': totals['count'], 'distribution': distribution}


def refresh_product_rating(product_id):
    """Write the approved-review average and count onto the product"""
    product = Product.objects.filter(pk=product_id).first()
    if product is None:
        return None
    summary = rating_summary(product_id)
    product.rating_average = summary['average']
    product.rating_count = summary['count']
    product.save(update_fields=['rating_average', 'rating_count', 'updated_at'])
    return summary
