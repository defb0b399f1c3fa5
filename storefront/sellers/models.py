from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models


class SellerDetails(models.Model):
    """Store profile and pickup location of a seller account"""
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='seller_details')
    seller_name = models.CharField(max_length=100)
    store_name = models.CharField(max_length=150, blank=True)
    phone = models.CharField(max_length=20)

    # Address
    street = models.CharField(max_length=255, blank=True)
    city = models.CharField(max_length=100, blank=True)
    state = models.CharField(max_length=100, blank=True)
    pincode = models.CharField(max_length=6, blank=True, db_index=True)
    country = models.CharField(max_length=100, default='India')

    # Location (WGS84 degrees)
    latitude = models.FloatField(null=True, blank=True, validators=[MinValueValidator(-90), MaxValueValidator(90)])
    longitude = models.FloatField(null=True, blank=True, validators=[MinValueValidator(-180), MaxValueValidator(180)])
    service_radius_km = models.PositiveSmallIntegerField(default=5, validators=[MinValueValidator(1), MaxValueValidator(100)])

    gst_number = models.CharField(max_length=15, blank=True)
    is_approved = models.BooleanField(default=False, db_index=True)
    approved_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def has_location(self):
        return self.latitude is not None and self.longitude is not None

    @property
    def address(self):
        return {
            'street': self.street,
            'city': self.city,
            'state': self.state,
            'pincode': self.pincode,
            'country': self.country,
        }

    def __str__(self):
        return self.store_name or self.seller_name

    class Meta:
        db_table = 'seller_details'
        verbose_name_plural = 'seller details'
        indexes = [
            models.Index(fields=['latitude', 'longitude'], name='seller_details_geo_idx'),
        ]
