"""
Signals keeping Product.rating_average and rating_count in step with
approved reviews.
"""
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver

from .models import Review, refresh_product_rating

# Saves limited to these fields cannot change the rating
RATING_NEUTRAL_FIELDS = {'helpful_count', 'response_text', 'responded_by', 'responded_at', 'updated_at'}


@receiver(post_save, sender=Review)
def refresh_rating_on_save(sender, instance, update_fields=None, **kwargs):
    if update_fields and set(update_fields) <= RATING_NEUTRAL_FIELDS:
        return
    refresh_product_rating(instance.product_id)


@receiver(post_delete, sender=Review)
def refresh_rating_on_delete(sender, instance, **kwargs):
    refresh_product_rating(instance.product_id)
