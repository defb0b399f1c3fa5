"""
Signals invalidating cached storefront payloads when merchandising data or
the products they embed change.
"""
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver

from storefront.catalog.models import Product
from storefront.core.cache_utils import bump_cache_version
from .models import Banner, HomepageSection, HomepageSectionProduct

CACHE_NAMESPACE = 'merchandising'


@receiver([post_save, post_delete], sender=Banner)
@receiver([post_save, post_delete], sender=HomepageSection)
@receiver([post_save, post_delete], sender=HomepageSectionProduct)
@receiver([post_save, post_delete], sender=Product)
def invalidate_merchandising_cache(sender, **kwargs):
    bump_cache_version(CACHE_NAMESPACE)
