from django.apps import AppConfig


class MerchandisingConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'storefront.merchandising'
    label = 'merchandising'

    def ready(self):
        """Import signals when app is ready"""
        import storefront.merchandising.signals  # noqa: F401  # Cache invalidation signals
