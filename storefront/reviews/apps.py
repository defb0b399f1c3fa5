from django.apps import AppConfig


class ReviewsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'storefront.reviews'
    label = 'reviews'

    def ready(self):
        """Import signals when app is ready"""
        import storefront.reviews.signals  # noqa: F401  # Product rating refresh
