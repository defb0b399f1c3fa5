from datetime import timedelta

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from storefront.catalog.models import Product
from storefront.merchandising.models import Banner, HomepageSection

User = get_user_model()

SAMPLE_BANNERS = [
    {
        'title': 'Summer Sale - Up to 70% Off',
        'description': 'Discover amazing deals on electronics, fashion, and more. Limited time offer!',
        'image_url': 'https://images.unsplash.com/photo-1607082349566-187342175e2f?w=1200&h=600&fit=crop&q=80',
        'button_text': 'Shop Now',
        'button_link': '/products?category=electronics',
        'priority': 10,
        'category': 'electronics',
        'days': 30,
    },
    {
        'title': 'New Arrivals - Fashion Collection',
        'description': 'Explore the latest trends in fashion. Fresh styles for every occasion.',
        'image_url': 'https://images.unsplash.com/photo-1441986300917-64674bd600d8?w=1200&h=600&fit=crop&q=80',
        'button_text': 'Explore Fashion',
        'button_link': '/products?category=fashion',
        'priority': 9,
        'category': 'fashion',
        'days': 45,
    },
    {
        'title': 'Beauty & Personal Care',
        'description': 'Pamper yourself with our premium beauty and personal care products.',
        'image_url': 'https://images.unsplash.com/photo-1596462502278-27bfdc403348?w=1200&h=600&fit=crop&q=80',
        'button_text': 'Shop Beauty',
        'button_link': '/products?category=beauty',
        'priority': 7,
        'category': 'beauty',
        'days': 90,
    },
    {
        'title': 'Home & Living Essentials',
        'description': 'Transform your home with our curated collection of home essentials.',
        'image_url': 'https://images.unsplash.com/photo-1586023492125-27b2c045efd7?w=1200&h=600&fit=crop&q=80',
        'button_text': 'Shop Home',
        'button_link': '/products?category=home',
        'priority': 6,
        'category': 'home',
        'days': 120,
    },
    {
        'title': 'Sports & Fitness Gear',
        'description': 'Stay active and healthy with our premium sports and fitness equipment.',
        'image_url': 'https://images.unsplash.com/photo-1571019613454-1cb2f99b2d8b?w=1200&h=600&fit=crop&q=80',
        'button_text': 'Shop Sports',
        'button_link': '/products?category=sports',
        'priority': 5,
        'category': 'sports',
        'days': 150,
    },
]

SAMPLE_SECTIONS = [
    ('Electronics', 'Latest electronic gadgets and devices', 'electronics'),
    ('Fashion', 'Trending styles for every occasion', 'fashion'),
    ('Beauty & Personal Care', 'Premium beauty and personal care products', 'beauty'),
    ('Home & Living', 'Everything for a comfortable home', 'home'),
]


class Command(BaseCommand):
    help = 'Seed sample banners and homepage sections'

    def add_arguments(self, parser):
        parser.add_argument('--clear', action='store_true', help='Delete existing banners and sections first')

    @transaction.atomic
    def handle(self, *args, **options):
        if options['clear']:
            Banner.objects.all().delete()
            HomepageSection.objects.all().delete()
            self.stdout.write('  Cleared existing banners and homepage sections')

        now = timezone.now()
        offset = Banner.objects.count()
        created = 0
        for index, data in enumerate(SAMPLE_BANNERS):
            data = dict(data)
            days = data.pop('days')
            _, was_created = Banner.objects.get_or_create(
                title=data['title'],
                defaults={**data, 'order': offset + index, 'start_date': now, 'end_date': now + timedelta(days=days)},
            )
            created += was_created
        self.stdout.write(self.style.SUCCESS(f'✓ Banners: {created} created'))

        admin = User.objects.filter(role=User.ROLE_ADMIN).first()
        offset = HomepageSection.objects.count()
        created = 0
        for index, (title, description, category) in enumerate(SAMPLE_SECTIONS):
            if HomepageSection.objects.filter(title=title).exists():
                continue
            section = HomepageSection.objects.create(
                title=title, description=description, type=HomepageSection.TYPE_CATEGORY,
                category=category, order=offset + index, created_by=admin, last_modified_by=admin,
            )
            product_ids = Product.objects.filter(
                Q(category__slug__iexact=category) | Q(category__name__iexact=category),
                status=Product.STATUS_ACTIVE,
            ).order_by('-featured', '-created_at').values_list('pk', flat=True)[:section.max_products]
            section.set_products(list(product_ids))
            created += 1
        self.stdout.write(self.style.SUCCESS(f'✓ Homepage sections: {created} created'))
