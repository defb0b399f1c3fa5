"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from storefront.catalog.models import Category, Product, ProductImage
from storefront.sellers.models import SellerDetails
from storefront.merchandising.models import Banner, HomepageSection
from storefront.orders import services as order_services
from storefront.reviews.models import Review
from decimal import Decimal
import random
import string

User = get_user_model()

DEFAULT_ADDRESS = {
    'full_name': 'Test Customer',
    'street': '12 MG Road',
    'city': 'Bengaluru',
    'state': 'Karnataka',
    'zip_code': '560001',
    'country': 'India',
    'phone': '9876543210',
}


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', role=User.ROLE_CUSTOMER, **extra):
        """Create a test user"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username.lower()}@test.com'
        return User.objects.create_user(
            username=username,
            email=email,
            password=password,
            role=role,
            **extra
        )

    @staticmethod
    def create_admin(username=None, **extra):
        """Create an admin-role user"""
        return TestDataFactory.create_user(username=username or f'admin_{TestDataFactory.random_string(6)}',
                                           role=User.ROLE_ADMIN, is_staff=True, **extra)

    @staticmethod
    def create_seller(username=None, latitude=None, longitude=None, with_details=True, **details):
        """Create a seller account, with store details unless with_details is False"""
        user = TestDataFactory.create_user(username=username or f'seller_{TestDataFactory.random_string(6)}',
                                           role=User.ROLE_SELLER)
        if with_details:
            SellerDetails.objects.create(
                user=user,
                seller_name=details.pop('seller_name', f'Seller {user.username}'),
                store_name=details.pop('store_name', f'Store {user.username}'),
                phone=details.pop('phone', '9876543210'),
                pincode=details.pop('pincode', '560001'),
                latitude=latitude,
                longitude=longitude,
                **details
            )
        return user

    @staticmethod
    def create_category(name=None, description=None):
        """Create a test category"""
        if not name:
            name = f'Category_{TestDataFactory.random_string(6)}'
        return Category.objects.create(
            name=name,
            description=description or f'Test category {name}'
        )

    @staticmethod
    def create_product(name=None, seller=None, category=None, price=Decimal('100.00'), quantity=10,
                       status=Product.STATUS_ACTIVE, **extra):
        """Create a test product (active, stock-tracked, standard delivery)"""
        if not name:
            name = f'Product_{TestDataFactory.random_string(6)}'
        if category is None:
            category = TestDataFactory.create_category()
        return Product.objects.create(
            name=name,
            description=f'Description of {name}',
            price=price,
            category=category,
            seller=seller,
            quantity=quantity,
            status=status,
            **extra
        )

    @staticmethod
    def create_product_image(product, public_id=None, is_primary=False, position=0):
        """Create an image record for a product"""
        public_id = public_id or f'ecommerce-products/{TestDataFactory.random_string(12)}'
        return ProductImage.objects.create(
            product=product,
            public_id=public_id,
            url=f'https://res.cloudinary.com/demo/image/upload/{public_id}',
            is_primary=is_primary,
            position=position
        )

    @staticmethod
    def create_banner(title=None, order=0, **extra):
        """Create a test banner"""
        if not title:
            title = f'Banner_{TestDataFactory.random_string(6)}'
        return Banner.objects.create(
            title=title,
            description=extra.pop('description', f'Description of {title}'),
            image_url=extra.pop('image_url', 'https://images.example.com/banner.jpg'),
            order=order,
            **extra
        )

    @staticmethod
    def create_section(title=None, order=0, products=None, created_by=None, **extra):
        """Create a homepage section, optionally holding products"""
        if not title:
            title = f'Section_{TestDataFactory.random_string(6)}'
        section = HomepageSection.objects.create(
            title=title,
            order=order,
            created_by=created_by,
            **extra
        )
        if products:
            section.set_products([product.pk for product in products])
        return section

    @staticmethod
    def create_order(user, products=None, quantity=1, payment_method='cash_on_delivery', **kwargs):
        """Place an order through the order service (stock is decremented)"""
        if products is None:
            products = [TestDataFactory.create_product()]
        items = [{'product_id': product.pk, 'quantity': quantity} for product in products]
        return order_services.create_order(user, items, dict(DEFAULT_ADDRESS), payment_method, **kwargs)

    @staticmethod
    def deliver_order(order):
        """Walk an order through to delivered"""
        for next_status in ('confirmed', 'processing', 'shipped', 'delivered'):
            order = order_services.update_status(order, next_status)
        return order

    @staticmethod
    def create_review(product, user=None, rating=5, status=Review.STATUS_APPROVED, **extra):
        """Create a review directly, skipping the delivered-order check"""
        if user is None:
            user = TestDataFactory.create_user()
        return Review.objects.create(
            product=product,
            user=user,
            rating=rating,
            title=extra.pop('title', f'{rating} stars'),
            comment=extra.pop('comment', 'Works as described'),
            status=status,
            **extra
        )


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
