from django.urls import path
from .views import (
    delivery_mode, delivery_theme_css,
    category_list_create, category_detail,
    product_list_create, product_detail, product_detail_by_slug, product_batch, product_featured,
    product_images, product_image_detail,
    admin_product_list
)

urlpatterns = [
    # Delivery mode / theme
    path('delivery-mode/', delivery_mode, name='delivery-mode'),
    path('delivery-mode/theme.css', delivery_theme_css, name='delivery-theme-css'),

    # Category endpoints
    path('categories/', category_list_create, name='category-list-create'),
    path('categories/<int:pk>/', category_detail, name='category-detail'),

    # Product endpoints
    path('products/', product_list_create, name='product-list-create'),
    path('products/batch/', product_batch, name='product-batch'),
    path('products/featured/', product_featured, name='product-featured'),
    path('products/slug/<slug:slug>/', product_detail_by_slug, name='product-detail-by-slug'),
    path('products/<int:pk>/', product_detail, name='product-detail'),
    path('products/<int:pk>/images/', product_images, name='product-images'),
    path('products/<int:pk>/images/<int:image_pk>/', product_image_detail, name='product-image-detail'),

    path('admin/products/', admin_product_list, name='admin-product-list'),
]
