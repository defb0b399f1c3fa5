from django.urls import path
from . import views

urlpatterns = [
    # Public
    path('banners/active/', views.active_banners, name='banner-active'),
    path('homepage-sections/', views.homepage_sections, name='homepage-sections'),

    # Admin banners
    path('admin/banners/', views.admin_banner_list_create, name='admin-banner-list-create'),
    path('admin/banners/reorder/', views.admin_banner_reorder, name='admin-banner-reorder'),
    path('admin/banners/<int:pk>/', views.admin_banner_detail, name='admin-banner-detail'),
    path('admin/banners/<int:pk>/toggle/', views.admin_banner_toggle, name='admin-banner-toggle'),
    path('admin/banners/<int:pk>/move/', views.admin_banner_move, name='admin-banner-move'),

    # Admin homepage sections
    path('admin/homepage-sections/', views.admin_section_list_create, name='admin-section-list-create'),
    path('admin/homepage-sections/reorder/', views.admin_section_reorder, name='admin-section-reorder'),
    path('admin/homepage-sections/<int:pk>/', views.admin_section_detail, name='admin-section-detail'),
    path('admin/homepage-sections/<int:pk>/toggle/', views.admin_section_toggle, name='admin-section-toggle'),
    path('admin/homepage-sections/<int:pk>/move/', views.admin_section_move, name='admin-section-move'),
    path('admin/homepage-sections/<int:pk>/products/', views.admin_section_products, name='admin-section-products'),
    path('admin/homepage-sections/<int:pk>/products/<int:product_id>/', views.admin_section_product_remove, name='admin-section-product-remove'),
]
