from django.urls import path
from . import views

urlpatterns = [
    path('sellers/me/', views.seller_details_me, name='seller-details-me'),
    path('sellers/nearby/', views.sellers_nearby, name='sellers-nearby'),
    path('sellers/<int:user_id>/storefront/', views.seller_storefront, name='seller-storefront'),

    # Vendor panel
    path('vendor/products/', views.vendor_products, name='vendor-products'),
    path('vendor/orders/', views.vendor_orders, name='vendor-orders'),
    path('vendor/dashboard/', views.vendor_dashboard, name='vendor-dashboard'),
    path('vendor/analytics/', views.vendor_analytics, name='vendor-analytics'),

    # Admin
    path('admin/sellers/', views.admin_seller_list, name='admin-seller-list'),
    path('admin/sellers/<int:user_id>/approve/', views.admin_seller_approve, name='admin-seller-approve'),
]
