"""
URL configuration for the storefront project.

Every app mounts its JSON endpoints under /api/v1/.
"""
from django.contrib import admin
from django.urls import path, include

admin.site.site_header = "Storefront Admin Panel"
admin.site.site_title = "Storefront Admin Portal"
admin.site.index_title = "Storefront back-office"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('storefront.core.urls')),
    path('api/v1/', include('storefront.catalog.urls')),
    path('api/v1/', include('storefront.sellers.urls')),
    path('api/v1/', include('storefront.merchandising.urls')),
    path('api/v1/', include('storefront.shop.urls')),
    path('api/v1/', include('storefront.orders.urls')),
    path('api/v1/', include('storefront.reviews.urls')),
    path('api/v1/', include('storefront.reports.urls')),
]
