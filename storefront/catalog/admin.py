from django.contrib import admin
from .models import Category, Product, ProductImage


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'slug', 'is_active', 'created_at']
    list_filter = ['is_active']
    search_fields = ['name', 'slug']
    prepopulated_fields = {'slug': ('name',)}


class ProductImageInline(admin.TabularInline):
    model = ProductImage
    extra = 0
    fields = ['url', 'public_id', 'alt', 'is_primary', 'position']


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'seller', 'category', 'price', 'quantity', 'status', 'featured',
                    'deliver_instant', 'deliver_next_day', 'deliver_standard', 'created_at']
    list_filter = ['status', 'featured', 'category', 'deliver_instant', 'deliver_next_day', 'deliver_standard']
    search_fields = ['name', 'sku', 'brand', 'seller__username']
    readonly_fields = ['slug', 'rating_average', 'rating_count', 'sales_count', 'sales_total', 'created_at', 'updated_at']
    inlines = [ProductImageInline]
