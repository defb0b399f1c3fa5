from django.contrib import admin

from .models import SellerDetails


@admin.register(SellerDetails)
class SellerDetailsAdmin(admin.ModelAdmin):
    list_display = ['seller_name', 'store_name', 'user', 'city', 'pincode', 'is_approved', 'created_at']
    list_filter = ['is_approved', 'state', 'country']
    search_fields = ['seller_name', 'store_name', 'user__username', 'user__email', 'pincode', 'gst_number']
    raw_id_fields = ['user']
    readonly_fields = ['approved_at', 'created_at', 'updated_at']
