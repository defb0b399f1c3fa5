from django.contrib import admin
from .models import Review


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    list_display = ['product', 'user', 'rating', 'status', 'verified', 'helpful_count', 'created_at']
    list_filter = ['status', 'rating', 'verified']
    search_fields = ['title', 'comment', 'product__name', 'user__username']
    readonly_fields = ['helpful_count', 'created_at', 'updated_at']
