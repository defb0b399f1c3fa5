from django.contrib import admin

from .models import Banner, HomepageSection, HomepageSectionProduct


@admin.register(Banner)
class BannerAdmin(admin.ModelAdmin):
    list_display = ['title', 'category', 'target_audience', 'priority', 'order', 'is_active', 'start_date', 'end_date']
    list_filter = ['is_active', 'category', 'target_audience']
    search_fields = ['title', 'description']
    ordering = ['order']


class HomepageSectionProductInline(admin.TabularInline):
    model = HomepageSectionProduct
    extra = 0
    raw_id_fields = ['product']


@admin.register(HomepageSection)
class HomepageSectionAdmin(admin.ModelAdmin):
    list_display = ['title', 'type', 'category', 'max_products', 'order', 'is_visible', 'updated_at']
    list_filter = ['type', 'is_visible']
    search_fields = ['title', 'category']
    readonly_fields = ['created_by', 'last_modified_by', 'created_at', 'updated_at']
    inlines = [HomepageSectionProductInline]
