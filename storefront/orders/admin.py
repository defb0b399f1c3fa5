from django.contrib import admin
from .models import Order, OrderItem, OrderStatusHistory, ReturnRequest


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ['product', 'seller', 'product_name', 'quantity', 'price', 'total']


class OrderStatusHistoryInline(admin.TabularInline):
    model = OrderStatusHistory
    extra = 0
    readonly_fields = ['from_status', 'to_status', 'notes', 'changed_by', 'changed_at']


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['order_number', 'user', 'status', 'payment_status', 'delivery_mode', 'total', 'created_at']
    list_filter = ['status', 'payment_status', 'payment_method', 'delivery_mode', 'created_at']
    search_fields = ['order_number', 'user__username', 'user__email', 'tracking_number']
    readonly_fields = ['order_number', 'subtotal', 'tax', 'shipping_cost', 'total', 'created_at', 'updated_at']
    inlines = [OrderItemInline, OrderStatusHistoryInline]


@admin.register(ReturnRequest)
class ReturnRequestAdmin(admin.ModelAdmin):
    list_display = ['order', 'reason', 'status', 'created_at']
    list_filter = ['status']
    search_fields = ['order__order_number', 'reason']
