from django.urls import path
from .views import (
    order_list_create, order_detail, order_cancel, order_track, order_return,
    admin_order_list, admin_order_status, admin_order_tracking
)

urlpatterns = [
    path('orders/', order_list_create, name='order-list-create'),
    path('orders/<int:pk>/', order_detail, name='order-detail'),
    path('orders/<int:pk>/cancel/', order_cancel, name='order-cancel'),
    path('orders/<int:pk>/track/', order_track, name='order-track'),
    path('orders/<int:pk>/return/', order_return, name='order-return'),

    path('admin/orders/', admin_order_list, name='admin-order-list'),
    path('admin/orders/<int:pk>/status/', admin_order_status, name='admin-order-status'),
    path('admin/orders/<int:pk>/tracking/', admin_order_tracking, name='admin-order-tracking'),
]
