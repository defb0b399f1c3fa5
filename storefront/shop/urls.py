from django.urls import path
from .views import (
    cart_detail, cart_add_item, cart_item_detail,
    wishlist_detail, wishlist_item, wishlist_check
)

urlpatterns = [
    path('cart/', cart_detail, name='cart-detail'),
    path('cart/items/', cart_add_item, name='cart-add-item'),
    path('cart/items/<int:product_id>/', cart_item_detail, name='cart-item-detail'),

    path('wishlist/', wishlist_detail, name='wishlist-detail'),
    path('wishlist/<int:product_id>/', wishlist_item, name='wishlist-item'),
    path('wishlist/<int:product_id>/check/', wishlist_check, name='wishlist-check'),
]
