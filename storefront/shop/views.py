import logging

from django.db import IntegrityError, transaction
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from storefront.catalog.models import Product
from .models import Cart, CartItem, WishlistItem
from .serializers import (
    CartSerializer, CartLineSerializer, CartQuantitySerializer, CartReplaceSerializer,
    WishlistItemSerializer
)

logger = logging.getLogger(__name__)


def get_cart(user):
    cart, _ = Cart.objects.get_or_create(user=user)
    return cart


def serialize_cart(cart):
    cart = Cart.objects.prefetch_related(
        'items__product__images', 'items__product__category', 'items__product__seller'
    ).get(pk=cart.pk)
    return CartSerializer(cart).data


def cart_response(cart, status_code=status.HTTP_200_OK, **extra):
    data = serialize_cart(cart)
    data.update(extra)
    return Response(data, status=status_code)


# Cart
@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated])
def cart_detail(request):
    """
    GET: my cart.
    PUT: replace the cart with {"items": [{product_id, quantity}]}. Unknown,
    unavailable and out-of-stock products are skipped; quantities are clamped
    to the stock on hand.
    DELETE: empty the cart.
    """
    cart = get_cart(request.user)

    if request.method == 'GET':
        return cart_response(cart)

    if request.method == 'DELETE':
        cart.items.all().delete()
        cart.save(update_fields=['updated_at'])
        return cart_response(cart)

    serializer = CartReplaceSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    lines = {}
    for line in serializer.validated_data['items']:
        lines[line['product_id']] = line['quantity']

    products = Product.objects.in_bulk(list(lines))
    skipped = []
    with transaction.atomic():
        cart.items.all().delete()
        for product_id, quantity in lines.items():
            product = products.get(product_id)
            if product is None or product.status != Product.STATUS_ACTIVE or not product.is_in_stock:
                skipped.append(product_id)
                continue
            CartItem.objects.create(cart=cart, product=product, quantity=product.available_quantity(quantity))
        cart.save(update_fields=['updated_at'])

    if skipped:
        logger.info(f"Cart replace for {request.user.username} skipped products {skipped}")
    return cart_response(cart, skipped_product_ids=skipped)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def cart_add_item(request):
    """Add a product to the cart. A product already in the cart is not added twice (409)."""
    serializer = CartLineSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    product = get_object_or_404(Product, pk=serializer.validated_data['product_id'])
    if product.status != Product.STATUS_ACTIVE:
        return Response({'error': 'Product is not available'}, status=status.HTTP_400_BAD_REQUEST)
    if not product.is_in_stock:
        return Response({'error': 'Product is out of stock'}, status=status.HTTP_400_BAD_REQUEST)

    cart = get_cart(request.user)
    if cart.items.filter(product=product).exists():
        return cart_response(cart, status.HTTP_409_CONFLICT, error='Product is already in your cart')

    quantity = product.available_quantity(serializer.validated_data['quantity'])
    try:
        with transaction.atomic():
            CartItem.objects.create(cart=cart, product=product, quantity=quantity)
    except IntegrityError:
        # Concurrent add of the same product
        return cart_response(cart, status.HTTP_409_CONFLICT, error='Product is already in your cart')

    cart.save(update_fields=['updated_at'])
    return cart_response(cart, status.HTTP_201_CREATED)


@api_view(['PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def cart_item_detail(request, product_id):
    """Change the quantity of a cart line (<= 0 removes it) or remove it"""
    cart = get_cart(request.user)
    item = cart.items.select_related('product').filter(product_id=product_id).first()
    if item is None:
        return Response({'error': 'Item not found in cart'}, status=status.HTTP_404_NOT_FOUND)

    if request.method == 'DELETE':
        item.delete()
        cart.save(update_fields=['updated_at'])
        return cart_response(cart)

    serializer = CartQuantitySerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    quantity = serializer.validated_data['quantity']
    if quantity <= 0:
        item.delete()
    else:
        available = item.product.available_quantity(quantity)
        if available <= 0:
            return Response({'error': 'Product is out of stock'}, status=status.HTTP_400_BAD_REQUEST)
        item.quantity = available
        item.save(update_fields=['quantity', 'updated_at'])
    cart.save(update_fields=['updated_at'])
    return cart_response(cart)


# Wishlist
@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated])
def wishlist_detail(request):
    """List or clear my wishlist"""
    items = WishlistItem.objects.filter(user=request.user)
    if request.method == 'DELETE':
        items.delete()
        return Response({'items': [], 'count': 0})

    items = items.select_related('product__category', 'product__seller').prefetch_related('product__images')
    data = WishlistItemSerializer(items, many=True).data
    return Response({'items': data, 'count': len(data)})


@api_view(['POST', 'DELETE'])
@permission_classes([IsAuthenticated])
def wishlist_item(request, product_id):
    """Add (POST) or remove (DELETE) a product"""
    if request.method == 'DELETE':
        deleted, _ = WishlistItem.objects.filter(user=request.user, product_id=product_id).delete()
        if not deleted:
            return Response({'error': 'Product not in wishlist'}, status=status.HTTP_404_NOT_FOUND)
        return Response(status=status.HTTP_204_NO_CONTENT)

    product = get_object_or_404(Product, pk=product_id)
    if WishlistItem.objects.filter(user=request.user, product=product).exists():
        return Response({'error': 'Product already in wishlist'}, status=status.HTTP_400_BAD_REQUEST)
    try:
        with transaction.atomic():
            item = WishlistItem.objects.create(user=request.user, product=product)
    except IntegrityError:
        return Response({'error': 'Product already in wishlist'}, status=status.HTTP_400_BAD_REQUEST)
    return Response(WishlistItemSerializer(item).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def wishlist_check(request, product_id):
    in_wishlist = WishlistItem.objects.filter(user=request.user, product_id=product_id).exists()
    return Response({'product_id': product_id, 'in_wishlist': in_wishlist})
