import logging

from django.db import transaction
from django.db.models import Count, Q
from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, parser_classes
from rest_framework.parsers import MultiPartParser, FormParser, JSONParser
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework.response import Response

from storefront.core import image_host
from storefront.core.permissions import (
    IsAdminRole, IsSellerRole, IsAdminOrReadOnly, IsSellerOrReadOnly, is_admin
)
from storefront.core.utils import create_audit_log, paginate, parse_float, parse_int
from .delivery import (
    DELIVERY_MODES, DEFAULT_DELIVERY_MODE, InvalidDeliveryMode,
    filter_by_delivery, get_css_variables, get_session_delivery_mode, get_theme,
    has_session_delivery_mode, normalize_delivery_mode, render_theme_css,
    set_session_delivery_mode,
)
from .filters import ProductFilter
from .models import Category, Product, ProductImage
from .serializers import (
    CategorySerializer, ProductSerializer, ProductListSerializer, ProductImageSerializer
)

logger = logging.getLogger(__name__)

SORT_OPTIONS = {
    'newest': ['-created_at'],
    'oldest': ['created_at'],
    'price_low': ['price', '-created_at'],
    'price_high': ['-price', '-created_at'],
    'rating': ['-rating_average', '-rating_count', '-created_at'],
    'popular': ['-sales_count', '-created_at'],
}
SORT_DISTANCE = 'distance'


def product_queryset():
    return Product.objects.select_related(
        'category', 'seller', 'seller__seller_details'
    ).prefetch_related('images')


def can_manage_product(user, product):
    return is_admin(user) or (product.seller_id is not None and product.seller_id == user.id)


def release_hosted_images(product, public_ids):
    """
    Delete images from the host after their records are gone.
    Returns the public ids left on the host, which callers record as orphans.
    """
    public_ids = [public_id for public_id in public_ids if public_id]
    if not public_ids:
        return []
    if not image_host.is_configured():
        logger.warning(f"Image host not configured; images of product {product.pk} left behind: {public_ids}")
        return public_ids

    orphaned = []
    for public_id in public_ids:
        try:
            image_host.delete_image(public_id)
        except image_host.ImageHostError as e:
            logger.warning(f"Could not delete image {public_id} of product {product.pk}: {e}")
            orphaned.append(public_id)
    return orphaned


def resolve_delivery_mode(request):
    """
    The delivery mode a listing should be filtered by.

    An explicit ?delivery= wins and must be valid; otherwise the session mode
    applies when the client has chosen one. Returns None for "no filter".
    Raises InvalidDeliveryMode for a bad explicit value.
    """
    explicit = request.query_params.get('delivery')
    if explicit:
        return normalize_delivery_mode(explicit)
    if has_session_delivery_mode(request):
        return get_session_delivery_mode(request)
    return None


# Delivery mode
@api_view(['GET', 'PUT'])
@permission_classes([AllowAny])
def delivery_mode(request):
    """Read or switch the session's delivery mode"""
    if request.method == 'PUT':
        try:
            set_session_delivery_mode(request, request.data.get('mode'))
        except InvalidDeliveryMode as e:
            logger.warning(f"Rejected delivery mode {request.data.get('mode')!r}")
            return Response({'error': str(e), 'modes': list(DELIVERY_MODES)}, status=status.HTTP_400_BAD_REQUEST)

    mode = get_session_delivery_mode(request)
    return Response({
        'mode': mode,
        'default': DEFAULT_DELIVERY_MODE,
        'modes': list(DELIVERY_MODES),
        'theme': get_theme(mode),
        'css_variables': get_css_variables(mode),
    })


@api_view(['GET'])
@permission_classes([AllowAny])
def delivery_theme_css(request):
    """Stylesheet with one custom-property block per delivery mode"""
    return HttpResponse(render_theme_css(), content_type='text/css; charset=utf-8')


# Category views
@api_view(['GET', 'POST'])
@permission_classes([IsAdminOrReadOnly])
def category_list_create(request):
    """List categories or create a new one (admin)"""
    if request.method == 'GET':
        categories = Category.objects.annotate(
            product_count=Count('products', filter=Q(products__status=Product.STATUS_ACTIVE))
        )
        if not is_admin(request.user):
            categories = categories.filter(is_active=True)
        serializer = CategorySerializer(categories, many=True)
        return Response(serializer.data)
    else:
        serializer = CategorySerializer(data=request.data)
        if serializer.is_valid():
            category = serializer.save()
            create_audit_log(request=request, action='create', model_name='Category', object_id=category.pk, object_name=category.name)
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAdminOrReadOnly])
def category_detail(request, pk):
    """Retrieve, update or delete a category"""
    category = get_object_or_404(Category, pk=pk)

    if request.method == 'GET':
        return Response(CategorySerializer(category).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = CategorySerializer(category, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        create_audit_log(request=request, action='delete', model_name='Category', object_id=category.pk, object_name=category.name)
        category.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


# Product views
@api_view(['GET', 'POST'])
@permission_classes([IsSellerOrReadOnly])
def product_list_create(request):
    """
    List active products or create a product (seller/admin).

    Query params: search, category, min_price, max_price, min_rating, featured,
    seller, brand, pincode, in_stock, delivery, lat, lng, radius_km,
    sort_by (newest|oldest|price_low|price_high|rating|popular|distance),
    page, limit.
    """
    if request.method == 'POST':
        serializer = ProductSerializer(data=request.data)
        if serializer.is_valid():
            product = serializer.save(seller=request.user)
            create_audit_log(request=request, action='create', model_name='Product', object_id=product.pk, object_name=product.name)
            logger.info(f"Product {product.pk} created by {request.user.username}")
            return Response(ProductSerializer(product).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    queryset = product_queryset().filter(status=Product.STATUS_ACTIVE)

    filterset = ProductFilter(request.query_params, queryset=queryset)
    if not filterset.is_valid():
        return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
    queryset = filterset.qs

    try:
        mode = resolve_delivery_mode(request)
    except InvalidDeliveryMode as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    if mode:
        queryset = filter_by_delivery(queryset, mode)

    distances = None
    lat_param = request.query_params.get('lat')
    lng_param = request.query_params.get('lng')
    if lat_param is not None or lng_param is not None:
        from storefront.sellers.geo import DEFAULT_RADIUS_KM, MAX_RADIUS_KM, seller_distances

        lat = parse_float(lat_param)
        lng = parse_float(lng_param)
        radius_km = parse_float(request.query_params.get('radius_km'), default=DEFAULT_RADIUS_KM)
        if radius_km <= 0 or radius_km > MAX_RADIUS_KM:
            return Response({'error': f'radius_km must be between 0 and {MAX_RADIUS_KM}'}, status=status.HTTP_400_BAD_REQUEST)
        try:
            distances = seller_distances(lat, lng, radius_km)
        except ValueError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        queryset = queryset.filter(seller_id__in=list(distances))

    sort_by = request.query_params.get('sort_by', 'newest')
    if sort_by == SORT_DISTANCE:
        if distances is None:
            return Response({'error': 'Sorting by distance requires lat and lng'}, status=status.HTTP_400_BAD_REQUEST)
        products = sorted(queryset, key=lambda product: (distances.get(product.seller_id, float('inf')), -product.pk))
    elif sort_by in SORT_OPTIONS:
        products = queryset.order_by(*SORT_OPTIONS[sort_by])
    else:
        return Response(
            {'error': f"Invalid sort_by. Expected one of: {', '.join(list(SORT_OPTIONS) + [SORT_DISTANCE])}"},
            status=status.HTTP_400_BAD_REQUEST
        )

    page_items, pagination = paginate(products, request)
    results = ProductListSerializer(page_items, many=True).data
    if distances is not None:
        for item, product in zip(results, page_items):
            item['distance_km'] = round(distances[product.seller_id], 2)

    return Response({
        'results': results,
        'pagination': pagination,
        'delivery_mode': mode,
    })


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsSellerOrReadOnly])
def product_detail(request, pk):
    """Retrieve, update or delete a product"""
    product = get_object_or_404(product_queryset(), pk=pk)

    if request.method == 'GET':
        if product.status != Product.STATUS_ACTIVE and not (request.user.is_authenticated and can_manage_product(request.user, product)):
            return Response({'error': 'Product not found'}, status=status.HTTP_404_NOT_FOUND)
        return Response(ProductSerializer(product).data)

    if not can_manage_product(request.user, product):
        return Response({'error': 'You can only manage your own products'}, status=status.HTTP_403_FORBIDDEN)

    if request.method in ('PUT', 'PATCH'):
        serializer = ProductSerializer(product, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            old_status = product.status
            old_public_ids = [image.public_id for image in product.images.all()]
            with transaction.atomic():
                product = serializer.save()
            if 'images' in serializer.validated_data:
                kept = set(product.images.values_list('public_id', flat=True))
                orphaned = release_hosted_images(product, [pid for pid in old_public_ids if pid not in kept])
                if orphaned:
                    create_audit_log(
                        request=request, action='update', model_name='Product', object_id=product.pk,
                        object_name=product.name, changes={'orphaned_images': orphaned}
                    )
            if old_status != product.status:
                create_audit_log(
                    request=request, action='status_change', model_name='Product', object_id=product.pk,
                    object_name=product.name, changes={'status': {'from': old_status, 'to': product.status}}
                )
            return Response(ProductSerializer(product).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    # DELETE
    orphaned = release_hosted_images(product, [image.public_id for image in product.images.all()])
    create_audit_log(
        request=request, action='delete', model_name='Product', object_id=product.pk,
        object_name=product.name, changes={'orphaned_images': orphaned} if orphaned else None
    )
    product.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([AllowAny])
def product_detail_by_slug(request, slug):
    product = get_object_or_404(product_queryset(), slug=slug, status=Product.STATUS_ACTIVE)
    return Response(ProductSerializer(product).data)


@api_view(['GET'])
@permission_classes([AllowAny])
def product_batch(request):
    """Fetch several active products at once: ?ids=1,2,3 (order preserved)"""
    raw_ids = request.query_params.get('ids', '')
    try:
        ids = [int(value) for value in raw_ids.split(',') if value.strip()]
    except ValueError:
        return Response({'error': 'ids must be a comma-separated list of integers'}, status=status.HTTP_400_BAD_REQUEST)
    if not ids:
        return Response({'error': 'ids is required'}, status=status.HTTP_400_BAD_REQUEST)

    products = product_queryset().filter(pk__in=ids[:100], status=Product.STATUS_ACTIVE).in_bulk()
    ordered = [products[pk] for pk in dict.fromkeys(ids) if pk in products]
    return Response(ProductListSerializer(ordered, many=True).data)


@api_view(['GET'])
@permission_classes([AllowAny])
def product_featured(request):
    limit = parse_int(request.query_params.get('limit'), default=8, minimum=1, maximum=50)
    queryset = product_queryset().filter(status=Product.STATUS_ACTIVE, featured=True)
    try:
        mode = resolve_delivery_mode(request)
    except InvalidDeliveryMode as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    if mode:
        queryset = filter_by_delivery(queryset, mode)
    products = queryset.order_by('-sales_count', '-created_at')[:limit]
    return Response(ProductListSerializer(products, many=True).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsSellerRole])
@parser_classes([MultiPartParser, FormParser, JSONParser])
def product_images(request, pk):
    """
    Attach images to a product.

    Multipart `files` are uploaded to the image host first; a JSON body
    {"images": [{public_id, url, alt, is_primary}]} attaches already hosted images.
    """
    product = get_object_or_404(Product, pk=pk)
    if not can_manage_product(request.user, product):
        return Response({'error': 'You can only manage your own products'}, status=status.HTTP_403_FORBIDDEN)

    files = request.FILES.getlist('files')
    if files:
        try:
            uploaded = image_host.upload_multiple_images(files)
        except image_host.ImageHostError as e:
            return Response({'error': str(e)}, status=status.HTTP_502_BAD_GATEWAY)
        if product.images.exists():
            for image in uploaded:
                image['is_primary'] = False
        images = [
            {'public_id': image['public_id'], 'url': image['url'], 'alt': product.name, 'is_primary': image['is_primary']}
            for image in uploaded
        ]
    else:
        serializer = ProductImageSerializer(data=request.data.get('images', []), many=True)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        images = serializer.validated_data
        if not images:
            return Response({'error': 'No images provided'}, status=status.HTTP_400_BAD_REQUEST)

    with transaction.atomic():
        next_position = product.images.count()
        new_primary = None
        for offset, image in enumerate(images):
            created = ProductImage.objects.create(product=product, position=next_position + offset, **image)
            if created.is_primary and new_primary is None:
                new_primary = created
        if new_primary:
            product.images.exclude(pk=new_primary.pk).update(is_primary=False)
        product.normalize_primary_image()

    return Response(ProductImageSerializer(product.images.all(), many=True).data, status=status.HTTP_201_CREATED)


@api_view(['PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsSellerRole])
def product_image_detail(request, pk, image_pk):
    """PATCH makes the image primary; DELETE removes it from the host and the product"""
    product = get_object_or_404(Product, pk=pk)
    if not can_manage_product(request.user, product):
        return Response({'error': 'You can only manage your own products'}, status=status.HTTP_403_FORBIDDEN)
    image = get_object_or_404(ProductImage, pk=image_pk, product=product)

    if request.method == 'PATCH':
        with transaction.atomic():
            product.images.exclude(pk=image.pk).update(is_primary=False)
            image.is_primary = True
            image.save(update_fields=['is_primary'])
        return Response(ProductImageSerializer(product.images.all(), many=True).data)

    if image.public_id:
        try:
            image_host.delete_image(image.public_id)
        except image_host.ImageHostError as e:
            # Keep the record so it still points at the hosted file
            return Response({'error': str(e)}, status=status.HTTP_502_BAD_GATEWAY)

    with transaction.atomic():
        image.delete()
        product.normalize_primary_image()
    create_audit_log(request=request, action='image_delete', model_name='ProductImage', object_id=image_pk, object_name=product.name)
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def admin_product_list(request):
    """All products regardless of status, filterable like the public listing"""
    queryset = product_queryset().all()
    filterset = ProductFilter(request.query_params, queryset=queryset)
    if not filterset.is_valid():
        return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)

    page_items, pagination = paginate(filterset.qs.order_by('-created_at'), request)
    return Response({
        'results': ProductListSerializer(page_items, many=True).data,
        'pagination': pagination,
    })
