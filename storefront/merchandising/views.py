import logging

from django.db.models import Max
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from storefront.catalog.delivery import InvalidDeliveryMode, filter_by_delivery
from storefront.catalog.models import Product
from storefront.catalog.views import resolve_delivery_mode
from storefront.core import image_host
from storefront.core.cache_utils import (
    BANNERS_CACHE_TTL, HOMEPAGE_SECTIONS_CACHE_TTL, bump_cache_version, cached_payload
)
from storefront.core.permissions import IsAdminRole
from storefront.core.utils import create_audit_log, paginate, parse_bool
from .models import Banner, HomepageSection
from .ordering import ReorderError, apply_orders, move_and_persist, parse_order_payload
from .serializers import (
    BannerSerializer, HomepageSectionSerializer, MoveSerializer,
    SectionProductOrderSerializer, SectionProductSerializer
)
from .signals import CACHE_NAMESPACE

logger = logging.getLogger(__name__)


def invalidate_cache():
    # bulk_create/bulk_update skip model signals
    bump_cache_version(CACHE_NAMESPACE)


def next_order(model):
    current = model.objects.aggregate(highest=Max('order'))['highest']
    return 0 if current is None else current + 1


@cached_payload(CACHE_NAMESPACE, cache_ttl=BANNERS_CACHE_TTL)
def build_active_banners():
    return BannerSerializer(Banner.objects.active(), many=True).data


@cached_payload(CACHE_NAMESPACE, cache_ttl=HOMEPAGE_SECTIONS_CACHE_TTL)
def build_visible_sections(mode):
    sections = list(HomepageSection.objects.filter(is_visible=True).order_by('order', 'created_at', 'id'))
    products_by_section = {}
    for section in sections:
        products = section.ordered_products().filter(status=Product.STATUS_ACTIVE)
        if mode:
            products = filter_by_delivery(products, mode)
        products_by_section[section.pk] = products.select_related('category', 'seller').prefetch_related('images')
    serializer = HomepageSectionSerializer(sections, many=True, context={'products_by_section': products_by_section})
    return serializer.data


# Public
@api_view(['GET'])
@permission_classes([AllowAny])
def active_banners(request):
    """Banners currently inside their display window"""
    return Response(build_active_banners())


@api_view(['GET'])
@permission_classes([AllowAny])
def homepage_sections(request):
    """Visible homepage sections; ?delivery= (or the session mode) filters their products"""
    try:
        mode = resolve_delivery_mode(request)
    except InvalidDeliveryMode as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    return Response({'results': build_visible_sections(mode), 'delivery_mode': mode})


# Admin banners
@api_view(['GET', 'POST'])
@permission_classes([IsAdminRole])
def admin_banner_list_create(request):
    """
    GET: paginated banners, filterable by category and is_active.
    POST: create a banner; it is appended after the last one unless order is given.
    """
    if request.method == 'POST':
        serializer = BannerSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        extra = {} if 'order' in request.data else {'order': next_order(Banner)}
        banner = serializer.save(**extra)
        create_audit_log(request=request, action='create', model_name='Banner', object_id=banner.pk, object_name=banner.title)
        logger.info(f"Banner {banner.pk} created by {request.user.username}")
        return Response(BannerSerializer(banner).data, status=status.HTTP_201_CREATED)

    banners = Banner.objects.all()
    category = request.query_params.get('category')
    if category:
        banners = banners.filter(category=category)
    is_active = parse_bool(request.query_params.get('is_active'))
    if is_active is not None:
        banners = banners.filter(is_active=is_active)

    page_items, pagination = paginate(banners, request)
    return Response({'results': BannerSerializer(page_items, many=True).data, 'pagination': pagination})


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAdminRole])
def admin_banner_detail(request, pk):
    banner = get_object_or_404(Banner, pk=pk)

    if request.method == 'GET':
        return Response(BannerSerializer(banner).data)

    if request.method == 'DELETE':
        if banner.image_public_id and image_host.is_configured():
            try:
                image_host.delete_image(banner.image_public_id)
            except image_host.ImageHostError as e:
                logger.error(f"Banner {banner.pk} image {banner.image_public_id} left on image host: {e}")
        create_audit_log(request=request, action='delete', model_name='Banner', object_id=banner.pk, object_name=banner.title)
        banner.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    serializer = BannerSerializer(banner, data=request.data, partial=request.method == 'PATCH')
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    serializer.save()
    create_audit_log(request=request, action='update', model_name='Banner', object_id=banner.pk,
                     object_name=banner.title, changes={'fields': sorted(serializer.validated_data)})
    return Response(serializer.data)


@api_view(['POST'])
@permission_classes([IsAdminRole])
def admin_banner_toggle(request, pk):
    """Flip is_active on one banner"""
    banner = get_object_or_404(Banner, pk=pk)
    banner.is_active = not banner.is_active
    banner.save(update_fields=['is_active', 'updated_at'])
    create_audit_log(request=request, action='toggle', model_name='Banner', object_id=banner.pk,
                     object_name=banner.title, changes={'is_active': banner.is_active})
    return Response(BannerSerializer(banner).data)


@api_view(['POST'])
@permission_classes([IsAdminRole])
def admin_banner_move(request, pk):
    """Swap a banner with its neighbour ({"direction": "up"|"down"}) and renumber all banners"""
    serializer = MoveSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    get_object_or_404(Banner, pk=pk)
    direction = serializer.validated_data['direction']
    banners, moved = move_and_persist(Banner, int(pk), direction)
    if moved:
        invalidate_cache()
        create_audit_log(request=request, action='reorder', model_name='Banner', object_id=pk,
                         changes={'direction': direction})
        logger.info(f"Banner {pk} moved {direction}")
    return Response({'moved': moved, 'results': BannerSerializer(banners, many=True).data})


@api_view(['PUT'])
@permission_classes([IsAdminRole])
def admin_banner_reorder(request):
    """Persist a client-computed [{id, order}] array"""
    try:
        orders = parse_order_payload(request.data)
        apply_orders(Banner, orders)
    except ReorderError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    invalidate_cache()
    create_audit_log(request=request, action='reorder', model_name='Banner', object_id='bulk',
                     changes={'orders': [{'id': item_id, 'order': order} for item_id, order in orders]})
    return Response({'results': BannerSerializer(Banner.objects.all(), many=True).data})


# Admin homepage sections
def section_response(section, status_code=status.HTTP_200_OK):
    section = HomepageSection.objects.select_related('created_by', 'last_modified_by').get(pk=section.pk)
    return Response(HomepageSectionSerializer(section).data, status=status_code)


@api_view(['GET', 'POST'])
@permission_classes([IsAdminRole])
def admin_section_list_create(request):
    """All sections, hidden ones included, or create one"""
    if request.method == 'GET':
        sections = HomepageSection.objects.select_related('created_by', 'last_modified_by')
        return Response(HomepageSectionSerializer(sections, many=True).data)

    serializer = HomepageSectionSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    extra = {} if 'order' in request.data else {'order': next_order(HomepageSection)}
    section = serializer.save(created_by=request.user, last_modified_by=request.user, **extra)
    invalidate_cache()
    create_audit_log(request=request, action='create', model_name='HomepageSection', object_id=section.pk, object_name=section.title)
    return section_response(section, status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAdminRole])
def admin_section_detail(request, pk):
    section = get_object_or_404(HomepageSection, pk=pk)

    if request.method == 'GET':
        return section_response(section)

    if request.method == 'DELETE':
        create_audit_log(request=request, action='delete', model_name='HomepageSection', object_id=section.pk, object_name=section.title)
        section.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    serializer = HomepageSectionSerializer(section, data=request.data, partial=request.method == 'PATCH')
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    section = serializer.save(last_modified_by=request.user)
    invalidate_cache()
    create_audit_log(request=request, action='update', model_name='HomepageSection', object_id=section.pk,
                     object_name=section.title, changes={'fields': sorted(serializer.validated_data)})
    return section_response(section)


@api_view(['POST'])
@permission_classes([IsAdminRole])
def admin_section_toggle(request, pk):
    """Flip is_visible on one section"""
    section = get_object_or_404(HomepageSection, pk=pk)
    section.is_visible = not section.is_visible
    section.last_modified_by = request.user
    section.save(update_fields=['is_visible', 'last_modified_by', 'updated_at'])
    create_audit_log(request=request, action='toggle', model_name='HomepageSection', object_id=section.pk,
                     object_name=section.title, changes={'is_visible': section.is_visible})
    return section_response(section)


@api_view(['POST', 'PUT'])
@permission_classes([IsAdminRole])
def admin_section_products(request, pk):
    """
    POST {"product_id"}: append a product (kept to the newest max_products).
    PUT {"product_ids": [...]}: set the product order, truncated to max_products.
    """
    section = get_object_or_404(HomepageSection, pk=pk)

    if request.method == 'POST':
        serializer = SectionProductSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        product_id = serializer.validated_data['product_id']
        if not Product.objects.filter(pk=product_id).exists():
            return Response({'error': f'Product not found: {product_id}'}, status=status.HTTP_400_BAD_REQUEST)
        section.add_product(product_id)
        changes = {'added': product_id}
    else:
        serializer = SectionProductOrderSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        section.set_products(serializer.validated_data['product_ids'])
        changes = {'product_ids': section.product_ids()}

    section.last_modified_by = request.user
    section.save(update_fields=['last_modified_by', 'updated_at'])
    invalidate_cache()
    create_audit_log(request=request, action='update', model_name='HomepageSection', object_id=section.pk,
                     object_name=section.title, changes=changes)
    return section_response(section)


@api_view(['DELETE'])
@permission_classes([IsAdminRole])
def admin_section_product_remove(request, pk, product_id):
    section = get_object_or_404(HomepageSection, pk=pk)
    if product_id not in section.product_ids():
        return Response({'error': 'Product not in section'}, status=status.HTTP_404_NOT_FOUND)

    section.remove_product(product_id)
    section.last_modified_by = request.user
    section.save(update_fields=['last_modified_by', 'updated_at'])
    invalidate_cache()
    create_audit_log(request=request, action='update', model_name='HomepageSection', object_id=section.pk,
                     object_name=section.title, changes={'removed': product_id})
    return section_response(section)


@api_view(['POST'])
@permission_classes([IsAdminRole])
def admin_section_move(request, pk):
    """Swap a section with its neighbour and renumber all sections"""
    serializer = MoveSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    get_object_or_404(HomepageSection, pk=pk)
    direction = serializer.validated_data['direction']
    sections, moved = move_and_persist(HomepageSection, int(pk), direction)
    if moved:
        invalidate_cache()
        create_audit_log(request=request, action='reorder', model_name='HomepageSection', object_id=pk,
                         changes={'direction': direction})
        logger.info(f"Homepage section {pk} moved {direction}")
    return Response({'moved': moved, 'results': HomepageSectionSerializer(sections, many=True).data})


@api_view(['PUT'])
@permission_classes([IsAdminRole])
def admin_section_reorder(request):
    """Persist a client-computed [{id, order}] array"""
    try:
        orders = parse_order_payload(request.data)
        apply_orders(HomepageSection, orders)
    except ReorderError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    invalidate_cache()
    create_audit_log(request=request, action='reorder', model_name='HomepageSection', object_id='bulk',
                     changes={'orders': [{'id': item_id, 'order': order} for item_id, order in orders]})
    sections = HomepageSection.objects.select_related('created_by', 'last_modified_by')
    return Response({'results': HomepageSectionSerializer(sections, many=True).data})
