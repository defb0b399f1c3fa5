import logging
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.db.models import Count, DecimalField, F, Prefetch, Q, Sum
from django.db.models.functions import TruncMonth
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from storefront.catalog.models import Product
from storefront.catalog.serializers import ProductListSerializer, ProductSerializer
from storefront.core.models import User
from storefront.core.permissions import IsAdminRole, IsSellerRole
from storefront.core.utils import create_audit_log, month_window_start, paginate, parse_bool, parse_float
from storefront.orders.models import Order, OrderItem
from storefront.orders.serializers import OrderItemSerializer, OrderListSerializer
from .geo import MAX_RADIUS_KM, find_nearby_sellers, validate_coordinates
from .models import SellerDetails
from .serializers import AdminSellerSerializer, NearbySellerSerializer, SellerDetailsSerializer

logger = logging.getLogger(__name__)

ANALYTICS_PERIODS = {
    '7d': 7,
    '30d': 30,
    '90d': 90,
    '1y': 365,
}


# Seller profile
@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes([IsSellerRole])
def seller_details_me(request):
    """
    GET: my store profile (null when not created yet).
    PUT/PATCH: create or update it.
    """
    details = SellerDetails.objects.filter(user=request.user).first()

    if request.method == 'GET':
        return Response(SellerDetailsSerializer(details).data if details else None)

    partial = details is not None and request.method == 'PATCH'
    serializer = SellerDetailsSerializer(details, data=request.data, partial=partial)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    created = details is None
    details = serializer.save(user=request.user)
    create_audit_log(request=request, action='create' if created else 'update', model_name='SellerDetails',
                     object_id=details.pk, object_name=str(details))
    logger.info(f"Seller details {'created' if created else 'updated'} for {request.user.username}")
    return Response(SellerDetailsSerializer(details).data,
                    status=status.HTTP_201_CREATED if created else status.HTTP_200_OK)


@api_view(['GET'])
@permission_classes([AllowAny])
def sellers_nearby(request):
    """
    Sellers within ?radius= km (default 5) of ?lat=&lng=, nearest first.
    """
    lat_param = request.query_params.get('lat')
    lng_param = request.query_params.get('lng')
    if not lat_param or not lng_param:
        return Response({'error': 'Latitude and longitude are required'}, status=status.HTTP_400_BAD_REQUEST)

    latitude = parse_float(lat_param)
    longitude = parse_float(lng_param)
    radius = parse_float(request.query_params.get('radius'), default=getattr(settings, 'NEARBY_DEFAULT_RADIUS_KM', 5))
    if latitude is None or longitude is None or radius is None:
        return Response({'error': 'Invalid coordinates or radius values'}, status=status.HTTP_400_BAD_REQUEST)
    if radius <= 0 or radius > MAX_RADIUS_KM:
        return Response({'error': f'Radius must be greater than 0 and at most {MAX_RADIUS_KM} km'}, status=status.HTTP_400_BAD_REQUEST)
    try:
        validate_coordinates(latitude, longitude)
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    matches = find_nearby_sellers(latitude, longitude, radius)
    serializer = NearbySellerSerializer(
        [details for details, _ in matches], many=True,
        context={'distances': {details.pk: distance for details, distance in matches}},
    )
    return Response({
        'count': len(matches),
        'results': serializer.data,
        'search_params': {'latitude': latitude, 'longitude': longitude, 'radius': radius},
    })


@api_view(['GET'])
@permission_classes([AllowAny])
def seller_storefront(request, user_id):
    """Public store page: profile plus paginated active products"""
    seller = get_object_or_404(User, pk=user_id, role=User.ROLE_SELLER, is_suspended=False, is_active=True)
    details = SellerDetails.objects.filter(user=seller).first()

    products = Product.objects.filter(seller=seller, status=Product.STATUS_ACTIVE).select_related(
        'category', 'seller', 'seller__seller_details'
    ).prefetch_related('images').order_by('-featured', '-created_at')
    page_items, pagination = paginate(products, request)

    return Response({
        'seller': {
            'id': seller.pk,
            'name': seller.display_name,
            'avatar_url': seller.avatar_url,
            'joined_at': seller.date_joined,
            'details': NearbySellerSerializer(details).data if details else None,
        },
        'results': ProductListSerializer(page_items, many=True).data,
        'pagination': pagination,
    })


# Vendor panel
def seller_order_items(user):
    return OrderItem.objects.filter(seller=user)


@api_view(['GET'])
@permission_classes([IsSellerRole])
def vendor_products(request):
    """My products in every status; ?status= and ?search= narrow the list"""
    products = Product.objects.filter(seller=request.user).select_related('category').prefetch_related('images')

    product_status = request.query_params.get('status')
    if product_status:
        products = products.filter(status=product_status)
    search = request.query_params.get('search')
    if search:
        products = products.filter(Q(name__icontains=search) | Q(sku__icontains=search) | Q(brand__icontains=search))

    page_items, pagination = paginate(products.order_by('-created_at'), request)
    return Response({'results': ProductSerializer(page_items, many=True).data, 'pagination': pagination})


@api_view(['GET'])
@permission_classes([IsSellerRole])
def vendor_orders(request):
    """Orders containing at least one of my items; each order lists only my lines"""
    orders = Order.objects.filter(items__seller=request.user).distinct().select_related('user').prefetch_related(
        'items',
        Prefetch('items', queryset=seller_order_items(request.user), to_attr='seller_items'),
    ).order_by('-created_at')

    order_status = request.query_params.get('status')
    if order_status:
        orders = orders.filter(status=order_status)

    page_items, pagination = paginate(orders, request)
    results = []
    for order in page_items:
        data = OrderListSerializer(order).data
        data['seller_items'] = OrderItemSerializer(order.seller_items, many=True).data
        data['seller_total'] = sum((item.total for item in order.seller_items), Decimal('0.00'))
        results.append(data)
    return Response({'results': results, 'pagination': pagination})


@api_view(['GET'])
@permission_classes([IsSellerRole])
def vendor_dashboard(request):
    """Headline numbers, recent orders, top products and monthly revenue for my store"""
    user = request.user
    products = Product.objects.filter(seller=user)
    items = seller_order_items(user)
    delivered_items = items.filter(order__status=Order.STATUS_DELIVERED)

    total_revenue = delivered_items.aggregate(
        total=Sum('total', output_field=DecimalField())
    )['total'] or Decimal('0.00')

    recent_orders = Order.objects.filter(items__seller=user).distinct().select_related('user').prefetch_related('items').order_by('-created_at')[:10]
    top_products = products.filter(status=Product.STATUS_ACTIVE).select_related('category', 'seller').prefetch_related('images').order_by('-sales_count', '-created_at')[:5]

    monthly_revenue = delivered_items.filter(
        order__created_at__gte=month_window_start(12)
    ).annotate(
        month=TruncMonth('order__created_at')
    ).values('month').annotate(
        revenue=Sum('total', output_field=DecimalField()),
        orders=Count('order', distinct=True)
    ).order_by('month')

    return Response({
        'stats': {
            'total_products': products.count(),
            'active_products': products.filter(status=Product.STATUS_ACTIVE).count(),
            'low_stock_products': products.filter(
                track_quantity=True, quantity__lte=F('low_stock_threshold')
            ).count(),
            'total_orders': items.values('order').distinct().count(),
            'pending_orders': items.filter(
                order__status__in=[Order.STATUS_PENDING, Order.STATUS_CONFIRMED]
            ).values('order').distinct().count(),
            'total_revenue': float(total_revenue),
        },
        'recent_orders': OrderListSerializer(recent_orders, many=True).data,
        'top_products': ProductListSerializer(top_products, many=True).data,
        'monthly_revenue': [
            {'month': row['month'].strftime('%Y-%m'), 'revenue': float(row['revenue'] or 0), 'orders': row['orders']}
            for row in monthly_revenue
        ],
    })


@api_view(['GET'])
@permission_classes([IsSellerRole])
def vendor_analytics(request):
    """Revenue and status breakdowns over ?period= (7d, 30d, 90d or 1y; default 30d)"""
    period = request.query_params.get('period', '30d')
    if period not in ANALYTICS_PERIODS:
        return Response({'error': f"Invalid period. Options: {', '.join(ANALYTICS_PERIODS)}"}, status=status.HTTP_400_BAD_REQUEST)
    start_date = timezone.now() - timedelta(days=ANALYTICS_PERIODS[period])

    items = seller_order_items(request.user).filter(order__created_at__gte=start_date)
    revenue = items.filter(order__status=Order.STATUS_DELIVERED).aggregate(
        total=Sum('total', output_field=DecimalField()),
        count=Count('order', distinct=True)
    )
    orders_by_status = items.values(status=F('order__status')).annotate(
        count=Count('order', distinct=True)
    ).order_by('status')
    products_by_status = Product.objects.filter(
        seller=request.user, created_at__gte=start_date
    ).values('status').annotate(count=Count('id')).order_by('status')

    return Response({
        'period': period,
        'revenue': {'total': float(revenue['total'] or 0), 'count': revenue['count']},
        'orders_by_status': list(orders_by_status),
        'products_by_status': list(products_by_status),
    })


# Admin
@api_view(['GET'])
@permission_classes([IsAdminRole])
def admin_seller_list(request):
    """Seller accounts; filters: is_approved, is_suspended, search"""
    sellers = User.objects.filter(role=User.ROLE_SELLER).select_related('seller_details').annotate(
        product_count=Count('products')
    ).order_by('-date_joined')

    is_approved = parse_bool(request.query_params.get('is_approved'))
    if is_approved is not None:
        sellers = sellers.filter(seller_details__is_approved=is_approved)
    is_suspended = parse_bool(request.query_params.get('is_suspended'))
    if is_suspended is not None:
        sellers = sellers.filter(is_suspended=is_suspended)
    search = request.query_params.get('search')
    if search:
        sellers = sellers.filter(
            Q(username__icontains=search) | Q(email__icontains=search) |
            Q(seller_details__seller_name__icontains=search) | Q(seller_details__store_name__icontains=search)
        )

    page_items, pagination = paginate(sellers, request)
    return Response({'results': AdminSellerSerializer(page_items, many=True).data, 'pagination': pagination})


@api_view(['POST'])
@permission_classes([IsAdminRole])
def admin_seller_approve(request, user_id):
    """Approve ({"approved": true}, the default) or revoke a seller"""
    details = SellerDetails.objects.select_related('user').filter(user_id=user_id).first()
    if details is None:
        return Response({'error': 'Seller details not found'}, status=status.HTTP_404_NOT_FOUND)

    approved = parse_bool(request.data.get('approved'), default=True)
    details.is_approved = approved
    details.approved_at = timezone.now() if approved else None
    details.save(update_fields=['is_approved', 'approved_at', 'updated_at'])

    create_audit_log(request=request, action='seller_approve', model_name='SellerDetails', object_id=details.pk,
                     object_name=str(details), changes={'is_approved': approved})
    logger.info(f"Seller {details.user.username} {'approved' if approved else 'revoked'} by {request.user.username}")
    return Response(SellerDetailsSerializer(details).data)
