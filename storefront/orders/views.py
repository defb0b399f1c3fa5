import logging

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from storefront.catalog.delivery import get_session_delivery_mode
from storefront.core.permissions import IsAdminRole, is_admin
from storefront.core.utils import create_audit_log, paginate
from .models import Order
from .serializers import (
    OrderSerializer, OrderListSerializer, OrderCreateSerializer,
    OrderStatusUpdateSerializer, ReturnRequestSerializer, TrackingSerializer
)
from . import services

logger = logging.getLogger(__name__)


def order_queryset():
    return Order.objects.select_related('user').prefetch_related('items', 'status_history__changed_by')


def get_visible_order(request, pk):
    """Order by pk if the caller owns it or is an admin, else None"""
    order = get_object_or_404(order_queryset(), pk=pk)
    if order.user_id != request.user.id and not is_admin(request.user):
        return None
    return order


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def order_list_create(request):
    """List my orders or place a new one"""
    if request.method == 'GET':
        orders = order_queryset().filter(user=request.user)
        status_filter = request.query_params.get('status')
        if status_filter:
            orders = orders.filter(status=status_filter)
        page_items, pagination = paginate(orders, request, default_limit=10)
        return Response({
            'results': OrderListSerializer(page_items, many=True).data,
            'pagination': pagination,
        })

    serializer = OrderCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    options = {
        'billing_address': data.get('billing_address'),
        'customer_notes': data.get('customer_notes', ''),
        'delivery_mode': data.get('delivery_mode') or get_session_delivery_mode(request),
    }
    try:
        if data['from_cart']:
            order = services.create_order_from_cart(
                request.user, data['shipping_address'], data['payment_method'], **options
            )
        else:
            order = services.create_order(
                request.user, data['items'], data['shipping_address'], data['payment_method'], **options
            )
    except services.OrderError as e:
        logger.warning(f"Checkout rejected for {request.user.username}: {e}")
        return Response({'error': str(e)}, status=e.status_code)

    create_audit_log(
        request=request, action='order_create', model_name='Order', object_id=order.pk,
        object_name=order.order_number, changes={'total': str(order.total)}
    )
    return Response(OrderSerializer(order_queryset().get(pk=order.pk)).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def order_detail(request, pk):
    order = get_visible_order(request, pk)
    if order is None:
        return Response({'error': 'Not authorized to access this order'}, status=status.HTTP_403_FORBIDDEN)
    return Response(OrderSerializer(order).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def order_cancel(request, pk):
    """Cancel a pending or confirmed order and put its stock back"""
    order = get_visible_order(request, pk)
    if order is None:
        return Response({'error': 'Not authorized to cancel this order'}, status=status.HTTP_403_FORBIDDEN)

    try:
        order = services.cancel_order(order, request.user, request.data.get('reason', ''))
    except services.OrderError as e:
        return Response({'error': str(e)}, status=e.status_code)

    create_audit_log(request=request, action='order_cancel', model_name='Order', object_id=order.pk, object_name=order.order_number)
    return Response(OrderSerializer(order_queryset().get(pk=order.pk)).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def order_track(request, pk):
    order = get_visible_order(request, pk)
    if order is None:
        return Response({'error': 'Not authorized to access this order'}, status=status.HTTP_403_FORBIDDEN)

    return Response({
        'order_number': order.order_number,
        'status': order.status,
        'carrier': order.carrier,
        'tracking_number': order.tracking_number,
        'tracking_url': order.tracking_url,
        'shipped_at': order.shipped_at,
        'delivered_at': order.delivered_at,
        'history': [
            {'status': entry.to_status, 'notes': entry.notes, 'changed_at': entry.changed_at}
            for entry in order.status_history.all()
        ],
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def order_return(request, pk):
    """Request a return for a delivered order"""
    order = get_object_or_404(Order, pk=pk)
    if order.user_id != request.user.id:
        return Response({'error': 'Not authorized to return this order'}, status=status.HTTP_403_FORBIDDEN)

    serializer = ReturnRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        return_request = services.request_return(
            order, request.user, serializer.validated_data['reason'],
            serializer.validated_data.get('description', '')
        )
    except services.OrderError as e:
        return Response({'error': str(e)}, status=e.status_code)

    create_audit_log(request=request, action='return_request', model_name='Order', object_id=order.pk, object_name=order.order_number)
    return Response(ReturnRequestSerializer(return_request).data, status=status.HTTP_201_CREATED)


# Admin
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def admin_order_list(request):
    orders = order_queryset().all()
    status_filter = request.query_params.get('status')
    if status_filter:
        orders = orders.filter(status=status_filter)
    payment_status = request.query_params.get('payment_status')
    if payment_status:
        orders = orders.filter(payment_status=payment_status)
    search = request.query_params.get('search', '').strip()
    if search:
        orders = orders.filter(order_number__icontains=search)

    page_items, pagination = paginate(orders, request)
    return Response({
        'results': OrderListSerializer(page_items, many=True).data,
        'pagination': pagination,
    })


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsAdminRole])
def admin_order_status(request, pk):
    """Move an order to the next status"""
    order = get_object_or_404(Order, pk=pk)
    serializer = OrderStatusUpdateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    previous = order.status
    try:
        order = services.update_status(
            order, serializer.validated_data['status'], request.user, serializer.validated_data.get('notes', '')
        )
    except services.OrderError as e:
        return Response({'error': str(e)}, status=e.status_code)

    create_audit_log(
        request=request, action='status_change', model_name='Order', object_id=order.pk,
        object_name=order.order_number, changes={'status': {'from': previous, 'to': order.status}}
    )
    return Response(OrderSerializer(order_queryset().get(pk=order.pk)).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def admin_order_tracking(request, pk):
    order = get_object_or_404(Order, pk=pk)
    serializer = TrackingSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        order = services.add_tracking(order, user=request.user, **serializer.validated_data)
    except services.OrderError as e:
        return Response({'error': str(e)}, status=e.status_code)

    return Response(OrderSerializer(order_queryset().get(pk=order.pk)).data)
