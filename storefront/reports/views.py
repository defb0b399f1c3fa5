import logging
from decimal import Decimal

from django.db.models import Count, DecimalField, Sum
from django.db.models.functions import TruncMonth
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from storefront.catalog.models import Product
from storefront.catalog.serializers import ProductListSerializer
from storefront.core.models import User
from storefront.core.permissions import IsAdminRole
from storefront.core.utils import month_window_start
from storefront.orders.models import Order
from storefront.orders.serializers import OrderListSerializer

logger = logging.getLogger(__name__)


@api_view(['GET'])
@permission_classes([IsAdminRole])
def admin_dashboard(request):
    """Platform totals, delivered revenue, recent orders, top products and the last 12 months of revenue"""
    delivered = Order.objects.filter(status=Order.STATUS_DELIVERED)

    total_revenue = delivered.aggregate(
        total=Sum('total', output_field=DecimalField())
    )['total'] or Decimal('0.00')

    recent_orders = Order.objects.select_related('user').prefetch_related('items').order_by('-created_at')[:10]
    top_products = Product.objects.filter(status=Product.STATUS_ACTIVE).select_related(
        'category', 'seller', 'seller__seller_details'
    ).prefetch_related('images').order_by('-sales_count', '-rating_average')[:5]

    # Monthly breakdown
    monthly_revenue = delivered.filter(
        created_at__gte=month_window_start(12)
    ).annotate(
        month=TruncMonth('created_at')
    ).values('month').annotate(
        revenue=Sum('total', output_field=DecimalField()),
        orders=Count('id')
    ).order_by('month')

    return Response({
        'stats': {
            'total_users': User.objects.count(),
            'total_customers': User.objects.filter(role=User.ROLE_CUSTOMER).count(),
            'total_sellers': User.objects.filter(role=User.ROLE_SELLER).count(),
            'total_products': Product.objects.count(),
            'active_products': Product.objects.filter(status=Product.STATUS_ACTIVE).count(),
            'total_orders': Order.objects.count(),
            'pending_orders': Order.objects.filter(status=Order.STATUS_PENDING).count(),
            'total_revenue': float(total_revenue),
        },
        'recent_orders': OrderListSerializer(recent_orders, many=True).data,
        'top_products': ProductListSerializer(top_products, many=True).data,
        'monthly_revenue': [
            {'month': row['month'].strftime('%Y-%m'), 'revenue': float(row['revenue'] or 0), 'orders': row['orders']}
            for row in monthly_revenue
        ],
    })
