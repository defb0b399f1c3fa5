import logging

from django.db import IntegrityError, transaction
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated, IsAuthenticatedOrReadOnly
from rest_framework.response import Response

from storefront.catalog.models import Product
from storefront.core.permissions import IsAdminRole, IsSellerRole, is_admin
from storefront.core.utils import create_audit_log, paginate, parse_int
from .models import Review, rating_summary
from .serializers import ReviewModerationSerializer, ReviewResponseSerializer, ReviewSerializer

logger = logging.getLogger(__name__)

REVIEW_SORT_OPTIONS = {
    'newest': ['-created_at', '-id'],
    'helpful': ['-helpful_count', '-created_at'],
    'rating_high': ['-rating', '-created_at'],
    'rating_low': ['rating', '-created_at'],
}


def review_queryset():
    return Review.objects.select_related('product', 'user', 'responded_by')


def can_see_review(user, review):
    if review.status == Review.STATUS_APPROVED:
        return True
    return user.is_authenticated and (review.user_id == user.id or is_admin(user))


def summary_payload(product_id):
    summary = rating_summary(product_id)
    summary['average'] = float(summary['average'])
    return summary


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticatedOrReadOnly])
def review_list_create(request):
    """
    GET: approved reviews of ?product= with its rating summary.
    Optional ?rating= (1-5) and ?sort_by= (newest|helpful|rating_high|rating_low).

    POST: review a product from one of my delivered orders. The review is
    held for moderation before it counts towards the rating.
    """
    if request.method == 'POST':
        serializer = ReviewSerializer(data=request.data, context={'request': request})
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        try:
            with transaction.atomic():
                review = serializer.save(user=request.user)
        except IntegrityError:
            return Response({'error': 'You have already reviewed this product'}, status=status.HTTP_400_BAD_REQUEST)

        create_audit_log(request=request, action='create', model_name='Review', object_id=review.pk, object_name=review.product.name)
        logger.info(f"Review {review.pk} created by {request.user.username} for product {review.product_id}")
        return Response(ReviewSerializer(review, context={'request': request}).data, status=status.HTTP_201_CREATED)

    product_id = parse_int(request.query_params.get('product'))
    if product_id is None:
        return Response({'error': 'product is required'}, status=status.HTTP_400_BAD_REQUEST)
    get_object_or_404(Product, pk=product_id)

    reviews = review_queryset().filter(product_id=product_id, status=Review.STATUS_APPROVED)
    rating = request.query_params.get('rating')
    if rating:
        stars = parse_int(rating)
        if stars is None or not 1 <= stars <= 5:
            return Response({'error': 'rating must be between 1 and 5'}, status=status.HTTP_400_BAD_REQUEST)
        reviews = reviews.filter(rating=stars)

    sort_by = request.query_params.get('sort_by', 'newest')
    if sort_by not in REVIEW_SORT_OPTIONS:
        return Response(
            {'error': f"Invalid sort_by. Expected one of: {', '.join(REVIEW_SORT_OPTIONS)}"},
            status=status.HTTP_400_BAD_REQUEST
        )

    page_items, pagination = paginate(reviews.order_by(*REVIEW_SORT_OPTIONS[sort_by]), request, default_limit=10)
    return Response({
        'results': ReviewSerializer(page_items, many=True, context={'request': request}).data,
        'pagination': pagination,
        'summary': summary_payload(product_id),
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_reviews(request):
    reviews = review_queryset().filter(user=request.user)
    page_items, pagination = paginate(reviews, request, default_limit=10)
    return Response({
        'results': ReviewSerializer(page_items, many=True, context={'request': request}).data,
        'pagination': pagination,
    })


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticatedOrReadOnly])
def review_detail(request, pk):
    """
    GET: an approved review, or my own / any review for admins.
    PUT/PATCH: edit my review's rating, title or comment while it is not
    approved; the edit goes back to moderation.
    DELETE: my review, or any review for admins.
    """
    review = get_object_or_404(review_queryset(), pk=pk)
    if not can_see_review(request.user, review):
        return Response({'error': 'Review not found'}, status=status.HTTP_404_NOT_FOUND)

    if request.method == 'GET':
        return Response(ReviewSerializer(review, context={'request': request}).data)

    if request.method == 'DELETE':
        if review.user_id != request.user.id and not is_admin(request.user):
            return Response({'error': 'You can only delete your own reviews'}, status=status.HTTP_403_FORBIDDEN)
        create_audit_log(request=request, action='delete', model_name='Review', object_id=review.pk, object_name=review.product.name)
        review.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    if review.user_id != request.user.id:
        return Response({'error': 'You can only edit your own reviews'}, status=status.HTTP_403_FORBIDDEN)
    if review.status == Review.STATUS_APPROVED:
        return Response({'error': 'Approved reviews cannot be updated'}, status=status.HTTP_400_BAD_REQUEST)

    serializer = ReviewSerializer(review, data=request.data, partial=True, context={'request': request})
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    review = serializer.save(status=Review.STATUS_PENDING)
    create_audit_log(request=request, action='update', model_name='Review', object_id=review.pk, object_name=review.product.name)
    return Response(ReviewSerializer(review, context={'request': request}).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def review_helpful(request, pk):
    """Toggle my "helpful" vote on an approved review"""
    with transaction.atomic():
        review = get_object_or_404(Review.objects.select_for_update(), pk=pk, status=Review.STATUS_APPROVED)
        if review.helpful_users.filter(pk=request.user.pk).exists():
            review.helpful_users.remove(request.user)
            is_helpful = False
        else:
            review.helpful_users.add(request.user)
            is_helpful = True
        review.helpful_count = review.helpful_users.count()
        review.save(update_fields=['helpful_count', 'updated_at'])

    return Response({'id': review.pk, 'helpful_count': review.helpful_count, 'is_helpful': is_helpful})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsSellerRole])
def review_response(request, pk):
    """Reply to a review of one of my products (admins may reply to any)"""
    review = get_object_or_404(review_queryset(), pk=pk)
    if not is_admin(request.user) and review.product.seller_id != request.user.id:
        return Response({'error': 'You can only respond to reviews of your own products'}, status=status.HTTP_403_FORBIDDEN)

    serializer = ReviewResponseSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    review.response_text = serializer.validated_data['text']
    review.responded_by = request.user
    review.responded_at = timezone.now()
    review.save(update_fields=['response_text', 'responded_by', 'responded_at', 'updated_at'])
    create_audit_log(request=request, action='update', model_name='Review', object_id=review.pk, object_name=review.product.name)
    return Response(ReviewSerializer(review, context={'request': request}).data)


# Admin
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def admin_review_list(request):
    """All reviews, filterable by ?status= and ?product="""
    reviews = review_queryset().all()
    status_filter = request.query_params.get('status')
    if status_filter:
        reviews = reviews.filter(status=status_filter)
    product_id = parse_int(request.query_params.get('product'))
    if product_id is not None:
        reviews = reviews.filter(product_id=product_id)

    page_items, pagination = paginate(reviews, request)
    return Response({
        'results': ReviewSerializer(page_items, many=True, context={'request': request}).data,
        'pagination': pagination,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def admin_review_moderate(request, pk):
    """Approve or reject a review; the product rating follows"""
    review = get_object_or_404(review_queryset(), pk=pk)
    serializer = ReviewModerationSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    previous = review.status
    review.status = serializer.validated_data['status']
    review.save(update_fields=['status', 'updated_at'])
    create_audit_log(
        request=request, action='status_change', model_name='Review', object_id=review.pk,
        object_name=review.product.name, changes={'status': {'from': previous, 'to': review.status}}
    )
    logger.info(f"Review {review.pk}: {previous} -> {review.status}")
    return Response(ReviewSerializer(review, context={'request': request}).data)
