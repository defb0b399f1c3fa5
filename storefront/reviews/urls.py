from django.urls import path
from .views import (
    review_list_create, my_reviews, review_detail, review_helpful, review_response,
    admin_review_list, admin_review_moderate
)

urlpatterns = [
    path('reviews/', review_list_create, name='review-list-create'),
    path('reviews/mine/', my_reviews, name='review-mine'),
    path('reviews/<int:pk>/', review_detail, name='review-detail'),
    path('reviews/<int:pk>/helpful/', review_helpful, name='review-helpful'),
    path('reviews/<int:pk>/response/', review_response, name='review-response'),

    path('admin/reviews/', admin_review_list, name='admin-review-list'),
    path('admin/reviews/<int:pk>/moderate/', admin_review_moderate, name='admin-review-moderate'),
]
