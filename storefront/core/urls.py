from django.urls import path
from .views import (
    CustomTokenObtainPairView, CustomTokenRefreshView, register, user_me, change_password,
    admin_user_list, admin_user_detail, admin_user_suspend,
    audit_log_list,
    image_upload, image_delete, image_variants
)

urlpatterns = [
    # Auth endpoints
    path('auth/register/', register, name='register'),
    path('auth/login/', CustomTokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/refresh/', CustomTokenRefreshView.as_view(), name='token_refresh'),
    path('auth/me/', user_me, name='user-me'),
    path('auth/change-password/', change_password, name='change-password'),

    # Admin user management
    path('admin/users/', admin_user_list, name='admin-user-list'),
    path('admin/users/<int:pk>/', admin_user_detail, name='admin-user-detail'),
    path('admin/users/<int:pk>/suspend/', admin_user_suspend, name='admin-user-suspend'),

    # AuditLog endpoints
    path('admin/audit-logs/', audit_log_list, name='audit-log-list'),

    # Image host
    path('uploads/images/', image_upload, name='image-upload'),
    path('uploads/images/delete/', image_delete, name='image-delete'),
    path('uploads/images/variants/', image_variants, name='image-variants'),
]
