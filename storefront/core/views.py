import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, parser_classes
from rest_framework.parsers import MultiPartParser, FormParser, JSONParser
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.exceptions import AuthenticationFailed, InvalidToken, TokenError
from django.contrib.auth import get_user_model
from django.core.exceptions import ObjectDoesNotExist
from django.shortcuts import get_object_or_404
from django.db.models import ProtectedError, Q
from .models import AuditLog
from .serializers import (
    UserSerializer, UserCreateSerializer, ProfileUpdateSerializer,
    AdminUserUpdateSerializer, ChangePasswordSerializer, AuditLogSerializer
)
from .permissions import IsAdminRole, IsSellerRole
from .utils import create_audit_log, paginate, parse_bool
from . import image_host

logger = logging.getLogger(__name__)

User = get_user_model()


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        # Allow signing in with the email address in the username field
        login = attrs.get(self.username_field, '')
        if '@' in login:
            match = User.objects.filter(email__iexact=login).only('username').first()
            if match:
                attrs[self.username_field] = match.username

        data = super().validate(attrs)
        if not self.user.is_active:
            raise AuthenticationFailed('User account is disabled.')
        if self.user.is_suspended:
            logger.warning(f"Login rejected for suspended user {self.user.username}")
            raise AuthenticationFailed('Account is suspended.')
        data['user'] = UserSerializer(self.user).data
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['username'] = user.username
        token['role'] = user.role
        return token


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """Token refresh that handles deleted users gracefully"""
    def validate(self, attrs):
        try:
            return super().validate(attrs)
        except (InvalidToken, TokenError):
            raise InvalidToken('Token is invalid or expired.')
        except (ObjectDoesNotExist, User.DoesNotExist):
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    serializer_class = CustomTokenRefreshSerializer


@api_view(['POST'])
@permission_classes([AllowAny])
def register(request):
    """Register a customer or seller account and return a token pair"""
    serializer = UserCreateSerializer(data=request.data)
    if serializer.is_valid():
        user = serializer.save()
        token = CustomTokenObtainPairSerializer.get_token(user)
        logger.info(f"Registered {user.role} account {user.username}")
        return Response({
            'user': UserSerializer(user).data,
            'access': str(token.access_token),
            'refresh': str(token),
        }, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Get or update the current user's profile"""
    user = request.user

    if request.method == 'PATCH':
        serializer = ProfileUpdateSerializer(user, data=request.data, partial=True)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        serializer.save()

    user_data = UserSerializer(user).data
    user_data['is_admin'] = user.is_admin_role
    user_data['is_seller'] = user.is_seller_role
    user_data['can_access_vendor_panel'] = user.is_seller_role or user.is_admin_role
    user_data['can_access_admin_panel'] = user.is_admin_role
    return Response(user_data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def change_password(request):
    serializer = ChangePasswordSerializer(data=request.data, context={'request': request})
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    request.user.set_password(serializer.validated_data['new_password'])
    request.user.save(update_fields=['password', 'updated_at'])
    logger.info(f"Password changed for user {request.user.username}")
    return Response({'message': 'Password updated successfully'})


# Admin user management
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def admin_user_list(request):
    """List users, filterable by role, suspension and a search term"""
    users = User.objects.all().order_by('-date_joined')

    role = request.query_params.get('role')
    if role:
        users = users.filter(role=role)

    suspended = parse_bool(request.query_params.get('is_suspended'))
    if suspended is not None:
        users = users.filter(is_suspended=suspended)

    search = request.query_params.get('search', '').strip()
    if search:
        users = users.filter(
            Q(username__icontains=search) |
            Q(email__icontains=search) |
            Q(first_name__icontains=search) |
            Q(last_name__icontains=search)
        )

    page_items, pagination = paginate(users, request)
    return Response({
        'results': UserSerializer(page_items, many=True).data,
        'pagination': pagination,
    })


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminRole])
def admin_user_detail(request, pk):
    """Retrieve, update or delete a user"""
    user = get_object_or_404(User, pk=pk)

    if request.method == 'GET':
        return Response(UserSerializer(user).data)
    elif request.method == 'PATCH':
        if user.pk == request.user.pk and 'role' in request.data and request.data['role'] != user.role:
            return Response({'error': 'You cannot change your own role'}, status=status.HTTP_400_BAD_REQUEST)
        old_role = user.role
        serializer = AdminUserUpdateSerializer(user, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            if old_role != user.role:
                create_audit_log(
                    request=request, action='update', model_name='User', object_id=user.pk,
                    object_name=user.username, changes={'role': {'from': old_role, 'to': user.role}}
                )
            return Response(UserSerializer(user).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if user.pk == request.user.pk:
            return Response({'error': 'You cannot delete your own account'}, status=status.HTTP_400_BAD_REQUEST)
        username, user_pk = user.username, user.pk
        try:
            user.delete()
        except ProtectedError:
            return Response(
                {'error': 'User has orders and cannot be deleted. Suspend the account instead.'},
                status=status.HTTP_400_BAD_REQUEST
            )
        create_audit_log(request=request, action='delete', model_name='User', object_id=user_pk, object_name=username)
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def admin_user_suspend(request, pk):
    """Suspend or reinstate a user. Body: {"suspended": true|false} (defaults to true)"""
    user = get_object_or_404(User, pk=pk)
    if user.pk == request.user.pk:
        return Response({'error': 'You cannot suspend your own account'}, status=status.HTTP_400_BAD_REQUEST)

    suspended = parse_bool(request.data.get('suspended'), default=True)
    user.is_suspended = suspended
    user.save(update_fields=['is_suspended', 'updated_at'])
    create_audit_log(
        request=request, action='user_suspend', model_name='User', object_id=user.pk,
        object_name=user.username, changes={'is_suspended': suspended}
    )
    logger.info(f"User {user.username} {'suspended' if suspended else 'reinstated'} by {request.user.username}")
    return Response(UserSerializer(user).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def audit_log_list(request):
    logs = AuditLog.objects.select_related('user').all()

    model_name = request.query_params.get('model_name')
    if model_name:
        logs = logs.filter(model_name=model_name)
    action = request.query_params.get('action')
    if action:
        logs = logs.filter(action=action)

    page_items, pagination = paginate(logs, request, default_limit=50)
    return Response({
        'results': AuditLogSerializer(page_items, many=True).data,
        'pagination': pagination,
    })


# Image uploads
@api_view(['POST'])
@permission_classes([IsAuthenticated, IsSellerRole])
@parser_classes([MultiPartParser, FormParser])
def image_upload(request):
    """
    Upload one or more images to the image host.

    Multipart field `files` (repeatable) or `file`; optional `folder`.
    The first uploaded image is flagged primary.
    """
    files = request.FILES.getlist('files') or request.FILES.getlist('file')
    if not files:
        return Response({'error': 'No files provided'}, status=status.HTTP_400_BAD_REQUEST)

    folder = request.data.get('folder') or None
    try:
        images = image_host.upload_multiple_images(files, folder=folder)
    except image_host.ImageHostError as e:
        return Response({'error': str(e)}, status=status.HTTP_502_BAD_GATEWAY)

    return Response({'images': images}, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
@parser_classes([JSONParser])
def image_delete(request):
    """Delete an image from the image host by public id (request signed server-side)"""
    public_id = (request.data.get('public_id') or '').strip()
    if not public_id:
        return Response({'error': 'public_id is required'}, status=status.HTTP_400_BAD_REQUEST)

    try:
        result = image_host.delete_image(public_id)
    except image_host.ImageHostError as e:
        return Response({'error': str(e)}, status=status.HTTP_502_BAD_GATEWAY)

    create_audit_log(request=request, action='image_delete', model_name='Image', object_id=public_id)
    return Response({'public_id': public_id, 'result': result.get('result')})


@api_view(['GET'])
@permission_classes([AllowAny])
def image_variants(request):
    """Optimised and responsive delivery URLs for a public id"""
    public_id = (request.query_params.get('public_id') or '').strip()
    if not public_id:
        return Response({'error': 'public_id is required'}, status=status.HTTP_400_BAD_REQUEST)

    return Response({
        'public_id': public_id,
        'optimized_url': image_host.get_optimized_image_url(public_id),
        'responsive': image_host.get_responsive_image_urls(public_id),
    })
