from rest_framework.permissions import BasePermission, SAFE_METHODS


def is_admin(user):
    return bool(user and user.is_authenticated and (user.role == 'admin' or user.is_superuser))


def is_seller(user):
    return bool(user and user.is_authenticated and user.role == 'seller')


class IsAdminRole(BasePermission):
    """Allows access only to users with the admin role (or superusers)"""
    message = 'Admin access required'

    def has_permission(self, request, view):
        return is_admin(request.user)


class IsSellerRole(BasePermission):
    """Allows access to sellers; admins pass as well"""
    message = 'Seller access required'

    def has_permission(self, request, view):
        return is_seller(request.user) or is_admin(request.user)


class IsAdminOrReadOnly(BasePermission):
    message = 'Admin access required'

    def has_permission(self, request, view):
        if request.method in SAFE_METHODS:
            return True
        return is_admin(request.user)


class IsSellerOrReadOnly(BasePermission):
    message = 'Seller access required'

    def has_permission(self, request, view):
        if request.method in SAFE_METHODS:
            return True
        return is_seller(request.user) or is_admin(request.user)
