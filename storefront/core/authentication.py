from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import AuthenticationFailed


class StorefrontJWTAuthentication(JWTAuthentication):
    """JWT authentication that also locks out suspended accounts holding a live token"""

    def get_user(self, validated_token):
        user = super().get_user(validated_token)
        if getattr(user, 'is_suspended', False):
            raise AuthenticationFailed('Account is suspended', code='user_suspended')
        return user
