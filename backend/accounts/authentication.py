import logging

from django.contrib.auth import get_user_model
from rest_framework import authentication, exceptions

from .tokens import InvalidToken, read_token

logger = logging.getLogger(__name__)


class HeaderTokenAuthentication(authentication.BaseAuthentication):
    """Authenticate from the ``token`` header, or ``Authorization: Bearer <token>``.

    Requests without any token are left anonymous so permission classes decide;
    a token that is present but invalid fails the request outright.
    """

    keyword = "Bearer"

    def get_token(self, request):
        token = request.META.get("HTTP_TOKEN")
        if token:
            return token
        auth = authentication.get_authorization_header(request).split()
        if len(auth) == 2 and auth[0].lower() == self.keyword.lower().encode():
            return auth[1].decode()
        return None

    def authenticate(self, request):
        token = self.get_token(request)
        if not token:
            return None

        try:
            user_id = read_token(token)
        except InvalidToken as exc:
            logger.info("Token verification failed: %s", exc)
            raise exceptions.AuthenticationFailed("Not authorized")

        User = get_user_model()
        try:
            user = User.objects.get(pk=user_id)
        except User.DoesNotExist:
            logger.info("Token names unknown user %s", user_id)
            raise exceptions.AuthenticationFailed("Not authorized, user not found")

        if not user.is_active:
            raise exceptions.AuthenticationFailed("Not authorized")
        return (user, token)

    def authenticate_header(self, request):
        return self.keyword
