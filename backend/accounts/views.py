import logging

from django.contrib.auth import get_user_model
from django.contrib.auth.base_user import BaseUserManager
from django.contrib.auth.models import update_last_login
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import LoginSerializer, SignupSerializer, UserSerializer
from .tokens import issue_token

logger = logging.getLogger(__name__)


class InvalidCredentials(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid credentials"
    default_code = "invalid_credentials"


class Signup(APIView):
    """
    POST /api/auth/signup
    Creates an account and returns it together with a session token.
    """

    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = SignupSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        logger.info("Created user %s", user.pk)

        return Response(
            {
                "success": True,
                "user_data": UserSerializer(user).data,
                "token": issue_token(user),
                "message": "User created successfully",
            },
            status=status.HTTP_201_CREATED,
        )


class Login(APIView):
    """
    POST /api/auth/login
    Checks email + password and returns a fresh session token.
    """

    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        email = BaseUserManager.normalize_email(serializer.validated_data["email"])

        User = get_user_model()
        user = User.objects.filter(email__iexact=email).first()
        # same answer for unknown email and wrong password
        if user is None or not user.check_password(serializer.validated_data["password"]):
            logger.info("Failed login for %s", email)
            raise InvalidCredentials()

        update_last_login(None, user)
        logger.info("User %s logged in", user.pk)
        return Response(
            {
                "success": True,
                "user_data": UserSerializer(user).data,
                "token": issue_token(user),
                "message": "Login successful",
            },
            status=status.HTTP_200_OK,
        )


class CheckAuth(APIView):
    """GET /api/auth/check: echoes the user behind the request token."""

    def get(self, request):
        return Response(
            {
                "success": True,
                "user": UserSerializer(request.user).data,
                "message": "User is authenticated",
            },
            status=status.HTTP_200_OK,
        )
