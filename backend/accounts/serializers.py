from django.contrib.auth import get_user_model
from django.contrib.auth.base_user import BaseUserManager
from rest_framework import serializers

User = get_user_model()

ALL_REQUIRED = {
    "required": "All fields are required",
    "blank": "All fields are required",
    "null": "All fields are required",
}
LOGIN_REQUIRED = {
    "required": "Email and password are required",
    "blank": "Email and password are required",
    "null": "Email and password are required",
}


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ["id", "full_name", "email", "created_at"]
        read_only_fields = fields


class SignupSerializer(serializers.Serializer):
    full_name = serializers.CharField(max_length=255, error_messages=ALL_REQUIRED)
    email = serializers.EmailField(error_messages=ALL_REQUIRED)
    password = serializers.CharField(write_only=True, trim_whitespace=False, error_messages=ALL_REQUIRED)

    def validate_email(self, value: str) -> str:
        email = BaseUserManager.normalize_email(value)
        if User.objects.filter(email__iexact=email).exists():
            raise serializers.ValidationError("User already exists")
        return email

    def create(self, validated_data):
        return User.objects.create_user(
            email=validated_data["email"],
            full_name=validated_data["full_name"],
            password=validated_data["password"],
        )


class LoginSerializer(serializers.Serializer):
    email = serializers.CharField(error_messages=LOGIN_REQUIRED)
    password = serializers.CharField(trim_whitespace=False, error_messages=LOGIN_REQUIRED)
