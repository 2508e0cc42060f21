from rest_framework import serializers
from django.contrib.auth import authenticate
from rest_framework_simplejwt.tokens import RefreshToken
from .models import User

class RegisterSerializer(serializers.ModelSerializer):
    """Self-service sign-up. Always creates a customer; staff roles are granted by an admin."""

    class Meta:
        model = User
        fields = ['email', 'password', 'name', 'mobile_number']
        extra_kwargs = {'password': {'write_only': True, 'min_length': 8}}

    def create(self, validated_data):
        return User.objects.create_user(
            email=validated_data['email'],
            password=validated_data['password'],
            role=User.ROLE_CUSTOMER,
            name=validated_data.get('name'),
            mobile_number=validated_data.get('mobile_number'),
        )

class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)

    def validate(self, attrs):
        email = attrs.get("email")
        password = attrs.get("password")

        user = authenticate(email=email, password=password)
        if not user:
            raise serializers.ValidationError({"non_field_errors": "Invalid credentials"})
        if not user.is_active:
            raise serializers.ValidationError({"non_field_errors": "User account inactive"})

        refresh = RefreshToken.for_user(user)

        return {
            "user": user,
            "message": "Login Successful",
            "accessToken": str(refresh.access_token),
            "refreshToken": str(refresh),
        }
