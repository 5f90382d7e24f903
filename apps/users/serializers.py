from rest_framework import serializers
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.core.cache import cache
from django.db.models import Q
from django.utils import timezone

import logging

User = get_user_model()
logger = logging.getLogger(__name__)


class UserSerializer(serializers.ModelSerializer):
    name = serializers.CharField(source='display_name', read_only=True)

    class Meta:
        model = User
        fields = ['id', 'username', 'first_name', 'last_name', 'name', 'email', 'phone_number', 'role']
        read_only_fields = fields


class UserSummarySerializer(serializers.ModelSerializer):
    """Name/email pair embedded in jobs, bids and messages."""
    name = serializers.CharField(source='display_name', read_only=True)

    class Meta:
        model = User
        fields = ['id', 'name', 'email']
        read_only_fields = fields


class SignupSerializer(serializers.Serializer):
    username = serializers.CharField(max_length=150)
    email = serializers.EmailField()
    password = serializers.CharField(max_length=128, write_only=True)
    first_name = serializers.CharField(max_length=150, required=False, allow_blank=True)
    last_name = serializers.CharField(max_length=150, required=False, allow_blank=True)
    phone_number = serializers.CharField(max_length=15, required=False, allow_blank=True)
    role = serializers.CharField(max_length=20, required=False, allow_blank=True)

    def validate_email(self, value):
        value = value.strip().lower()
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError("Email already in use.")
        return value

    def validate_username(self, value):
        if User.objects.filter(username__iexact=value).exists():
            raise serializers.ValidationError("Username already in use.")
        return value

    def validate_phone_number(self, value):
        if not value:
            return None
        if not value.startswith('+') or not value[1:].isdigit():
            raise serializers.ValidationError("Invalid phone number format.")
        if User.objects.filter(phone_number=value).exists():
            raise serializers.ValidationError("Phone number already in use.")
        return value

    def validate(self, data):
        role = User.normalize_role(data.get('role'))
        if role == 'admin':
            # Admin accounts are created through the Django admin only
            raise serializers.ValidationError("Cannot sign up as an admin.")
        data['role'] = role
        validate_password(data['password'])
        return data

    def create(self, validated_data):
        password = validated_data.pop('password')
        user = User(**validated_data)
        user.set_password(password)
        user.save()
        logger.info(f"Registered {user.role} account {user.username}")
        return user


class LoginSerializer(serializers.Serializer):
    identifier = serializers.CharField(max_length=255, trim_whitespace=True)
    password = serializers.CharField(max_length=128, write_only=True)

    def validate(self, data):
        identifier = data.get('identifier').strip()
        password = data.get('password')
        cache_key = f'login_attempts_{identifier.lower()}'
        attempts = cache.get(cache_key, 0)
        if attempts >= 5:
            logger.warning(f"Too many login attempts for {identifier}")
            raise serializers.ValidationError("Too many login attempts. Please try again in 15 minutes.")
        user = User.objects.filter(
            Q(email__iexact=identifier) | Q(phone_number=identifier) | Q(username__iexact=identifier)
        ).first()
        if not user or not user.check_password(password):
            logger.warning(f"Failed login for identifier: {identifier}")
            cache.set(cache_key, attempts + 1, 900)
            raise serializers.ValidationError("Invalid credentials.")
        if not user.is_active:
            raise serializers.ValidationError("User account is disabled. Please contact support.")
        cache.delete(cache_key)
        data['user'] = user
        return data

    def save(self):
        user = self.validated_data['user']
        user.last_login = timezone.now()
        user.save(update_fields=['last_login'])
        return user
