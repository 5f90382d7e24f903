from django.db import models
from django.contrib.auth.models import AbstractUser
from core.constants import USER_ROLE_CHOICES, USER_ROLE_ALIASES


class User(AbstractUser):
    email = models.EmailField(blank=True, null=True, unique=True)
    phone_number = models.CharField(max_length=15, blank=True, null=True, unique=True)
    role = models.CharField(max_length=20, choices=USER_ROLE_CHOICES, default='freelancer')

    @property
    def is_employer(self):
        return self.role == 'employer'

    @property
    def is_freelancer(self):
        return self.role == 'freelancer'

    @property
    def is_admin(self):
        return self.role == 'admin' or self.is_superuser

    @property
    def display_name(self):
        full_name = self.get_full_name()
        return full_name or self.username

    @staticmethod
    def normalize_role(role):
        """Map aliases ('recruiter', 'client') onto real roles; unknown roles become 'freelancer'."""
        if not role:
            return 'freelancer'
        normalized = str(role).strip().lower()
        normalized = USER_ROLE_ALIASES.get(normalized, normalized)
        valid_roles = [choice for choice, _ in USER_ROLE_CHOICES]
        return normalized if normalized in valid_roles else 'freelancer'

    def __str__(self):
        return f"{self.username} ({self.role})"
