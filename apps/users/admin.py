from django.contrib import admin
from .models import User

@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'email', 'phone_number', 'role', 'is_superuser', 'is_active')
    list_filter = ('role', 'is_superuser', 'is_active')
    search_fields = ('username', 'email', 'phone_number')
