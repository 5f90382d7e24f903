from django.contrib import admin
from .models import Message

@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ('job', 'sender', 'receiver', 'message_type', 'is_read', 'is_deleted', 'timestamp')
    list_filter = ('message_type', 'is_read', 'is_deleted')
    search_fields = ('content', 'sender__username', 'receiver__username', 'job__title')
