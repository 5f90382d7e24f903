from rest_framework import serializers
from .models import Message, MAX_MESSAGE_LENGTH
from apps.users.serializers import UserSummarySerializer
from core.constants import MESSAGE_TYPE_CHOICES


class MessageSerializer(serializers.ModelSerializer):
    sender = UserSummarySerializer(read_only=True)
    receiver = UserSummarySerializer(read_only=True)

    class Meta:
        model = Message
        fields = [
            'id', 'job', 'sender', 'receiver', 'content', 'message_type', 'file_url', 'file_name',
            'is_read', 'read_at', 'timestamp', 'edited_at'
        ]
        read_only_fields = fields


class ConversationSerializer(serializers.Serializer):
    job_id = serializers.IntegerField(source='job.id')
    job_title = serializers.CharField(source='job.title')
    company = serializers.CharField(source='job.company')
    other_user = UserSummarySerializer()
    latest_message = MessageSerializer(allow_null=True)
    unread_count = serializers.IntegerField()
    allocated_at = serializers.DateTimeField(allow_null=True)
    bid_amount = serializers.DecimalField(max_digits=12, decimal_places=2, allow_null=True)


class SendMessageSerializer(serializers.Serializer):
    job_id = serializers.IntegerField()
    receiver_id = serializers.IntegerField()
    content = serializers.CharField(max_length=MAX_MESSAGE_LENGTH)
    message_type = serializers.ChoiceField(choices=MESSAGE_TYPE_CHOICES, default='text')
