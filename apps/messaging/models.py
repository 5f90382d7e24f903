from django.db import models
from django.conf import settings
from django.utils import timezone
from core.constants import MESSAGE_TYPE_CHOICES

MAX_MESSAGE_LENGTH = 2000


class Message(models.Model):
    job = models.ForeignKey('jobs.Job', on_delete=models.CASCADE, related_name='messages')
    sender = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='sent_messages')
    receiver = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='received_messages')
    content = models.TextField(max_length=MAX_MESSAGE_LENGTH)
    message_type = models.CharField(max_length=10, choices=MESSAGE_TYPE_CHOICES, default='text')
    file_url = models.URLField(max_length=500, blank=True, null=True)
    file_name = models.CharField(max_length=255, blank=True, null=True)
    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)
    timestamp = models.DateTimeField(default=timezone.now)
    edited_at = models.DateTimeField(null=True, blank=True)
    is_deleted = models.BooleanField(default=False)
    deleted_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['timestamp']
        indexes = [
            models.Index(fields=['job', '-timestamp'], name='messaging_m_job_id_4b7e2a_idx'),
            models.Index(fields=['sender', 'receiver', '-timestamp'], name='messaging_m_sender__9c1d3f_idx'),
            models.Index(fields=['receiver', 'is_read'], name='messaging_m_receive_e6a805_idx'),
        ]

    def __str__(self):
        return f"{self.sender.username} -> {self.receiver.username} on job {self.job_id}"

    @classmethod
    def between(cls, job_id, user_id, other_id):
        """Non-deleted messages in both directions between two users on one job."""
        return cls.objects.filter(
            models.Q(sender_id=user_id, receiver_id=other_id) | models.Q(sender_id=other_id, receiver_id=user_id),
            job_id=job_id,
            is_deleted=False,
        )
