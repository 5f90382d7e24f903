from django.urls import path
from .views import ConversationListView, JobMessagesView, SendMessageView, MarkReadView, UnreadCountView

urlpatterns = [
    path('conversations/', ConversationListView.as_view(), name='conversations'),
    path('job/<int:pk>/', JobMessagesView.as_view(), name='job_messages'),
    path('send/', SendMessageView.as_view(), name='send_message'),
    path('mark-read/<int:pk>/', MarkReadView.as_view(), name='mark_read'),
    path('unread-count/', UnreadCountView.as_view(), name='unread_count'),
]
