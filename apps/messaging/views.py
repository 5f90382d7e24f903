from rest_framework.views import APIView
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi
from .serializers import MessageSerializer, ConversationSerializer, SendMessageSerializer
from . import services
from core.utils import success_response


class ConversationListView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="One conversation per allocated job the user takes part in, "
                              "with the latest message and unread count.",
        responses={200: ConversationSerializer(many=True)}
    )
    def get(self, request):
        conversations = services.get_conversations(request.user)
        return success_response(ConversationSerializer(conversations, many=True).data)


class JobMessagesView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="Conversation history for an allocated job, oldest first. "
                              "Marks the other party's messages as read.",
        manual_parameters=[
            openapi.Parameter('limit', openapi.IN_QUERY, type=openapi.TYPE_INTEGER, default=50),
            openapi.Parameter('skip', openapi.IN_QUERY, type=openapi.TYPE_INTEGER, default=0),
        ],
        responses={200: MessageSerializer(many=True), 403: 'Forbidden', 404: 'Not Found',
                   409: 'Job not allocated'}
    )
    def get(self, request, pk):
        messages = services.get_job_messages(
            pk, request.user,
            limit=request.query_params.get('limit'),
            skip=request.query_params.get('skip'),
        )
        return success_response(MessageSerializer(messages, many=True).data)


class SendMessageView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        request_body=SendMessageSerializer,
        responses={201: MessageSerializer, 400: 'Bad Request', 403: 'Forbidden', 404: 'Not Found',
                   409: 'Job not allocated'}
    )
    def post(self, request):
        serializer = SendMessageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        message = services.send_message(
            serializer.validated_data['job_id'],
            request.user,
            serializer.validated_data['receiver_id'],
            serializer.validated_data['content'],
            serializer.validated_data['message_type'],
        )
        return success_response(MessageSerializer(message).data, status_code=status.HTTP_201_CREATED)


class MarkReadView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(responses={200: 'Messages marked as read', 403: 'Forbidden', 404: 'Not Found'})
    def put(self, request, pk):
        marked = services.mark_conversation_read(pk, request.user)
        return success_response({'modified_count': marked}, message='Messages marked as read')


class UnreadCountView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(responses={200: openapi.Schema(type=openapi.TYPE_OBJECT)})
    def get(self, request):
        return success_response({'unread_count': services.get_unread_count(request.user)})
