from rest_framework.views import APIView
from rest_framework import status, permissions
from rest_framework.authtoken.models import Token
from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi
from .serializers import LoginSerializer, SignupSerializer, UserSerializer
from core.utils import success_response
import logging

logger = logging.getLogger(__name__)

token_response = openapi.Response(
    description='Authenticated',
    schema=openapi.Schema(
        type=openapi.TYPE_OBJECT,
        properties={
            'success': openapi.Schema(type=openapi.TYPE_BOOLEAN),
            'data': openapi.Schema(
                type=openapi.TYPE_OBJECT,
                properties={
                    'token': openapi.Schema(type=openapi.TYPE_STRING),
                    'user': openapi.Schema(type=openapi.TYPE_OBJECT),
                }
            ),
        }
    )
)


class AuthSignupView(APIView):
    permission_classes = [permissions.AllowAny]

    @swagger_auto_schema(
        operation_description="Register an employer or freelancer account. "
                              "'recruiter' and 'client' are accepted as employer.",
        request_body=SignupSerializer,
        responses={201: token_response, 400: 'Bad Request'}
    )
    def post(self, request):
        serializer = SignupSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        token, _ = Token.objects.get_or_create(user=user)
        return success_response(
            {'token': token.key, 'user': UserSerializer(user).data},
            status_code=status.HTTP_201_CREATED
        )


class AuthLoginView(APIView):
    permission_classes = [permissions.AllowAny]

    @swagger_auto_schema(
        request_body=LoginSerializer,
        responses={200: token_response, 400: 'Bad Request'}
    )
    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        token, _ = Token.objects.get_or_create(user=user)
        logger.info(f"Login successful for user {user.id}")
        return success_response({'token': token.key, 'user': UserSerializer(user).data})


class UserProfileView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    @swagger_auto_schema(
        operation_description="Return the authenticated user.",
        responses={200: UserSerializer, 401: 'Unauthorized'}
    )
    def get(self, request):
        return success_response(UserSerializer(request.user).data)
