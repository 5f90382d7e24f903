from rest_framework.views import APIView
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi
from .serializers import MilestoneSerializer, PaymentSerializer, CreateOrderSerializer
from . import services
from core.utils import IsEmployer, success_response
import logging

logger = logging.getLogger(__name__)


class InitializeMilestonesView(APIView):
    permission_classes = [IsAuthenticated, IsEmployer]

    @swagger_auto_schema(
        operation_description="Create one milestone per progress level, each worth its percentage of the project total.",
        responses={201: MilestoneSerializer(many=True), 403: 'Forbidden', 404: 'Not Found',
                   409: 'Milestones already exist'}
    )
    def post(self, request, pk):
        milestones = services.initialize_milestones(pk, request.user)
        return success_response(
            MilestoneSerializer(milestones, many=True).data,
            status_code=status.HTTP_201_CREATED,
            message='Milestones initialized successfully'
        )


class PayableAmountView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="Amount due for the project's current progress level.",
        responses={200: openapi.Schema(type=openapi.TYPE_OBJECT), 403: 'Forbidden', 404: 'Not Found'}
    )
    def get(self, request, pk):
        return success_response(services.get_payable_amount(pk, request.user))


class CreatePaymentOrderView(APIView):
    permission_classes = [IsAuthenticated, IsEmployer]

    @swagger_auto_schema(
        operation_description="Open a gateway order for a milestone. Each milestone can be paid once.",
        request_body=CreateOrderSerializer,
        responses={201: PaymentSerializer, 400: 'Invalid milestone level', 403: 'Forbidden',
                   404: 'Not Found', 409: 'Not allocated or payment already created'}
    )
    def post(self, request):
        serializer = CreateOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = services.create_payment_order(
            serializer.validated_data['project_id'],
            serializer.validated_data['milestone_level'],
            request.user
        )
        return success_response(
            {
                'payment': PaymentSerializer(result['payment']).data,
                'order': result['order'].to_dict(),
                'milestone': MilestoneSerializer(result['milestone']).data,
                'project': result['project'],
            },
            status_code=status.HTTP_201_CREATED
        )


class ProjectPaymentsView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="Project summary, milestones by level and payments by creation time.",
        responses={200: openapi.Schema(type=openapi.TYPE_OBJECT), 403: 'Forbidden', 404: 'Not Found'}
    )
    def get(self, request, pk):
        ledger = services.list_project_payments(pk, request.user)
        return success_response({
            'project': ledger['project'],
            'milestones': MilestoneSerializer(ledger['milestones'], many=True).data,
            'payments': PaymentSerializer(ledger['payments'], many=True).data,
        })


class ConfirmPaymentView(APIView):
    permission_classes = [IsAuthenticated, IsEmployer]

    @swagger_auto_schema(
        operation_description="Check the order with the gateway and record the outcome.",
        responses={200: PaymentSerializer, 403: 'Forbidden', 404: 'Not Found', 409: 'Payment already settled'}
    )
    def post(self, request, pk):
        payment = services.confirm_payment_order(pk, request.user)
        return success_response(PaymentSerializer(payment).data)
