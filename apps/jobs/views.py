from rest_framework.views import APIView
from rest_framework import status
from rest_framework.permissions import IsAuthenticated, AllowAny
from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi
from .serializers import JobSerializer, JobWriteSerializer, BidSerializer, BidCreateSerializer
from . import services
from .allocation import accept_bid, reject_bid
from core.utils import IsEmployer, IsFreelancer, success_response
import logging

logger = logging.getLogger(__name__)

status_param = openapi.Parameter(
    'status', openapi.IN_QUERY, type=openapi.TYPE_STRING,
    enum=['open', 'bidding', 'closed', 'cancelled'],
    description='Filter by job status (employers and admins only)'
)

job_write_body = openapi.Schema(
    type=openapi.TYPE_OBJECT,
    properties={
        'title': openapi.Schema(type=openapi.TYPE_STRING),
        'company': openapi.Schema(type=openapi.TYPE_STRING),
        'location': openapi.Schema(type=openapi.TYPE_STRING),
        'description': openapi.Schema(type=openapi.TYPE_STRING),
        'salary': openapi.Schema(type=openapi.TYPE_STRING),
        'budget': openapi.Schema(type=openapi.TYPE_NUMBER, nullable=True),
        'type': openapi.Schema(type=openapi.TYPE_STRING, enum=['Full-time', 'Part-time', 'Contract', 'Internship']),
        'bidding_deadline': openapi.Schema(type=openapi.TYPE_STRING, format='date-time'),
        'bidding_duration': openapi.Schema(type=openapi.TYPE_INTEGER, minimum=1, maximum=720),
    },
)


class JobListCreateView(APIView):

    def get_permissions(self):
        if self.request.method == 'POST':
            return [IsAuthenticated(), IsEmployer()]
        return [AllowAny()]

    @swagger_auto_schema(
        operation_description="List jobs. Anonymous users, freelancers and other non-employers only see "
                              "open/bidding jobs whose bidding deadline has not passed.",
        manual_parameters=[status_param],
        responses={200: JobSerializer(many=True)}
    )
    def get(self, request):
        jobs = services.list_jobs(request.user, request.query_params.get('status'))
        return success_response(JobSerializer(jobs, many=True).data)

    @swagger_auto_schema(
        operation_description="Post a job. The bidding window is either an explicit future deadline "
                              "or a duration in hours (1-720, default 24).",
        request_body=openapi.Schema(
            type=openapi.TYPE_OBJECT,
            required=['title', 'company', 'location', 'description'],
            properties=job_write_body.properties,
        ),
        responses={201: JobSerializer, 400: 'Bad Request', 401: 'Unauthorized', 403: 'Forbidden'}
    )
    def post(self, request):
        serializer = JobWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        job = services.create_job(request.user, serializer.validated_data)
        return success_response(JobSerializer(job).data, status_code=status.HTTP_201_CREATED)


class MyJobListView(APIView):
    permission_classes = [IsAuthenticated, IsEmployer]

    @swagger_auto_schema(
        operation_description="List jobs posted by the authenticated employer.",
        manual_parameters=[status_param],
        responses={200: JobSerializer(many=True), 401: 'Unauthorized', 403: 'Forbidden'}
    )
    def get(self, request):
        jobs = services.list_my_jobs(request.user, request.query_params.get('status'))
        return success_response(JobSerializer(jobs, many=True).data)


class JobDetailView(APIView):

    def get_permissions(self):
        if self.request.method == 'GET':
            return [AllowAny()]
        return [IsAuthenticated()]

    @swagger_auto_schema(
        operation_description="Retrieve a single job.",
        responses={200: JobSerializer, 404: 'Not Found'}
    )
    def get(self, request, pk):
        return success_response(JobSerializer(services.get_job(pk)).data)

    @swagger_auto_schema(
        operation_description="Update a job (poster or admin). Closed and cancelled jobs cannot be edited.",
        request_body=job_write_body,
        responses={200: JobSerializer, 400: 'Bad Request', 403: 'Forbidden', 404: 'Not Found', 409: 'Conflict'}
    )
    def put(self, request, pk):
        serializer = JobWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        job = services.update_job(pk, request.user, serializer.validated_data)
        return success_response(JobSerializer(job).data)

    @swagger_auto_schema(
        operation_description="Partially update a job. Same rules as PUT.",
        request_body=job_write_body,
        responses={200: JobSerializer, 400: 'Bad Request', 403: 'Forbidden', 404: 'Not Found', 409: 'Conflict'}
    )
    def patch(self, request, pk):
        return self.put(request, pk)

    @swagger_auto_schema(
        operation_description="Delete a job (poster or admin).",
        responses={200: 'Deleted', 403: 'Forbidden', 404: 'Not Found'}
    )
    def delete(self, request, pk):
        services.delete_job(pk, request.user)
        return success_response({}, message='Job deleted successfully')


class BidCreateView(APIView):
    permission_classes = [IsAuthenticated, IsFreelancer]

    @swagger_auto_schema(
        operation_description="Place a bid on an open job. One bid per freelancer per job.",
        request_body=BidCreateSerializer,
        responses={
            201: BidSerializer,
            400: 'Bad Request',
            403: 'Forbidden',
            404: 'Not Found',
            409: 'Deadline passed, job closed or allocated, or already bid'
        }
    )
    def post(self, request):
        serializer = BidCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        bid = services.place_bid(
            serializer.validated_data['job_id'],
            request.user,
            serializer.validated_data['bid_amount'],
            serializer.validated_data['cover_letter'],
        )
        return success_response(BidSerializer(bid).data, status_code=status.HTTP_201_CREATED)


class JobBidListView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="List all bids for a job (poster or admin).",
        responses={200: BidSerializer(many=True), 403: 'Forbidden', 404: 'Not Found'}
    )
    def get(self, request, pk):
        bids = services.list_bids_for_job(pk, request.user)
        return success_response(BidSerializer(bids, many=True).data)


class FreelancerBidListView(APIView):
    permission_classes = [IsAuthenticated, IsFreelancer]

    @swagger_auto_schema(
        operation_description="List bids placed by the authenticated freelancer.",
        responses={200: BidSerializer(many=True)}
    )
    def get(self, request):
        bids = services.list_bids_for_freelancer(request.user)
        return success_response(BidSerializer(bids, many=True).data)


class RecruiterBidListView(APIView):
    permission_classes = [IsAuthenticated, IsEmployer]

    @swagger_auto_schema(
        operation_description="List bids received on the authenticated employer's jobs.",
        responses={200: BidSerializer(many=True)}
    )
    def get(self, request):
        bids = services.list_bids_for_recruiter(request.user)
        return success_response(BidSerializer(bids, many=True).data)


class BidAcceptView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="Accept a bid. Rejects every other bid on the job, closes bidding and "
                              "allocates the job to the bidder, all or nothing.",
        responses={200: BidSerializer, 403: 'Forbidden', 404: 'Not Found', 409: 'Job already allocated'}
    )
    def put(self, request, pk):
        bid = accept_bid(pk, request.user)
        return success_response(BidSerializer(bid).data)


class BidRejectView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="Reject a pending bid.",
        responses={200: BidSerializer, 403: 'Forbidden', 404: 'Not Found', 409: 'Bid already processed'}
    )
    def put(self, request, pk):
        bid = reject_bid(pk, request.user)
        return success_response(BidSerializer(bid).data)
