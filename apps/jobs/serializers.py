from rest_framework import serializers
from .models import Job, Bid
from apps.users.serializers import UserSummarySerializer
from core.constants import JOB_TYPE_CHOICES, MIN_BIDDING_DURATION, MAX_BIDDING_DURATION
import logging

logger = logging.getLogger(__name__)


class JobSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Job
        fields = ['id', 'title', 'company', 'description', 'status', 'bidding_deadline']
        read_only_fields = fields


class JobSerializer(serializers.ModelSerializer):
    posted_by = UserSummarySerializer(read_only=True)
    allocated_to = UserSummarySerializer(read_only=True)
    is_bidding_open = serializers.BooleanField(read_only=True)
    bid_count = serializers.SerializerMethodField()

    class Meta:
        model = Job
        fields = [
            'id', 'title', 'company', 'location', 'description', 'salary', 'budget', 'type',
            'posted_by', 'status', 'bidding_deadline', 'bidding_duration', 'is_bidding_open',
            'bid_count', 'created_at', 'updated_at', 'closed_at',
            'allocated_to', 'allocated_at', 'accepted_bid',
            'progress_level', 'completion_percentage', 'project_status'
        ]
        read_only_fields = fields

    def get_bid_count(self, obj):
        # Display-only; a failed count never fails the listing
        try:
            return obj.bids.count()
        except Exception as e:
            logger.error(f"Error counting bids for job {obj.id}: {str(e)}")
            return 0


class JobWriteSerializer(serializers.Serializer):
    """Input for creating and updating jobs. Business rules live in ``services``."""
    title = serializers.CharField(max_length=200, required=False, allow_blank=True)
    company = serializers.CharField(max_length=200, required=False, allow_blank=True)
    location = serializers.CharField(max_length=200, required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True)
    salary = serializers.CharField(max_length=100, required=False, allow_blank=True)
    budget = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=0, required=False, allow_null=True
    )
    type = serializers.ChoiceField(choices=JOB_TYPE_CHOICES, required=False)
    status = serializers.ChoiceField(choices=['open', 'bidding', 'cancelled'], required=False)
    bidding_deadline = serializers.DateTimeField(required=False, allow_null=True)
    bidding_duration = serializers.IntegerField(
        min_value=MIN_BIDDING_DURATION, max_value=MAX_BIDDING_DURATION, required=False, allow_null=True
    )


class BidSerializer(serializers.ModelSerializer):
    freelancer = UserSummarySerializer(read_only=True)
    job = JobSummarySerializer(read_only=True)

    class Meta:
        model = Bid
        fields = ['id', 'job', 'freelancer', 'recruiter', 'bid_amount', 'cover_letter', 'status', 'created_at']
        read_only_fields = fields


class BidCreateSerializer(serializers.Serializer):
    job_id = serializers.IntegerField()
    bid_amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    cover_letter = serializers.CharField(max_length=1000, trim_whitespace=False)
