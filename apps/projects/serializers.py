from rest_framework import serializers
from apps.jobs.models import Job, Bid
from apps.users.serializers import UserSummarySerializer


class AcceptedBidSerializer(serializers.ModelSerializer):
    class Meta:
        model = Bid
        fields = ['id', 'bid_amount', 'cover_letter', 'created_at']
        read_only_fields = fields


class ProjectSerializer(serializers.ModelSerializer):
    posted_by = UserSummarySerializer(read_only=True)
    allocated_to = UserSummarySerializer(read_only=True)
    accepted_bid = AcceptedBidSerializer(read_only=True)
    project_total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = Job
        fields = [
            'id', 'title', 'company', 'location', 'description', 'budget', 'type', 'status',
            'posted_by', 'allocated_to', 'allocated_at', 'accepted_bid', 'project_total',
            'progress_level', 'completion_percentage', 'project_status', 'updated_at'
        ]
        read_only_fields = fields


class ProgressUpdateSerializer(serializers.Serializer):
    progress_level = serializers.IntegerField()
