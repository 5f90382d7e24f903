from rest_framework import serializers
from .models import Milestone, Payment
from apps.users.serializers import UserSummarySerializer


class MilestoneSerializer(serializers.ModelSerializer):
    class Meta:
        model = Milestone
        fields = [
            'id', 'project', 'level', 'status', 'percentage', 'amount', 'is_completed',
            'completed_at', 'payment_status', 'payment_released_at', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


class PaymentSerializer(serializers.ModelSerializer):
    recruiter = UserSummarySerializer(read_only=True)
    freelancer = UserSummarySerializer(read_only=True)
    milestone_level = serializers.IntegerField(source='milestone.level', read_only=True)

    class Meta:
        model = Payment
        fields = [
            'id', 'project', 'milestone', 'milestone_level', 'recruiter', 'freelancer', 'amount',
            'currency', 'gateway_order_id', 'gateway_payment_id', 'transaction_status',
            'created_at', 'updated_at'
        ]
        read_only_fields = fields


class CreateOrderSerializer(serializers.Serializer):
    project_id = serializers.IntegerField()
    milestone_level = serializers.IntegerField()
