from decimal import Decimal

from django.db import models
from django.conf import settings
from core.constants import MILESTONE_PAYMENT_STATUS_CHOICES, TRANSACTION_STATUS_CHOICES, FINAL_PROGRESS_LEVEL
from django.core.validators import MinValueValidator, MaxValueValidator


class Milestone(models.Model):
    project = models.ForeignKey('jobs.Job', on_delete=models.CASCADE, related_name='milestones')
    level = models.PositiveSmallIntegerField(validators=[MaxValueValidator(FINAL_PROGRESS_LEVEL)])
    status = models.CharField(max_length=50)
    percentage = models.PositiveSmallIntegerField(validators=[MaxValueValidator(100)])
    # Fixed when the milestone is created, never recomputed
    amount = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal('0.00'), validators=[MinValueValidator(Decimal('0'))]
    )
    is_completed = models.BooleanField(default=False)
    completed_at = models.DateTimeField(null=True, blank=True)
    payment_status = models.CharField(max_length=20, choices=MILESTONE_PAYMENT_STATUS_CHOICES, default='PENDING')
    payment_released_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['level']
        constraints = [
            models.UniqueConstraint(fields=['project', 'level'], name='unique_milestone_per_project_level'),
        ]

    def __str__(self):
        return f"{self.project.title} - level {self.level} ({self.status})"


class Payment(models.Model):
    project = models.ForeignKey('jobs.Job', on_delete=models.CASCADE, related_name='payments')
    milestone = models.OneToOneField(Milestone, on_delete=models.CASCADE, related_name='payment')
    recruiter = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='payments_made')
    freelancer = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='payments_received')
    amount = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(Decimal('0'))])
    currency = models.CharField(max_length=3, default='INR')
    gateway_order_id = models.CharField(max_length=100, unique=True)
    gateway_payment_id = models.CharField(max_length=100, null=True, blank=True)
    transaction_status = models.CharField(max_length=20, choices=TRANSACTION_STATUS_CHOICES, default='CREATED')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['created_at']

    def __str__(self):
        return f"{self.gateway_order_id}: {self.amount} {self.currency} ({self.transaction_status})"

    @property
    def is_terminal(self):
        return self.transaction_status in ('SUCCESS', 'FAILED')
