from decimal import Decimal

from django.db import models
from django.conf import settings
from django.utils import timezone
from core.constants import (
    JOB_STATUS_CHOICES, JOB_TYPE_CHOICES, BID_STATUS_CHOICES, PROJECT_STATUS_CHOICES,
    PROGRESS_LEVELS, FINAL_PROGRESS_LEVEL, MIN_BIDDING_DURATION, MAX_BIDDING_DURATION
)
from django.core.validators import MinValueValidator, MaxValueValidator


class Job(models.Model):
    posted_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='jobs')
    title = models.CharField(max_length=200)
    company = models.CharField(max_length=200)
    location = models.CharField(max_length=200)
    description = models.TextField()
    salary = models.CharField(max_length=100, default='Not specified')
    budget = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True,
        validators=[MinValueValidator(Decimal('0'))]
    )
    type = models.CharField(max_length=20, choices=JOB_TYPE_CHOICES, default='Full-time')
    status = models.CharField(max_length=20, choices=JOB_STATUS_CHOICES, default='open')
    bidding_deadline = models.DateTimeField()
    bidding_duration = models.PositiveIntegerField(
        default=24,
        validators=[MinValueValidator(MIN_BIDDING_DURATION), MaxValueValidator(MAX_BIDDING_DURATION)]
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    closed_at = models.DateTimeField(null=True, blank=True)

    # Allocation, written once by the employer when a bid is accepted
    allocated_to = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='allocated_jobs'
    )
    allocated_at = models.DateTimeField(null=True, blank=True)
    accepted_bid = models.ForeignKey(
        'jobs.Bid', on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )

    # Progress, written by the allocated freelancer
    progress_level = models.PositiveSmallIntegerField(
        default=0, validators=[MaxValueValidator(FINAL_PROGRESS_LEVEL)]
    )
    completion_percentage = models.PositiveSmallIntegerField(
        default=0, validators=[MaxValueValidator(100)]
    )
    project_status = models.CharField(
        max_length=50, choices=PROJECT_STATUS_CHOICES, default=PROGRESS_LEVELS[0]['status']
    )

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['posted_by', 'status'], name='jobs_job_posted__a1c2e4_idx'),
            models.Index(fields=['status', 'bidding_deadline'], name='jobs_job_status_7b3d9f_idx'),
            models.Index(fields=['allocated_to'], name='jobs_job_allocat_5e8a21_idx'),
        ]

    def __str__(self):
        return f"{self.title} - {self.company}"

    @property
    def is_bidding_open(self):
        return self.status in ('open', 'bidding') and timezone.now() < self.bidding_deadline

    @property
    def is_allocated(self):
        return self.allocated_to_id is not None and self.status == 'closed'

    @property
    def is_completed(self):
        return self.progress_level >= FINAL_PROGRESS_LEVEL

    def project_total(self):
        """
        Total value the milestone percentages apply to: the posted budget,
        falling back to the accepted bid amount, else zero.
        """
        if self.budget:
            return self.budget
        if self.accepted_bid_id:
            return self.accepted_bid.bid_amount
        return Decimal('0')

    def is_participant(self, user):
        return user.id in (self.posted_by_id, self.allocated_to_id)

    def counterpart_of(self, user):
        """The other side of the allocated engagement."""
        return self.allocated_to if user.id == self.posted_by_id else self.posted_by


class Bid(models.Model):
    job = models.ForeignKey(Job, on_delete=models.CASCADE, related_name='bids')
    freelancer = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='bids')
    # Copied from job.posted_by when the bid is placed, never refreshed
    recruiter = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='received_bids')
    bid_amount = models.DecimalField(
        max_digits=12, decimal_places=2, validators=[MinValueValidator(Decimal('0'))]
    )
    cover_letter = models.TextField(max_length=1000)
    status = models.CharField(max_length=20, choices=BID_STATUS_CHOICES, default='pending')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(fields=['job', 'freelancer'], name='unique_bid_per_freelancer_job'),
        ]
        indexes = [
            models.Index(fields=['job', 'status'], name='jobs_bid_job_id_3f6c0b_idx'),
            models.Index(fields=['freelancer'], name='jobs_bid_freelan_9d2e47_idx'),
            models.Index(fields=['recruiter'], name='jobs_bid_recruit_c81f5a_idx'),
        ]

    def __str__(self):
        return f"{self.freelancer.username} bid {self.bid_amount} on {self.job.title}"

    @property
    def is_terminal(self):
        return self.status in ('accepted', 'rejected')
