"""
Job registry and bid ledger.

Views call these functions with the authenticated user; every refusal is
raised as one of the ``core.exceptions`` errors and translated to an HTTP
response by the API exception handler.
"""
import logging
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from .models import Bid, Job
from .utils import notify_on_commit, resolve_bidding_deadline

logger = logging.getLogger(__name__)

REQUIRED_JOB_FIELDS = ('title', 'company', 'location', 'description')
EDITABLE_JOB_FIELDS = REQUIRED_JOB_FIELDS + ('salary', 'budget', 'type', 'status')
PUBLIC_JOB_STATUSES = ('open', 'bidding')
# 'closed' is reserved for bid acceptance
EMPLOYER_SETTABLE_STATUSES = ('open', 'bidding', 'cancelled')
MAX_COVER_LETTER_LENGTH = 1000


def _can_manage_job(job, user):
    return job.posted_by_id == user.id or user.is_admin


def get_job(job_id):
    try:
        return Job.objects.select_related('posted_by', 'allocated_to', 'accepted_bid').get(pk=job_id)
    except Job.DoesNotExist:
        raise NotFoundError(f"Job not found with id of {job_id}")


def list_jobs(user=None, status=None):
    """
    Jobs visible to ``user``.

    Anonymous callers and anyone who is neither an employer nor an admin only
    see jobs that are still taking bids.
    """
    jobs = Job.objects.select_related('posted_by', 'allocated_to')
    is_privileged = user is not None and user.is_authenticated and (user.is_employer or user.is_admin)
    if not is_privileged:
        return jobs.filter(status__in=PUBLIC_JOB_STATUSES, bidding_deadline__gt=timezone.now())
    if status:
        jobs = jobs.filter(status=status)
    return jobs


def list_my_jobs(user, status=None):
    jobs = Job.objects.filter(posted_by=user).select_related('posted_by', 'allocated_to')
    if status:
        jobs = jobs.filter(status=status)
    return jobs


def create_job(user, data):
    if not (user.is_employer or user.is_admin):
        raise AuthorizationError("Only employers can post jobs")

    for field in REQUIRED_JOB_FIELDS:
        if not str(data.get(field) or '').strip():
            raise ValidationError("Please provide all required fields: title, company, location, description")

    deadline, duration = resolve_bidding_deadline(
        data.get('bidding_deadline'), data.get('bidding_duration')
    )

    job = Job.objects.create(
        posted_by=user,
        title=data['title'].strip(),
        company=data['company'].strip(),
        location=data['location'].strip(),
        description=data['description'],
        salary=data.get('salary') or 'Not specified',
        budget=data.get('budget'),
        type=data.get('type') or 'Full-time',
        status='open',
        bidding_deadline=deadline,
        bidding_duration=duration if duration is not None else settings.DEFAULT_BIDDING_DURATION,
    )
    logger.info(f"Job {job.id} posted by user {user.id}, bidding closes {job.bidding_deadline.isoformat()}")
    return job


def update_job(job_id, user, data):
    with transaction.atomic():
        try:
            job = Job.objects.select_for_update().get(pk=job_id)
        except Job.DoesNotExist:
            raise NotFoundError(f"Job not found with id of {job_id}")

        if not _can_manage_job(job, user):
            raise AuthorizationError("Not authorized to update this job")

        if job.status in ('closed', 'cancelled'):
            raise ConflictError("Cannot update a closed or cancelled job")

        changed = []
        window = {key: data.get(key) for key in ('bidding_deadline', 'bidding_duration')}
        if any(value not in (None, '') for value in window.values()):
            deadline, duration = resolve_bidding_deadline(
                window['bidding_deadline'], window['bidding_duration']
            )
            job.bidding_deadline = deadline
            changed.append('bidding_deadline')
            if duration is not None:
                job.bidding_duration = duration
                changed.append('bidding_duration')

        for field in EDITABLE_JOB_FIELDS:
            if field not in data:
                continue
            value = data[field]
            if field in REQUIRED_JOB_FIELDS and not str(value or '').strip():
                raise ValidationError(f"{field} cannot be empty")
            if field == 'status' and value not in EMPLOYER_SETTABLE_STATUSES:
                raise ValidationError("Status can only be set to open, bidding or cancelled")
            setattr(job, field, value)
            changed.append(field)

        if job.status == 'cancelled':
            job.closed_at = timezone.now()
            changed.append('closed_at')

        # Only the touched columns, so allocation/progress fields are never rewritten
        job.save(update_fields=changed + ['updated_at'])

    logger.info(f"Job {job.id} updated by user {user.id}: {', '.join(changed) or 'no changes'}")
    return get_job(job.id)


def delete_job(job_id, user):
    job = get_job(job_id)
    if not _can_manage_job(job, user):
        raise AuthorizationError("Not authorized to delete this job")
    job.delete()
    logger.info(f"Job {job_id} deleted by user {user.id}")


def _clean_bid_input(bid_amount, cover_letter):
    try:
        amount = Decimal(str(bid_amount))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError("Bid amount must be a number")
    if not amount.is_finite() or amount < 0:
        raise ValidationError("Bid amount must be a non-negative number")
    if not cover_letter or not str(cover_letter).strip():
        raise ValidationError("Please provide a cover letter")
    if len(cover_letter) > MAX_COVER_LETTER_LENGTH:
        raise ValidationError(f"Cover letter cannot exceed {MAX_COVER_LETTER_LENGTH} characters")
    return amount, cover_letter


def place_bid(job_id, freelancer, bid_amount, cover_letter):
    """
    Record a freelancer's bid on an open job.

    Checks run in a fixed order so each refusal is distinguishable: role,
    job existence, job status, deadline, allocation, duplicate bid. The job
    row is locked so a bid cannot slip in while the job is being allocated.
    """
    if not freelancer.is_freelancer:
        raise AuthorizationError("Only freelancers can place bids")

    with transaction.atomic():
        try:
            job = Job.objects.select_for_update().get(pk=job_id)
        except Job.DoesNotExist:
            raise NotFoundError("Job not found")

        if job.status in ('closed', 'cancelled'):
            raise ConflictError("This job is no longer accepting bids")
        if timezone.now() > job.bidding_deadline:
            raise ConflictError("The bidding deadline for this job has passed")
        if job.allocated_to_id is not None:
            raise ConflictError("This job has already been allocated")
        if Bid.objects.filter(job=job, freelancer=freelancer).exists():
            raise ConflictError("You have already placed a bid on this job")

        amount, cover_letter = _clean_bid_input(bid_amount, cover_letter)

        try:
            with transaction.atomic():
                bid = Bid.objects.create(
                    job=job,
                    freelancer=freelancer,
                    recruiter_id=job.posted_by_id,
                    bid_amount=amount,
                    cover_letter=cover_letter,
                )
        except IntegrityError:
            raise ConflictError("You have already placed a bid on this job")

        notify_on_commit(
            job.posted_by,
            f"New Bid for Job: {job.title}",
            (
                f"Dear {job.posted_by.display_name},\n\n"
                f"{freelancer.display_name} has placed a bid of {amount} on your job '{job.title}'.\n"
                f"Please review the bid on HireMind.\n\n"
                f"Best regards,\nHireMind Team"
            ),
            f"New bid of {amount} for '{job.title}' from {freelancer.display_name}.",
        )

    logger.info(f"Freelancer {freelancer.id} bid {amount} on job {job.id} (bid {bid.id})")
    return bid


def list_bids_for_job(job_id, user):
    job = get_job(job_id)
    if not _can_manage_job(job, user):
        raise AuthorizationError("Not authorized to view bids for this job")
    return Bid.objects.filter(job=job).select_related('freelancer', 'job')


def list_bids_for_freelancer(user):
    return Bid.objects.filter(freelancer=user).select_related('job', 'freelancer')


def list_bids_for_recruiter(user):
    return Bid.objects.filter(recruiter=user).select_related('job', 'freelancer')
