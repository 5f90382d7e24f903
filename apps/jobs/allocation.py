"""
Bid acceptance and rejection.

Accepting a bid allocates the job: the winning bid becomes ``accepted``,
every sibling bid becomes ``rejected`` and the job is bound to the winning
freelancer, all inside one transaction. The job row is locked first and the
allocation itself is a compare-and-swap on ``allocated_to IS NULL``, so of
two concurrent accepts on the same job exactly one commits and the other
gets a ConflictError.

Lock order is job row, then bid rows. ``place_bid`` also locks the job row,
so a new bid cannot land between the sibling rejection and the commit.
"""
import logging

from django.db import transaction
from django.utils import timezone

from core.exceptions import AuthorizationError, ConflictError, NotFoundError
from .models import Bid, Job
from .utils import notify_on_commit

logger = logging.getLogger(__name__)


def _get_bid(bid_id):
    try:
        return Bid.objects.select_related('job', 'freelancer').get(pk=bid_id)
    except Bid.DoesNotExist:
        raise NotFoundError("Bid not found")


def _claim_job(job_id, bid, now):
    """Bind the job to the bid's freelancer unless someone already has. Returns True on success."""
    claimed = Job.objects.filter(pk=job_id, allocated_to__isnull=True).update(
        allocated_to=bid.freelancer_id,
        allocated_at=now,
        accepted_bid=bid.id,
        status='closed',
        closed_at=now,
        updated_at=now,
    )
    return claimed == 1


def _mark_accepted(bid):
    return Bid.objects.filter(pk=bid.pk, status='pending').update(status='accepted') == 1


def _reject_siblings(job_id, bid):
    return Bid.objects.filter(job_id=job_id).exclude(pk=bid.pk).update(status='rejected')


def accept_bid(bid_id, user):
    bid = _get_bid(bid_id)

    with transaction.atomic():
        job = Job.objects.select_for_update().get(pk=bid.job_id)

        if job.posted_by_id != user.id:
            raise AuthorizationError("Not authorized to accept bids for this job")
        if job.allocated_to_id is not None:
            raise ConflictError("This job has already been allocated")
        if job.status == 'cancelled':
            raise ConflictError("Cannot accept bids on a cancelled job")

        bid.refresh_from_db(fields=['status'])
        if bid.is_terminal:
            raise ConflictError(f"This bid has already been {bid.status}")

        now = timezone.now()
        if not _claim_job(job.pk, bid, now):
            raise ConflictError("This job has already been allocated")
        if not _mark_accepted(bid):
            raise ConflictError("This bid is no longer pending")
        rejected_count = _reject_siblings(job.pk, bid)

        job.refresh_from_db()
        bid.refresh_from_db()
        _notify_allocation(job, bid)

    logger.info(
        f"Bid {bid.id} accepted: job {job.id} allocated to freelancer {bid.freelancer_id}, "
        f"{rejected_count} competing bid(s) rejected"
    )
    return bid


def reject_bid(bid_id, user):
    bid = _get_bid(bid_id)

    if bid.job.posted_by_id != user.id:
        raise AuthorizationError("Not authorized to reject bids for this job")

    if not Bid.objects.filter(pk=bid.pk, status='pending').update(status='rejected'):
        bid.refresh_from_db(fields=['status'])
        raise ConflictError(f"This bid has already been {bid.status}")

    bid.refresh_from_db()
    logger.info(f"Bid {bid.id} on job {bid.job_id} rejected by user {user.id}")
    notify_on_commit(
        bid.freelancer,
        f"Bid Rejected for {bid.job.title}",
        (
            f"Dear {bid.freelancer.display_name},\n\n"
            f"Your bid for job '{bid.job.title}' has been rejected by the employer.\n"
            f"Best regards,\nHireMind Team"
        ),
        f"Your bid for '{bid.job.title}' was rejected.",
    )
    return bid


def _notify_allocation(job, bid):
    freelancer = bid.freelancer
    employer = job.posted_by

    notify_on_commit(
        freelancer,
        f"Bid Accepted for {job.title}",
        (
            f"Dear {freelancer.display_name},\n\n"
            f"Your bid of {bid.bid_amount} for job '{job.title}' has been accepted.\n"
            f"The project is now allocated to you. Contact the employer at:\n"
            f"- Email: {employer.email or 'Not provided'}\n"
            f"- Phone: {employer.phone_number or 'Not provided'}\n\n"
            f"Best regards,\nHireMind Team"
        ),
        f"Your bid for '{job.title}' was accepted. The project is allocated to you.",
    )
    notify_on_commit(
        employer,
        f"You Allocated {job.title}",
        (
            f"Dear {employer.display_name},\n\n"
            f"You have accepted {freelancer.display_name}'s bid of {bid.bid_amount} for job '{job.title}'.\n"
            f"All other bids have been rejected and bidding is closed.\n\n"
            f"Best regards,\nHireMind Team"
        ),
        f"You accepted {freelancer.display_name}'s bid for '{job.title}'.",
    )
