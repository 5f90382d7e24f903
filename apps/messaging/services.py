"""
Job-scoped messaging between an employer and the freelancer a job was
allocated to. Nobody else can read or write a conversation, and there is
no conversation before allocation.
"""
import logging

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from apps.jobs.models import Job
from core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from .models import MAX_MESSAGE_LENGTH, Message
from .signals import message_sent

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200
MESSAGE_TYPES = ('text', 'file', 'image')


def _get_conversation_job(job_id, user):
    try:
        job = Job.objects.select_related('posted_by', 'allocated_to').get(pk=job_id)
    except Job.DoesNotExist:
        raise NotFoundError("Job not found")
    if not job.is_participant(user):
        raise AuthorizationError("Not authorized to view messages for this job")
    if job.allocated_to_id is None:
        raise ConflictError("Messaging is only available after job allocation")
    return job


def _mark_read(job, user, other):
    return Message.objects.filter(
        job=job, sender=other, receiver=user, is_read=False, is_deleted=False
    ).update(is_read=True, read_at=timezone.now())


def get_conversations(user):
    jobs = Job.objects.filter(
        Q(posted_by=user, allocated_to__isnull=False) | Q(allocated_to=user)
    ).select_related('posted_by', 'allocated_to', 'accepted_bid').order_by('-updated_at')

    conversations = []
    for job in jobs:
        other = job.counterpart_of(user)
        latest = Message.between(job.id, user.id, other.id).select_related('sender').order_by('-timestamp', '-id').first()
        unread = Message.objects.filter(
            job=job, sender=other, receiver=user, is_read=False, is_deleted=False
        ).count()
        conversations.append({
            'job': job,
            'other_user': other,
            'latest_message': latest,
            'unread_count': unread,
            'allocated_at': job.allocated_at,
            'bid_amount': job.accepted_bid.bid_amount if job.accepted_bid_id else None,
        })
    return conversations


def _page_bounds(limit, skip):
    try:
        limit = int(limit) if limit not in (None, '') else DEFAULT_PAGE_SIZE
        skip = int(skip) if skip not in (None, '') else 0
    except (TypeError, ValueError):
        raise ValidationError("limit and skip must be whole numbers")
    if limit < 1 or skip < 0:
        raise ValidationError("limit must be positive and skip cannot be negative")
    return min(limit, MAX_PAGE_SIZE), skip


def get_job_messages(job_id, user, limit=DEFAULT_PAGE_SIZE, skip=0):
    """
    Conversation history for a job, oldest first.

    ``limit``/``skip`` page backwards from the newest message. Reading the
    history marks the counterpart's messages as read.
    """
    limit, skip = _page_bounds(limit, skip)
    job = _get_conversation_job(job_id, user)
    other = job.counterpart_of(user)

    newest_first = Message.between(job.id, user.id, other.id).select_related(
        'sender', 'receiver'
    ).order_by('-timestamp', '-id')[skip:skip + limit]
    messages = list(reversed(list(newest_first)))

    marked = _mark_read(job, user, other)
    if marked:
        logger.info(f"Marked {marked} message(s) read for user {user.id} on job {job.id}")
    return messages


def send_message(job_id, user, receiver_id, content, message_type='text'):
    job = _get_conversation_job(job_id, user)
    other = job.counterpart_of(user)

    try:
        receiver_id = int(receiver_id)
    except (TypeError, ValueError):
        raise ValidationError("Can only message the other party in this job")
    if receiver_id != other.id:
        raise ValidationError("Can only message the other party in this job")

    content = (content or '').strip()
    if not content:
        raise ValidationError("Message content is required")
    if len(content) > MAX_MESSAGE_LENGTH:
        raise ValidationError(f"Message cannot exceed {MAX_MESSAGE_LENGTH} characters")
    if message_type not in MESSAGE_TYPES:
        raise ValidationError(f"message_type must be one of: {', '.join(MESSAGE_TYPES)}")

    with transaction.atomic():
        message = Message.objects.create(
            job=job,
            sender=user,
            receiver=other,
            content=content,
            message_type=message_type,
        )
        transaction.on_commit(lambda: message_sent.send(sender=Message, message=message), robust=True)

    return message


def mark_conversation_read(job_id, user):
    job = _get_conversation_job(job_id, user)
    return _mark_read(job, user, job.counterpart_of(user))


def get_unread_count(user):
    return Message.objects.filter(receiver=user, is_read=False, is_deleted=False).count()
