"""
Progress tracking for allocated jobs.

A project is a Job once it has been allocated; there is no separate table.
Progress only ever moves forward along ``PROGRESS_LEVELS`` and only the
allocated freelancer can move it.
"""
import logging

from django.db import transaction
from django.utils import timezone

from apps.jobs.models import Job
from apps.jobs.utils import notify_on_commit
from apps.payments.models import Milestone
from core.constants import FINAL_PROGRESS_LEVEL, PROGRESS_LEVELS
from core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

RECENT_PROJECTS_LIMIT = 10


def _projects():
    return Job.objects.filter(status='closed', allocated_to__isnull=False).select_related(
        'posted_by', 'allocated_to', 'accepted_bid'
    ).order_by('-allocated_at')


def get_progress_levels():
    return PROGRESS_LEVELS


def get_project(job_id, user):
    try:
        project = Job.objects.select_related('posted_by', 'allocated_to', 'accepted_bid').get(pk=job_id)
    except Job.DoesNotExist:
        raise NotFoundError("Project not found")
    if not (project.is_participant(user) or user.is_admin):
        raise AuthorizationError("Not authorized to view this project")
    return project


def list_freelancer_active_projects(user):
    return _projects().filter(allocated_to=user, progress_level__lt=FINAL_PROGRESS_LEVEL)


def list_freelancer_recent_projects(user):
    return _projects().filter(allocated_to=user)[:RECENT_PROJECTS_LIMIT]


def list_recruiter_active_projects(user):
    return _projects().filter(posted_by=user, progress_level__lt=FINAL_PROGRESS_LEVEL)


def _clean_level(new_level):
    if isinstance(new_level, bool):
        raise ValidationError("Invalid progress level")
    try:
        level = int(new_level)
    except (TypeError, ValueError):
        raise ValidationError("Invalid progress level")
    if str(level) != str(new_level).strip() or level not in PROGRESS_LEVELS:
        raise ValidationError("Invalid progress level")
    return level


def update_progress(job_id, user, new_level):
    """
    Advance an allocated job to ``new_level``.

    The write is a single UPDATE guarded on ``progress_level < new_level``,
    so two concurrent updates can never move progress backwards.
    """
    try:
        job = Job.objects.select_related('posted_by').get(pk=job_id)
    except Job.DoesNotExist:
        raise NotFoundError("Project not found")

    if job.allocated_to_id is None:
        raise AuthorizationError("Project is not allocated to any freelancer")
    if job.allocated_to_id != user.id:
        raise AuthorizationError(
            "Not authorized to update this project. This project is allocated to another freelancer."
        )
    level = _clean_level(new_level)
    if job.progress_level >= FINAL_PROGRESS_LEVEL:
        raise ConflictError("Project is already completed")
    if level <= job.progress_level:
        raise ConflictError("Cannot move backwards in progress")

    progress = PROGRESS_LEVELS[level]
    now = timezone.now()
    with transaction.atomic():
        updated = Job.objects.filter(
            pk=job.pk, allocated_to=user, progress_level__lt=level
        ).update(
            progress_level=level,
            completion_percentage=progress['percentage'],
            project_status=progress['status'],
            updated_at=now,
        )
        if not updated:
            raise ConflictError("Cannot move backwards in progress")
        Milestone.objects.filter(project_id=job.pk, level__lte=level, is_completed=False).update(
            is_completed=True, completed_at=now
        )

    job.refresh_from_db()
    logger.info(f"Project {job.id} moved to level {level} ({progress['status']}) by freelancer {user.id}")

    notify_on_commit(
        job.posted_by,
        f"Progress Update for {job.title}",
        (
            f"Dear {job.posted_by.display_name},\n\n"
            f"{user.display_name} has updated '{job.title}' to '{progress['status']}' "
            f"({progress['percentage']}% complete).\n\n"
            f"Best regards,\nHireMind Team"
        ),
        f"'{job.title}' is now {progress['percentage']}% complete.",
    )
    return job
