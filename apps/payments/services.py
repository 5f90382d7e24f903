"""
Milestone and payment ledger.

Milestones mirror the progress ladder, one per level, each worth a fixed
share of the project total. A milestone is paid at most once: the Payment
row is one-to-one with its Milestone and that constraint, not a prior
read, is what stops a second order for the same level.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.jobs.models import Job
from apps.jobs.utils import notify_on_commit
from core.constants import PROGRESS_LEVELS
from core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from .gateways import get_gateway
from .models import Milestone, Payment

logger = logging.getLogger(__name__)

CENTS = Decimal('0.01')


def milestone_share(total, percentage):
    return (Decimal(total) * Decimal(percentage) / Decimal(100)).quantize(CENTS, rounding=ROUND_HALF_UP)


def _get_project(job_id):
    try:
        return Job.objects.select_related('posted_by', 'allocated_to', 'accepted_bid').get(pk=job_id)
    except Job.DoesNotExist:
        raise NotFoundError("Project not found")


def _check_poster(project, user, action):
    if project.posted_by_id != user.id:
        raise AuthorizationError(f"Not authorized to {action} for this project")


def _check_viewer(project, user, action):
    if not (project.is_participant(user) or user.is_admin):
        raise AuthorizationError(f"Not authorized to {action} for this project")


def _clean_level(level):
    if isinstance(level, bool):
        raise ValidationError("Invalid milestone level")
    try:
        level = int(level)
    except (TypeError, ValueError):
        raise ValidationError("Invalid milestone level")
    if level not in PROGRESS_LEVELS:
        raise ValidationError("Invalid milestone level")
    return level


def _new_milestone(project, level, total):
    progress = PROGRESS_LEVELS[level]
    reached = project.progress_level >= level
    return Milestone(
        project=project,
        level=level,
        status=progress['status'],
        percentage=progress['percentage'],
        amount=milestone_share(total, progress['percentage']),
        is_completed=reached,
        completed_at=timezone.now() if reached else None,
    )


def project_summary(project):
    return {
        'id': project.id,
        'title': project.title,
        'project_total': str(project.project_total()),
        'current_level': project.progress_level,
        'status': project.project_status,
    }


def initialize_milestones(job_id, user):
    project = _get_project(job_id)
    _check_poster(project, user, 'initialize milestones')

    with transaction.atomic():
        project = Job.objects.select_for_update().get(pk=project.pk)
        if Milestone.objects.filter(project=project).exists():
            raise ConflictError("Milestones already exist for this project")

        total = project.project_total()
        try:
            with transaction.atomic():
                milestones = Milestone.objects.bulk_create(
                    [_new_milestone(project, level, total) for level in sorted(PROGRESS_LEVELS)]
                )
        except IntegrityError:
            raise ConflictError("Milestones already exist for this project")

    logger.info(f"Initialized {len(milestones)} milestones for project {project.id} (total {total})")
    return list(Milestone.objects.filter(project=project))


def get_payable_amount(job_id, user):
    """What is due for the project's current progress level."""
    project = _get_project(job_id)
    _check_viewer(project, user, 'view payable amount')

    level = project.progress_level
    progress = PROGRESS_LEVELS[level]
    total = project.project_total()
    milestone = Milestone.objects.filter(project=project, level=level).first()
    payment = Payment.objects.filter(milestone=milestone).first() if milestone else None

    return {
        'current_level': level,
        'milestone_status': progress['status'],
        'percentage': progress['percentage'],
        'payable_amount': str(milestone_share(total, progress['percentage'])),
        'project_total': str(total),
        'milestone_payment_status': milestone.payment_status if milestone else None,
        'payment_exists': payment is not None,
        'payment_status': payment.transaction_status if payment else None,
        'is_completed': project.is_completed,
    }


def _milestone_for_payment(project, level, total):
    milestone = Milestone.objects.filter(project=project, level=level).first()
    if milestone is not None:
        return milestone
    try:
        with transaction.atomic():
            milestone = _new_milestone(project, level, total)
            milestone.save()
            return milestone
    except IntegrityError:
        return Milestone.objects.get(project=project, level=level)


def create_payment_order(job_id, level, user):
    """
    Open a gateway order for the milestone at ``level`` and record it as a CREATED payment.

    The gateway is called outside any transaction so a slow provider never
    holds a lock on the job. The one-to-one milestone constraint decides
    which of two racing orders gets recorded.
    """
    level = _clean_level(level)
    project = _get_project(job_id)
    _check_poster(project, user, 'create payment')
    if project.allocated_to_id is None:
        raise ConflictError("Project is not allocated to any freelancer")

    total = project.project_total()
    milestone = Milestone.objects.filter(project=project, level=level).first()
    if milestone is not None and Payment.objects.filter(milestone=milestone).exists():
        raise ConflictError("Payment already created for this milestone")

    percentage = milestone.percentage if milestone else PROGRESS_LEVELS[level]['percentage']
    amount = milestone_share(total, percentage)
    currency = settings.PAYMENT_CURRENCY
    order = get_gateway().create_order(
        amount,
        currency,
        receipt=f"project-{project.id}-level-{level}",
        notes={'project_id': project.id, 'milestone_level': level},
    )

    try:
        with transaction.atomic():
            milestone = _milestone_for_payment(project, level, total)
            payment = Payment.objects.create(
                project=project,
                milestone=milestone,
                recruiter=user,
                freelancer_id=project.allocated_to_id,
                amount=amount,
                currency=currency,
                gateway_order_id=order.id,
                transaction_status='CREATED',
            )
    except IntegrityError:
        logger.warning(f"Gateway order {order.id} discarded: milestone {level} of project {project.id} already has a payment")
        raise ConflictError("Payment already created for this milestone")

    logger.info(
        f"Payment order {order.id} created for project {project.id} level {level}: {amount} {currency}"
    )
    return {
        'payment': payment,
        'order': order,
        'milestone': milestone,
        'project': project_summary(project),
    }


def list_project_payments(job_id, user):
    project = _get_project(job_id)
    _check_viewer(project, user, 'view payments')
    return {
        'project': project_summary(project),
        'milestones': Milestone.objects.filter(project=project).order_by('level'),
        'payments': Payment.objects.filter(project=project).select_related(
            'milestone', 'recruiter', 'freelancer'
        ).order_by('created_at'),
    }


def confirm_payment_order(payment_id, user):
    """
    Ask the gateway whether the order was paid and settle the ledger.

    SUCCESS marks the milestone PAID; FAILED is recorded as is; an order the
    gateway still reports as pending is returned unchanged.
    """
    try:
        payment = Payment.objects.select_related('project', 'milestone', 'freelancer').get(pk=payment_id)
    except Payment.DoesNotExist:
        raise NotFoundError("Payment not found")

    if payment.project.posted_by_id != user.id:
        raise AuthorizationError("Not authorized to confirm this payment")
    if payment.is_terminal:
        raise ConflictError(f"Payment already {payment.transaction_status.lower()}")

    outcome, gateway_payment_id = get_gateway().confirm_order(payment.gateway_order_id)
    if outcome not in ('SUCCESS', 'FAILED'):
        logger.info(f"Payment order {payment.gateway_order_id} still pending at the gateway")
        return payment

    with transaction.atomic():
        settled = Payment.objects.filter(pk=payment.pk, transaction_status='CREATED').update(
            transaction_status=outcome,
            gateway_payment_id=gateway_payment_id,
            updated_at=timezone.now(),
        )
        if not settled:
            raise ConflictError("Payment was settled by another request")

        if outcome == 'SUCCESS':
            Milestone.objects.filter(pk=payment.milestone_id).update(
                payment_status='PAID', updated_at=timezone.now()
            )
            notify_on_commit(
                payment.freelancer,
                f"Payment Received for {payment.project.title}",
                (
                    f"Dear {payment.freelancer.display_name},\n\n"
                    f"A payment of {payment.amount} {payment.currency} for milestone "
                    f"'{payment.milestone.status}' on '{payment.project.title}' has been confirmed.\n\n"
                    f"Best regards,\nHireMind Team"
                ),
                f"Payment of {payment.amount} {payment.currency} confirmed for '{payment.project.title}'.",
            )

    payment.refresh_from_db()
    payment.milestone.refresh_from_db()
    if outcome == 'SUCCESS':
        logger.info(f"Payment {payment.id} ({payment.gateway_order_id}) confirmed")
    else:
        logger.warning(f"Payment {payment.id} ({payment.gateway_order_id}) failed at the gateway")
    return payment
