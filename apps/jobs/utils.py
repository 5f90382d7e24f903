import logging
import re
from datetime import timedelta
from functools import partial

from django.conf import settings
from django.core.mail import send_mail
from django.db import transaction
from django.utils import timezone
from django.utils.dateparse import parse_datetime
from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client as TwilioClient

from core.constants import MIN_BIDDING_DURATION, MAX_BIDDING_DURATION
from core.exceptions import ValidationError

logger = logging.getLogger(__name__)


def resolve_bidding_deadline(deadline=None, duration=None, now=None):
    """
    Work out the bidding deadline for a job.

    An explicit deadline wins and must be strictly in the future. Otherwise
    ``duration`` hours (1-720) are added to now, defaulting to
    ``settings.DEFAULT_BIDDING_DURATION``.

    Returns:
        (deadline, duration_in_hours); duration is None when an explicit
        deadline was given.
    """
    now = now or timezone.now()

    if deadline not in (None, ''):
        if isinstance(deadline, str):
            try:
                parsed = parse_datetime(deadline)
            except ValueError:
                parsed = None
            if parsed is None:
                raise ValidationError("Bidding deadline must be a valid future date")
            deadline = parsed
        if timezone.is_naive(deadline):
            deadline = timezone.make_aware(deadline)
        if deadline <= now:
            raise ValidationError("Bidding deadline must be a valid future date")
        return deadline, None

    if duration in (None, ''):
        duration = settings.DEFAULT_BIDDING_DURATION
    try:
        duration = int(duration)
    except (TypeError, ValueError):
        raise ValidationError("Bidding duration must be a whole number of hours")
    if duration < MIN_BIDDING_DURATION or duration > MAX_BIDDING_DURATION:
        raise ValidationError(
            f"Bidding duration must be between {MIN_BIDDING_DURATION} and "
            f"{MAX_BIDDING_DURATION} hours (30 days)"
        )
    return now + timedelta(hours=duration), duration


def send_notification(user, subject, email_message, sms_message):
    """
    Send notifications to users via email and SMS.

    Delivery failures are logged and swallowed: a notification never
    decides the outcome of the request that triggered it.

    Args:
        user: User object to send notification to
        subject: Email subject
        email_message: Email message content
        sms_message: SMS message content
    """
    if user is None:
        return

    if user.email:
        try:
            send_mail(
                subject=subject,
                message=email_message,
                from_email=settings.DEFAULT_FROM_EMAIL,
                recipient_list=[user.email],
                fail_silently=False,
            )
            logger.info(f"Email notification sent to user {user.id}")
        except Exception as e:
            logger.error(f"Failed to send email to {user.email}: {str(e)}")

    if user.phone_number and settings.TWILIO_ACCOUNT_SID:
        if not re.match(r'^\+\d{9,15}$', user.phone_number):
            logger.warning(f"Invalid phone number format for user {user.id}: {user.phone_number}")
            return
        try:
            twilio_client = TwilioClient(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN)
            twilio_client.messages.create(
                body=sms_message,
                from_=settings.TWILIO_PHONE_NUMBER,
                to=user.phone_number
            )
            logger.info(f"SMS notification sent to user {user.id}")
        except TwilioRestException as e:
            logger.error(f"Twilio rejected SMS to {user.phone_number}: {str(e)}")
        except Exception as e:
            logger.error(f"Failed to send SMS to {user.phone_number}: {str(e)}")


def notify_on_commit(user, subject, email_message, sms_message):
    """Queue ``send_notification`` to run only if the surrounding transaction commits."""
    transaction.on_commit(
        partial(send_notification, user, subject, email_message, sms_message), robust=True
    )
