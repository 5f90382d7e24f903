from django.dispatch import Signal, receiver
import logging

logger = logging.getLogger(__name__)

# Sent after a message is committed; real-time transports (websocket push,
# mobile notifications) connect here. Receivers get ``message``.
message_sent = Signal()


@receiver(message_sent)
def log_message_sent(sender, message, **kwargs):
    logger.info(
        f"Message {message.id} on job {message.job_id} delivered from user {message.sender_id} "
        f"to user {message.receiver_id}"
    )
