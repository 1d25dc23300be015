from django.db import transaction
from django.db.models.signals import post_save
from django.dispatch import receiver

from notifications.channels import get_push_channel
from .models import PaymentLog
import logging

logger = logging.getLogger(__name__)


def payment_log_payload(log, group_id):
    return {
        'kind': 'payment_log',
        'id': str(log.id),
        'cycle_id': str(log.cycle_id),
        'member_id': str(log.member_id),
        'group_id': str(group_id),
        'status': log.status,
        'marked_at': log.marked_at.isoformat() if log.marked_at else None,
        'verified_at': log.verified_at.isoformat() if log.verified_at else None,
        'reminder_count': log.reminder_count,
    }


@receiver(post_save, sender=PaymentLog)
def publish_payment_log_change(sender, instance, created, **kwargs):
    """
    Tell sessions watching the log or its group that the row changed.
    Published after commit, so a rolled back change is never announced.
    """
    group_id = instance.cycle.group_id
    payload = payment_log_payload(instance, group_id)

    def publish():
        delivered = get_push_channel().publish(payload, group_id=group_id, log_id=str(instance.id))
        logger.debug(f"Payment log {instance.id} change pushed to {delivered} subscriber(s)")

    transaction.on_commit(publish)
