# circles/tasks.py - scheduled and on-demand reminder tasks

from celery import shared_task
from django.contrib.auth.models import User
from django.core.exceptions import PermissionDenied
from django.utils import timezone
from datetime import timedelta
import logging

from .exceptions import CircleError
from .models import Group, PaymentCycle
from .services import ReminderService

logger = logging.getLogger(__name__)


@shared_task(name='circles.send_due_date_reminders')
def send_due_date_reminders():
    """
    Remind unpaid members of cycles due today or tomorrow.

    Schedule: Daily at 8:00 AM

    Reminders go out in the president's name and respect the reminder
    window, so a member reminded by hand within the hour is skipped.
    """
    logger.info("TASK: send_due_date_reminders - STARTED")

    today = timezone.now().date()
    cycles = PaymentCycle.objects.filter(
        status='active',
        due_date__in=[today, today + timedelta(days=1)],
        group__archived_at__isnull=True,
    ).select_related('group', 'group__president')

    reminded = skipped = failed = 0
    for cycle in cycles:
        group = cycle.group
        try:
            result = ReminderService.remind_all(group, group.president)
            reminded += result['reminded']
            skipped += result['skipped']
        except (CircleError, PermissionDenied) as e:
            failed += 1
            logger.error(f"Due date reminders failed for group {group.id}: {str(e)}")

    logger.info(
        f"TASK: send_due_date_reminders - COMPLETED: {reminded} reminded, "
        f"{skipped} skipped, {failed} group(s) failed"
    )
    return {'reminded': reminded, 'skipped': skipped, 'failed': failed}


@shared_task(name='circles.remind_unpaid_members')
def remind_unpaid_members(group_id, actor_id):
    """Bulk reminder for one group, run off the request cycle"""
    try:
        group = Group.objects.get(pk=group_id)
        actor = User.objects.get(pk=actor_id)
    except (Group.DoesNotExist, User.DoesNotExist):
        logger.warning(f"remind_unpaid_members: group {group_id} or user {actor_id} no longer exists")
        return {'reminded': 0, 'skipped': 0}

    result = ReminderService.remind_all(group, actor)
    return {'reminded': result['reminded'], 'skipped': result['skipped']}
