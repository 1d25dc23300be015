from datetime import timedelta

from django.db import transaction
from django.db.models import F, Q
from django.utils import timezone
from constance import config

from notifications.helpers import NotificationHelper
from notifications.utils import log_activity, get_user_display_name
from ..exceptions import StateConflict
from ..models import PaymentLog
from ..permissions import require_group_admin
from .cycle_service import CycleService

import logging
logger = logging.getLogger(__name__)


ALREADY_REMINDED = 'already_reminded_recently'


class ReminderService:
    """Payment reminders for members who have not paid in the active cycle"""

    @staticmethod
    def _window():
        return timedelta(minutes=config.CIRCLES_REMINDER_WINDOW_MINUTES)

    @staticmethod
    def _send(log, group, actor, now):
        """
        Record one reminder on log unless it was reminded inside the window.

        The counter and timestamp only move through a conditional update, so
        two reminders racing for the same log increment it once.
        """
        cutoff = now - ReminderService._window()
        updated = (
            PaymentLog.objects.filter(pk=log.pk, status__in=PaymentLog.OUTSTANDING_STATUSES)
            .filter(Q(last_reminded_at__isnull=True) | Q(last_reminded_at__lte=cutoff))
            .update(reminder_count=F('reminder_count') + 1, last_reminded_at=now)
        )
        if not updated:
            return False

        log.reminder_count += 1
        log.last_reminded_at = now
        member = log.member
        log_activity(
            group,
            'member_reminded',
            actor=actor,
            target=member.user,
            metadata={'log_id': str(log.id), 'reminder_count': log.reminder_count},
        )
        NotificationHelper.notify_payment_reminder(member, group)
        return True

    @staticmethod
    @transaction.atomic
    def remind_member(log_id, actor):
        """
        Remind the owner of an unpaid or rejected log.

        A reminder inside the rolling window is not an error: the result says
        'already_reminded_recently' and nothing changes.
        """
        log = CycleService._get_log(log_id, lock=False)
        group = log.member.group
        require_group_admin(group, actor)
        CycleService._require_open(log.cycle)
        if not log.is_outstanding:
            raise StateConflict(f'No reminder needed: this payment is {log.get_status_display().lower()}')

        name = get_user_display_name(log.member.user, fallback='Member')
        if not ReminderService._send(log, group, actor, timezone.now()):
            logger.info(f"Reminder for payment log {log.id} skipped: reminded within the window")
            return {
                'reminded': False,
                'reason': ALREADY_REMINDED,
                'message': f'{name} was already reminded in the last {config.CIRCLES_REMINDER_WINDOW_MINUTES} minutes',
            }

        logger.info(f"Reminder #{log.reminder_count} sent for payment log {log.id}")
        return {
            'reminded': True,
            'reminder_count': log.reminder_count,
            'message': f'Reminder sent to {name}',
        }

    @staticmethod
    @transaction.atomic
    def remind_all(group, actor):
        """Remind every outstanding log of the active cycle; returns reminded/skipped counts"""
        require_group_admin(group, actor)
        cycle = group.get_active_cycle()
        if cycle is None:
            raise StateConflict('There is no active payment cycle')

        now = timezone.now()
        logs = (
            PaymentLog.objects.filter(cycle=cycle, status__in=PaymentLog.OUTSTANDING_STATUSES)
            .select_related('member', 'member__user')
        )

        reminded = skipped = 0
        for log in logs:
            if ReminderService._send(log, group, actor, now):
                reminded += 1
            else:
                skipped += 1

        if reminded:
            log_activity(
                group,
                'reminder_sent',
                actor=actor,
                metadata={'cycle_id': str(cycle.id), 'reminded': reminded, 'skipped': skipped},
            )

        logger.info(f"Bulk reminders for cycle {cycle.id}: {reminded} sent, {skipped} skipped")
        if reminded == 0 and skipped == 0:
            message = 'Everyone has paid. No reminders needed.'
        elif reminded == 0:
            message = f'All {skipped} unpaid member(s) were reminded recently'
        else:
            message = f'Reminders sent to {reminded} member(s)'
            if skipped:
                message += f' ({skipped} reminded recently)'

        return {'reminded': reminded, 'skipped': skipped, 'message': message}
