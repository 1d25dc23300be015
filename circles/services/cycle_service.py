from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Count
from django.utils import timezone
from constance import config

from notifications.helpers import NotificationHelper
from notifications.utils import log_activity, get_user_display_name
from ..exceptions import InvalidInput, NotFound, StateConflict
from ..models import Group, Member, PaymentCycle, PaymentLog
from ..permissions import require_group_admin, require_member_owner, get_group_admins
from ..rate_limit import get_rate_limiter
from .queue_service import QueueService

import logging
logger = logging.getLogger(__name__)


class CycleService:
    """
    Payment cycles and the payment logs inside them.

    A cycle goes active -> closed and never back. Logs move
    unpaid -> pending -> verified, with pending -> rejected -> pending as the
    re-submission loop; nothing moves once the cycle is closed.
    """

    @staticmethod
    def _get_log(log_id, lock=True):
        queryset = PaymentLog.objects.select_related('cycle', 'member', 'member__user', 'member__group')
        if lock:
            queryset = queryset.select_for_update()
        try:
            return queryset.get(pk=log_id)
        except (PaymentLog.DoesNotExist, ValidationError, ValueError):
            raise NotFound('Payment log not found')

    @staticmethod
    def _get_cycle(cycle_id, lock=True):
        queryset = PaymentCycle.objects.select_related('group')
        if lock:
            queryset = queryset.select_for_update()
        try:
            return queryset.get(pk=cycle_id)
        except (PaymentCycle.DoesNotExist, ValidationError, ValueError):
            raise NotFound('Payment cycle not found')

    @staticmethod
    def _require_open(cycle):
        if cycle.status != 'active':
            raise StateConflict('This payment cycle is closed')

    @staticmethod
    @transaction.atomic
    def start_cycle(group, actor, start_date, due_date):
        """
        Open a new cycle and snapshot the active members into unpaid logs.

        Members who join later get their log at join time; locked members get
        none. Starting with nobody active still creates the cycle and reports
        a warning.
        """
        require_group_admin(group, actor)

        if start_date >= due_date:
            raise InvalidInput('Start date must be before due date',
                               errors={'due_date': ['Due date must be after the start date']})

        group = Group.objects.select_for_update().get(pk=group.pk)
        if group.is_archived:
            raise StateConflict('Archived groups cannot start a payment cycle')
        if PaymentCycle.objects.filter(group=group, status='active').exists():
            raise StateConflict('A payment cycle is already active')

        cycle = PaymentCycle.objects.create(
            group=group,
            start_date=start_date,
            due_date=due_date,
            status='active',
        )

        members = list(group.get_active_members().select_related('user'))
        PaymentLog.objects.bulk_create([
            PaymentLog(cycle=cycle, member=member, status='unpaid')
            for member in members
        ])

        warning = None
        if not members:
            warning = 'No active members to create payment logs for'
            logger.warning(f"Cycle {cycle.id} started in group {group.id} with no active members")
        else:
            logger.info(f"Cycle {cycle.id} started in group {group.id} with {len(members)} payment log(s)")

        log_activity(
            group,
            'cycle_started',
            actor=actor,
            metadata={
                'cycle_id': str(cycle.id),
                'start_date': start_date.isoformat(),
                'due_date': due_date.isoformat(),
                'member_count': len(members),
            },
        )
        NotificationHelper.notify_cycle_started(members, group, cycle)

        return {
            'cycle': cycle,
            'payment_logs_created': len(members),
            'warning': warning,
            'message': f'Payment cycle started. {len(members)} member(s) owe a contribution by {due_date:%b %d, %Y}.',
        }

    @staticmethod
    @transaction.atomic
    def mark_as_sent(log_id, user, rate_limiter=None):
        """Owner reports their contribution as sent; the admins are pinged"""
        log = CycleService._get_log(log_id)
        require_member_owner(log.member, user)
        get_rate_limiter(rate_limiter).enforce(user.pk, 'mark_payment')
        CycleService._require_open(log.cycle)
        if not log.is_outstanding:
            raise StateConflict(f'Cannot mark a {log.get_status_display().lower()} payment as sent')

        log.status = 'pending'
        log.marked_at = timezone.now()
        log.save(update_fields=['status', 'marked_at'])
        logger.info(f"Payment log {log.id} marked as sent by {user.username}")

        group = log.member.group
        log_activity(
            group,
            'payment_marked_sent',
            actor=user,
            metadata={'log_id': str(log.id), 'cycle_id': str(log.cycle_id)},
        )

        admins = get_group_admins(group)
        member = log.member
        transaction.on_commit(lambda: NotificationHelper.notify_payment_pending(member, group, admins))
        return log

    @staticmethod
    def _review(log_id, actor, approve, rate_limiter=None):
        log = CycleService._get_log(log_id)
        group = log.member.group
        require_group_admin(group, actor)
        get_rate_limiter(rate_limiter).enforce(actor.pk, 'verify_payment')
        CycleService._require_open(log.cycle)
        if log.status != 'pending':
            raise StateConflict(
                f'Only pending payments can be reviewed; this one is {log.get_status_display().lower()}'
            )

        member = log.member
        if approve:
            log.status = 'verified'
            log.verified_at = timezone.now()
            log.save(update_fields=['status', 'verified_at'])
            Member.objects.filter(pk=member.pk).update(missed_payment_count=0, updated_at=timezone.now())
            member.missed_payment_count = 0
            action, notify = 'payment_verified', NotificationHelper.notify_payment_verified
        else:
            log.status = 'rejected'
            log.save(update_fields=['status'])
            action, notify = 'payment_rejected', NotificationHelper.notify_payment_rejected

        logger.info(f"Payment log {log.id} {log.status} by {actor.username}")
        log_activity(
            group,
            action,
            actor=actor,
            target=member.user,
            metadata={'log_id': str(log.id), 'cycle_id': str(log.cycle_id)},
        )
        notify(member, group)
        return log

    @staticmethod
    @transaction.atomic
    def verify_payment(log_id, actor, rate_limiter=None):
        """Admin confirms a pending payment; the member's missed count resets"""
        return CycleService._review(log_id, actor, approve=True, rate_limiter=rate_limiter)

    @staticmethod
    @transaction.atomic
    def reject_payment(log_id, actor, rate_limiter=None):
        """Admin sends a pending payment back; the member may mark it again"""
        return CycleService._review(log_id, actor, approve=False, rate_limiter=rate_limiter)

    @staticmethod
    @transaction.atomic
    def close_cycle(cycle_id, actor):
        """
        Close an active cycle and charge every unpaid or rejected log as a
        missed payment.

        Runs under a row lock on the cycle. Members reaching the lock
        threshold leave the active queue, which is then compacted. The final
        status flip only succeeds from 'active', so a second close of the same
        cycle fails and rolls back instead of counting twice.
        """
        cycle = CycleService._get_cycle(cycle_id)
        group = cycle.group
        require_group_admin(group, actor)
        if cycle.status != 'active':
            raise StateConflict('Payment cycle is already closed')

        threshold = config.CIRCLES_LOCK_THRESHOLD
        now = timezone.now()

        outstanding = list(
            PaymentLog.objects.filter(cycle=cycle, status__in=PaymentLog.OUTSTANDING_STATUSES)
            .select_related('member', 'member__user')
        )

        locked = []
        for log in outstanding:
            member = log.member
            member.missed_payment_count += 1
            if member.missed_payment_count >= threshold and member.status != 'locked':
                member.status = 'locked'
                locked.append(member)
            Member.objects.filter(pk=member.pk).update(
                missed_payment_count=member.missed_payment_count,
                status=member.status,
                updated_at=now,
            )

        closed = PaymentCycle.objects.filter(pk=cycle.pk, status='active').update(
            status='closed', closed_at=now
        )
        if closed != 1:
            raise StateConflict('Payment cycle is already closed')

        if locked:
            QueueService.compact(group)

        missed_count = len(outstanding)
        if missed_count:
            message = (
                f'{missed_count} missed payment(s) recorded. '
                f'{len(locked)} member(s) locked due to {threshold}+ missed payments'
            )
        else:
            message = 'All payments were verified!'

        logger.info(f"Cycle {cycle.id} closed in group {group.id}: {message}")

        log_activity(
            group,
            'cycle_closed',
            actor=actor,
            metadata={
                'cycle_id': str(cycle.id),
                'missed_payments': missed_count,
                'locked_members': [str(m.id) for m in locked],
            },
        )
        for member in locked:
            log_activity(
                group,
                'member_locked',
                actor=actor,
                target=member.user,
                metadata={'missed_payment_count': member.missed_payment_count},
            )
            NotificationHelper.notify_member_locked(member, group)

        participants = [
            log.member for log in cycle.payment_logs.select_related('member', 'member__user')
        ]
        NotificationHelper.notify_cycle_closed(participants, group, missed_count, len(locked))

        return {
            'cycle_id': str(cycle.id),
            'missed_payments': missed_count,
            'locked_member_ids': [str(m.id) for m in locked],
            'locked_count': len(locked),
            'message': message,
        }

    @staticmethod
    @transaction.atomic
    def restore_member(member_id, actor):
        """Bring a locked member back at the end of the queue with a clean record"""
        try:
            member = Member.objects.select_for_update().select_related('user', 'group').get(pk=member_id)
        except (Member.DoesNotExist, ValidationError, ValueError):
            raise NotFound('Member not found')

        group = member.group
        require_group_admin(group, actor)
        if member.status != 'locked':
            raise StateConflict('Only locked members can be restored')

        position = QueueService.append(member)
        logger.info(f"Member {member.id} restored in group {group.id} at position {position}")

        log_activity(group, 'member_restored', actor=actor, target=member.user,
                     metadata={'queue_position': position})
        NotificationHelper.notify_member_restored(member, group)

        name = get_user_display_name(member.user, fallback='Member')
        return {
            'member': member,
            'queue_position': position,
            'message': f'{name} has been restored to position #{position}',
        }

    @staticmethod
    def get_cycle_status(group):
        """
        Read model of the group's active cycle: every log with the member's
        display name and per-status totals. Missing profile data degrades to
        a placeholder name instead of failing.
        """
        cycle = group.get_active_cycle()
        if cycle is None:
            return {'cycle': None, 'logs': [], 'totals': {}}

        logs = list(
            cycle.payment_logs.select_related('member', 'member__user')
            .order_by('member__queue_position', 'created_at')
        )
        totals = {code: 0 for code, _ in PaymentLog.STATUS_CHOICES}
        for row in cycle.payment_logs.values('status').annotate(count=Count('id')):
            totals[row['status']] = row['count']

        return {
            'cycle': {
                'id': str(cycle.id),
                'start_date': cycle.start_date.isoformat(),
                'due_date': cycle.due_date.isoformat(),
                'days_until_due': cycle.days_until_due(),
                'status': cycle.status,
            },
            'logs': [
                {
                    'id': str(log.id),
                    'member_id': str(log.member_id),
                    'user_id': log.member.user_id,
                    'name': get_user_display_name(log.member.user),
                    'queue_position': log.member.queue_position,
                    'status': log.status,
                    'marked_at': log.marked_at.isoformat() if log.marked_at else None,
                    'verified_at': log.verified_at.isoformat() if log.verified_at else None,
                    'reminder_count': log.reminder_count,
                    'last_reminded_at': log.last_reminded_at.isoformat() if log.last_reminded_at else None,
                }
                for log in logs
            ],
            'totals': totals,
        }

    @staticmethod
    def get_cycle_history(group, limit=12):
        """Closed cycles, newest first, with verified/missed counts"""
        cycles = (
            PaymentCycle.objects.filter(group=group, status='closed')
            .order_by('-closed_at')[:limit]
        )
        history = []
        for cycle in cycles:
            counts = {row['status']: row['count']
                      for row in cycle.payment_logs.values('status').annotate(count=Count('id'))}
            history.append({
                'id': str(cycle.id),
                'start_date': cycle.start_date.isoformat(),
                'due_date': cycle.due_date.isoformat(),
                'closed_at': cycle.closed_at.isoformat() if cycle.closed_at else None,
                'verified': counts.get('verified', 0),
                'missed': sum(counts.get(s, 0) for s in PaymentLog.OUTSTANDING_STATUSES),
            })
        return history
