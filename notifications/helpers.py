"""
Convenience helpers for the notifications circle events produce.

Usage:
    from notifications.helpers import NotificationHelper

    NotificationHelper.notify_payment_verified(member=member, group=group)

Every method builds the title/message text once and hands it to
create_notification() (persisted + pushed) or push_notification()
(push only).
"""

from constance import config

from .utils import create_notification, notify_users, push_notification, get_user_display_name
from .types import NotificationMessage
import logging

logger = logging.getLogger(__name__)


def format_amount(amount):
    return f"{config.CIRCLES_CURRENCY_SYMBOL}{amount:,.2f}".replace('.00', '')


class NotificationHelper:
    """Standardized notifications for group events"""

    @staticmethod
    def notify_payment_reminder(member, group):
        return create_notification(
            user=member.user,
            group=group,
            notification_type='payment_reminder',
            title='Payment Reminder',
            message=(
                f"The president of {group.name} is reminding you that your "
                f"{format_amount(group.contribution_amount)} contribution is due."
            ),
        )

    @staticmethod
    def notify_payment_pending(member, group, admins):
        """Transient heads-up to the group's admins; not stored"""
        name = get_user_display_name(member.user, fallback='A member')
        delivered = 0
        for admin in admins:
            delivered += push_notification(NotificationMessage(
                notification_type='payment_pending',
                title='Payment Marked as Sent',
                message=(
                    f"{name} marked their {format_amount(group.contribution_amount)} "
                    f"payment as sent in {group.name}"
                ),
                user_id=admin.pk,
                group_id=group.pk,
                group_name=group.name,
            ))
        return delivered

    @staticmethod
    def notify_payment_verified(member, group):
        return create_notification(
            user=member.user,
            group=group,
            notification_type='payment_verified',
            title='Payment Verified',
            message=f"Your {format_amount(group.contribution_amount)} payment was verified in {group.name}",
        )

    @staticmethod
    def notify_payment_rejected(member, group):
        return create_notification(
            user=member.user,
            group=group,
            notification_type='payment_rejected',
            title='Payment Rejected',
            message=(
                f"Your {format_amount(group.contribution_amount)} payment was rejected "
                f"in {group.name}. Please re-submit."
            ),
        )

    @staticmethod
    def notify_cycle_started(members, group, cycle):
        return notify_users(
            [member.user for member in members],
            notification_type='cycle_started',
            title=f'New Payment Cycle in {group.name}',
            message=(
                f"A new payment cycle has started. Your {format_amount(group.contribution_amount)} "
                f"contribution is due by {cycle.due_date:%b %d, %Y}."
            ),
            group=group,
        )

    @staticmethod
    def notify_cycle_closed(members, group, missed_payments, locked_count):
        return notify_users(
            [member.user for member in members],
            notification_type='cycle_closed',
            title=f'Payment Cycle Closed in {group.name}',
            message=(
                f"The payment cycle has been closed. {missed_payments} missed payment(s), "
                f"{locked_count} member(s) locked."
            ),
            group=group,
        )

    @staticmethod
    def notify_member_joined(new_member, group):
        name = get_user_display_name(new_member.user, fallback='A new member')
        return create_notification(
            user=group.president,
            group=group,
            notification_type='member_joined',
            title='New Member Joined',
            message=f"{name} joined {group.name} at queue position #{new_member.queue_position}",
        )

    @staticmethod
    def notify_member_locked(member, group):
        return create_notification(
            user=member.user,
            group=group,
            notification_type='member_locked',
            title='Membership Locked',
            message=(
                f"Your membership in {group.name} has been locked after "
                f"{member.missed_payment_count} missed payments. Contact the president to be restored."
            ),
        )

    @staticmethod
    def notify_member_restored(member, group):
        return create_notification(
            user=member.user,
            group=group,
            notification_type='member_restored',
            title='Membership Restored',
            message=(
                f"You have been restored to {group.name} and placed at position "
                f"#{member.queue_position} in the queue."
            ),
        )
