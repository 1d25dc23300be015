# notifications/utils.py - activity feed, persisted notifications and push relay

from django.db import transaction, DatabaseError
from django.utils import timezone

from .models import ActivityLog, Notification
from .channels import get_push_channel
from . import types

import logging
logger = logging.getLogger(__name__)


def get_user_display_name(user, fallback='Unknown'):
    """
    Best available name for a user: full name, then email, then username.
    Missing data never fails the caller; the fallback is returned instead.
    """
    if user is None:
        return fallback
    full_name = (user.get_full_name() or '').strip()
    return full_name or user.email or user.username or fallback


# ========================================
# ACTIVITY FEED
# ========================================

def log_activity(group, action_type, actor=None, target=None, metadata=None):
    """
    Record an activity for the group's feed.

    Best effort: a store failure is logged and None returned, the caller's
    own changes are kept.
    """
    try:
        with transaction.atomic():
            return ActivityLog.objects.create(
                group=group,
                user=actor,
                actor_name=get_user_display_name(actor, fallback='') if actor else '',
                action_type=action_type,
                target_user=target,
                target_name=get_user_display_name(target, fallback='') if target else '',
                metadata=metadata or {},
            )
    except DatabaseError as e:
        logger.error(f"Failed to log activity '{action_type}' for group {group.pk}: {str(e)}")
        return None


def get_group_activities(group, limit=20):
    return list(
        ActivityLog.objects.filter(group=group).order_by('-created_at')[:limit]
    )


def format_activity_message(activity):
    """Human readable line for the activity feed"""
    actor = activity.actor_name or 'Someone'
    target = activity.target_name or 'a member'
    metadata = activity.metadata or {}

    messages = {
        'payment_marked_sent': f'{actor} marked payment as sent',
        'payment_verified': f'{actor} verified payment from {target}',
        'payment_rejected': f'{actor} rejected payment from {target}',
        'member_joined': f'{actor} joined the group',
        'member_locked': f'{target} was locked due to missed payments',
        'member_restored': f'{actor} restored {target} to the group',
        'cycle_started': f'{actor} started a new payment cycle',
        'cycle_closed': f'{actor} closed the payment cycle',
        'reminder_sent': f'{actor} sent reminders to unpaid members',
        'member_reminded': f'{actor} sent a reminder to {target}',
        'queue_reordered': f"{actor} moved {target} {metadata.get('direction', 'within')} the queue",
    }
    return messages.get(activity.action_type, f'{actor} performed an action')


# ========================================
# NOTIFICATIONS
# ========================================

def create_notification(user, notification_type, title, message, group=None):
    """
    Persist a notification for user and push a transient copy once the
    surrounding transaction commits. Returns the row, or None if it could not
    be stored.
    """
    note = types.NotificationMessage(
        notification_type=notification_type,
        title=title,
        message=message,
        user_id=user.pk,
        group_id=group.pk if group else None,
        group_name=group.name if group else '',
    )

    try:
        with transaction.atomic():
            row = types.to_row(note)
            row.save()
    except DatabaseError as e:
        logger.error(f"Failed to store notification for {user.username}: {str(e)}")
        return None

    note.id = str(row.id)
    note.created_at = row.created_at
    transaction.on_commit(lambda: push_notification(note))
    return row


def push_notification(note):
    """Deliver a NotificationMessage over the push channel only"""
    payload = types.to_push_payload(note)
    return get_push_channel().publish(payload, user_id=note.user_id)


def notify_users(users, notification_type, title, message, group=None):
    created = []
    for user in users:
        row = create_notification(user, notification_type, title, message, group=group)
        if row is not None:
            created.append(row)
    return created


def get_user_notifications(user, limit=50):
    return list(
        Notification.objects.filter(user=user).select_related('group').order_by('-created_at')[:limit]
    )


def get_unread_count(user):
    return Notification.objects.filter(user=user, read_at__isnull=True).count()


def mark_notification_read(user, notification_id):
    """Mark one of the user's notifications read; False if it does not exist"""
    notification = Notification.objects.filter(user=user, id=notification_id).first()
    if notification is None:
        return False
    notification.mark_as_read()
    return True


def mark_all_read(user):
    return Notification.objects.filter(user=user, read_at__isnull=True).update(read_at=timezone.now())


def clear_all(user):
    deleted, _ = Notification.objects.filter(user=user).delete()
    return deleted
