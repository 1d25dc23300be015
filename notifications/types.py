"""
The one notification shape used across the project.

Notifications are stored in two places: persisted rows (Notification model)
and JSON payloads, pushed over the PushChannel or returned by the views. Both
go through NotificationMessage using the functions below, so the set of
notification types is defined once, on the model.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
import uuid

from django.utils import timezone

from .models import Notification


NOTIFICATION_TYPES = frozenset(code for code, _ in Notification.NOTIFICATION_TYPE_CHOICES)


@dataclass
class NotificationMessage:
    notification_type: str
    title: str
    message: str
    user_id: Optional[int] = None
    group_id: Optional[str] = None
    group_name: str = ''
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=timezone.now)
    read: bool = False

    def __post_init__(self):
        if self.notification_type not in NOTIFICATION_TYPES:
            raise ValueError(f"Unknown notification type: {self.notification_type}")
        if self.group_id is not None:
            self.group_id = str(self.group_id)


def from_row(row):
    """Notification model instance -> NotificationMessage"""
    return NotificationMessage(
        notification_type=row.notification_type,
        title=row.title,
        message=row.message,
        user_id=row.user_id,
        group_id=row.group_id,
        group_name=row.group.name if row.group_id and row.group else '',
        id=str(row.id),
        created_at=row.created_at,
        read=row.read_at is not None,
    )


def to_row(message):
    """NotificationMessage -> unsaved Notification model instance"""
    return Notification(
        user_id=message.user_id,
        group_id=message.group_id,
        notification_type=message.notification_type,
        title=message.title,
        message=message.message,
        read_at=timezone.now() if message.read else None,
    )


def to_push_payload(message):
    """NotificationMessage -> JSON-safe dict sent over the push channel"""
    return {
        'kind': 'notification',
        'id': message.id,
        'type': message.notification_type,
        'title': message.title,
        'message': message.message,
        'user_id': message.user_id,
        'group_id': message.group_id,
        'group_name': message.group_name,
        'created_at': message.created_at.isoformat(),
        'read': message.read,
    }

