from django.contrib.auth.models import User
from django.db import models
from django.utils import timezone
import uuid


class ActivityLog(models.Model):
    """Append-only audit trail shown in a group's activity feed"""

    ACTION_TYPE_CHOICES = [
        ('payment_marked_sent', 'Payment Marked as Sent'),
        ('payment_verified', 'Payment Verified'),
        ('payment_rejected', 'Payment Rejected'),
        ('member_joined', 'Member Joined'),
        ('member_locked', 'Member Locked'),
        ('member_restored', 'Member Restored'),
        ('cycle_started', 'Cycle Started'),
        ('cycle_closed', 'Cycle Closed'),
        ('reminder_sent', 'Reminders Sent'),
        ('member_reminded', 'Member Reminded'),
        ('queue_reordered', 'Queue Reordered'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    group = models.ForeignKey('circles.Group', on_delete=models.CASCADE, related_name='activity_logs')
    user = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name='activities'
    )
    actor_name = models.CharField(max_length=200, blank=True)
    action_type = models.CharField(max_length=30, choices=ACTION_TYPE_CHOICES)
    target_user = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name='targeted_activities'
    )
    target_name = models.CharField(max_length=200, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'notifications_activity_log'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['group', 'created_at'], name='notif_activity_group_idx'),
        ]

    def __str__(self):
        return f"{self.group_id} - {self.action_type}"


class Notification(models.Model):
    """Persisted notification for one user"""

    NOTIFICATION_TYPE_CHOICES = [
        ('payment_reminder', 'Payment Reminder'),
        ('payment_pending', 'Payment Pending'),
        ('payment_verified', 'Payment Verified'),
        ('payment_rejected', 'Payment Rejected'),
        ('cycle_started', 'Cycle Started'),
        ('cycle_closed', 'Cycle Closed'),
        ('member_joined', 'Member Joined'),
        ('member_locked', 'Member Locked'),
        ('member_restored', 'Member Restored'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='circle_notifications')
    group = models.ForeignKey(
        'circles.Group', on_delete=models.SET_NULL, null=True, blank=True, related_name='notifications'
    )
    notification_type = models.CharField(max_length=30, choices=NOTIFICATION_TYPE_CHOICES)
    title = models.CharField(max_length=200)
    message = models.TextField()
    read_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'notifications_notification'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'read_at'], name='notif_user_unread_idx'),
        ]

    def __str__(self):
        return f"{self.user.username} - {self.title}"

    @property
    def is_read(self):
        return self.read_at is not None

    def mark_as_read(self):
        """Mark notification as read"""
        if self.read_at is None:
            self.read_at = timezone.now()
            self.save(update_fields=['read_at'])
