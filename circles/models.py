from django.db import models
from django.contrib.auth.models import User
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db.models import Q
from django.utils import timezone
from decimal import Decimal
import uuid


# Transient value a member holds while two queue positions are being exchanged
QUEUE_SENTINEL = -1


class Group(models.Model):
    """A savings circle"""

    FREQUENCY_CHOICES = [
        ('weekly', 'Weekly'),
        ('monthly', 'Monthly'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=100)
    president = models.ForeignKey(User, on_delete=models.CASCADE, related_name='presided_groups')
    contribution_amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01')), MaxValueValidator(Decimal('1000000'))],
        help_text="Amount each member contributes per cycle"
    )
    frequency = models.CharField(max_length=10, choices=FREQUENCY_CHOICES, default='monthly')
    invite_code = models.CharField(max_length=20, unique=True)

    archived_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'circles_group'
        ordering = ['-created_at']
        verbose_name = 'Group'
        verbose_name_plural = 'Groups'

    def __str__(self):
        return f"{self.name} ({self.get_frequency_display()})"

    @property
    def is_archived(self):
        return self.archived_at is not None

    def get_active_cycle(self):
        """Return the currently active cycle, or None"""
        return self.cycles.filter(status='active').first()

    def get_active_members(self):
        """Active members in payout order"""
        return self.members.filter(status='active').order_by('queue_position')


class Member(models.Model):
    """Membership of a user in a group"""

    STATUS_CHOICES = [
        ('active', 'Active'),
        ('locked', 'Locked'),
        ('pending', 'Pending'),
    ]

    ROLE_CHOICES = [
        ('president', 'President'),
        ('vice_president', 'Vice President'),
        ('member', 'Member'),
    ]

    ADMIN_ROLES = ('president', 'vice_president')

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    group = models.ForeignKey(Group, on_delete=models.CASCADE, related_name='members')
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='circle_memberships')

    queue_position = models.IntegerField(help_text="Position in the payout queue (1 is paid next)")
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='active')
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default='member')
    missed_payment_count = models.IntegerField(
        default=0,
        validators=[MinValueValidator(0)],
        help_text="Missed payments since the last verification or restore"
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'circles_member'
        ordering = ['queue_position', 'created_at']
        verbose_name = 'Member'
        verbose_name_plural = 'Members'
        constraints = [
            models.UniqueConstraint(fields=['group', 'user'], name='circles_member_unique_user_per_group'),
            models.UniqueConstraint(
                fields=['group', 'queue_position'],
                condition=Q(status='active'),
                name='circles_member_unique_active_position',
            ),
        ]
        indexes = [
            models.Index(fields=['group', 'status', 'queue_position'], name='circles_member_queue_idx'),
        ]

    def __str__(self):
        return f"{self.user.username} in {self.group.name} (#{self.queue_position})"

    @property
    def is_admin(self):
        return self.role in self.ADMIN_ROLES and self.status != 'locked'


class PaymentCycle(models.Model):
    """One collection period of a group"""

    STATUS_CHOICES = [
        ('active', 'Active'),
        ('closed', 'Closed'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    group = models.ForeignKey(Group, on_delete=models.CASCADE, related_name='cycles')

    start_date = models.DateField()
    due_date = models.DateField()

    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='active')
    closed_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'circles_payment_cycle'
        ordering = ['-created_at']
        verbose_name = 'Payment Cycle'
        verbose_name_plural = 'Payment Cycles'
        constraints = [
            models.UniqueConstraint(
                fields=['group'],
                condition=Q(status='active'),
                name='circles_cycle_one_active_per_group',
            ),
            models.CheckConstraint(
                condition=Q(start_date__lt=models.F('due_date')),
                name='circles_cycle_start_before_due',
            ),
        ]

    def __str__(self):
        return f"{self.group.name}: {self.start_date} - {self.due_date} ({self.status})"

    @property
    def is_active(self):
        return self.status == 'active'

    def days_until_due(self):
        return (self.due_date - timezone.now().date()).days


class PaymentLog(models.Model):
    """A member's payment for one cycle"""

    STATUS_CHOICES = [
        ('unpaid', 'Unpaid'),
        ('pending', 'Pending Verification'),
        ('rejected', 'Rejected'),
        ('verified', 'Verified'),
    ]

    # Statuses that count as a missed payment when the cycle closes
    OUTSTANDING_STATUSES = ('unpaid', 'rejected')

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    cycle = models.ForeignKey(PaymentCycle, on_delete=models.CASCADE, related_name='payment_logs')
    member = models.ForeignKey(Member, on_delete=models.CASCADE, related_name='payment_logs')

    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='unpaid')
    marked_at = models.DateTimeField(null=True, blank=True)
    verified_at = models.DateTimeField(null=True, blank=True)

    reminder_count = models.IntegerField(default=0)
    last_reminded_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'circles_payment_log'
        ordering = ['member__queue_position', 'created_at']
        verbose_name = 'Payment Log'
        verbose_name_plural = 'Payment Logs'
        constraints = [
            models.UniqueConstraint(fields=['cycle', 'member'], name='circles_log_unique_member_per_cycle'),
        ]
        indexes = [
            models.Index(fields=['cycle', 'status'], name='circles_log_cycle_status_idx'),
        ]

    def __str__(self):
        return f"{self.member.user.username} - {self.cycle} - {self.status}"

    @property
    def is_outstanding(self):
        return self.status in self.OUTSTANDING_STATUSES
