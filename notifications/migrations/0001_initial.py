import django.db.models.deletion
import uuid
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('circles', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='ActivityLog',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('actor_name', models.CharField(blank=True, max_length=200)),
                ('action_type', models.CharField(choices=[('payment_marked_sent', 'Payment Marked as Sent'), ('payment_verified', 'Payment Verified'), ('payment_rejected', 'Payment Rejected'), ('member_joined', 'Member Joined'), ('member_locked', 'Member Locked'), ('member_restored', 'Member Restored'), ('cycle_started', 'Cycle Started'), ('cycle_closed', 'Cycle Closed'), ('reminder_sent', 'Reminders Sent'), ('member_reminded', 'Member Reminded'), ('queue_reordered', 'Queue Reordered')], max_length=30)),
                ('target_name', models.CharField(blank=True, max_length=200)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('group', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='activity_logs', to='circles.group')),
                ('target_user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='targeted_activities', to=settings.AUTH_USER_MODEL)),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='activities', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'notifications_activity_log',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['group', 'created_at'], name='notif_activity_group_idx')],
            },
        ),
        migrations.CreateModel(
            name='Notification',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('notification_type', models.CharField(choices=[('payment_reminder', 'Payment Reminder'), ('payment_pending', 'Payment Pending'), ('payment_verified', 'Payment Verified'), ('payment_rejected', 'Payment Rejected'), ('cycle_started', 'Cycle Started'), ('cycle_closed', 'Cycle Closed'), ('member_joined', 'Member Joined'), ('member_locked', 'Member Locked'), ('member_restored', 'Member Restored')], max_length=30)),
                ('title', models.CharField(max_length=200)),
                ('message', models.TextField()),
                ('read_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('group', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='notifications', to='circles.group')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='circle_notifications', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'notifications_notification',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['user', 'read_at'], name='notif_user_unread_idx'),],
            },
        ),
    ]
