import django.core.validators
import django.db.models.deletion
import uuid
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Group',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=100)),
                ('contribution_amount', models.DecimalField(decimal_places=2, help_text='Amount each member contributes per cycle', max_digits=10, validators=[django.core.validators.MinValueValidator(Decimal('0.01')), django.core.validators.MaxValueValidator(Decimal('1000000'))])),
                ('frequency', models.CharField(choices=[('weekly', 'Weekly'), ('monthly', 'Monthly')], default='monthly', max_length=10)),
                ('invite_code', models.CharField(max_length=20, unique=True)),
                ('archived_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('president', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='presided_groups', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Group',
                'verbose_name_plural': 'Groups',
                'db_table': 'circles_group',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='Member',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('queue_position', models.IntegerField(help_text='Position in the payout queue (1 is paid next)')),
                ('status', models.CharField(choices=[('active', 'Active'), ('locked', 'Locked'), ('pending', 'Pending')], default='active', max_length=10)),
                ('role', models.CharField(choices=[('president', 'President'), ('vice_president', 'Vice President'), ('member', 'Member')], default='member', max_length=20)),
                ('missed_payment_count', models.IntegerField(default=0, help_text='Missed payments since the last verification or restore', validators=[django.core.validators.MinValueValidator(0)])),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('group', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='members', to='circles.group')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='circle_memberships', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Member',
                'verbose_name_plural': 'Members',
                'db_table': 'circles_member',
                'ordering': ['queue_position', 'created_at'],
                'indexes': [models.Index(fields=['group', 'status', 'queue_position'], name='circles_member_queue_idx')],
                'constraints': [models.UniqueConstraint(fields=('group', 'user'), name='circles_member_unique_user_per_group'), models.UniqueConstraint(condition=models.Q(('status', 'active')), fields=('group', 'queue_position'), name='circles_member_unique_active_position')],
            },
        ),
        migrations.CreateModel(
            name='PaymentCycle',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('start_date', models.DateField()),
                ('due_date', models.DateField()),
                ('status', models.CharField(choices=[('active', 'Active'), ('closed', 'Closed')], default='active', max_length=10)),
                ('closed_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('group', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='cycles', to='circles.group')),
            ],
            options={
                'verbose_name': 'Payment Cycle',
                'verbose_name_plural': 'Payment Cycles',
                'db_table': 'circles_payment_cycle',
                'ordering': ['-created_at'],
                'constraints': [models.UniqueConstraint(condition=models.Q(('status', 'active')), fields=('group',), name='circles_cycle_one_active_per_group'), models.CheckConstraint(condition=models.Q(('start_date__lt', models.F('due_date'))), name='circles_cycle_start_before_due')],
            },
        ),
        migrations.CreateModel(
            name='PaymentLog',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('status', models.CharField(choices=[('unpaid', 'Unpaid'), ('pending', 'Pending Verification'), ('rejected', 'Rejected'), ('verified', 'Verified')], default='unpaid', max_length=10)),
                ('marked_at', models.DateTimeField(blank=True, null=True)),
                ('verified_at', models.DateTimeField(blank=True, null=True)),
                ('reminder_count', models.IntegerField(default=0)),
                ('last_reminded_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('cycle', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='payment_logs', to='circles.paymentcycle')),
                ('member', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='payment_logs', to='circles.member')),
            ],
            options={
                'verbose_name': 'Payment Log',
                'verbose_name_plural': 'Payment Logs',
                'db_table': 'circles_payment_log',
                'ordering': ['member__queue_position', 'created_at'],
                'indexes': [models.Index(fields=['cycle', 'status'], name='circles_log_cycle_status_idx')],
                'constraints': [models.UniqueConstraint(fields=('cycle', 'member'), name='circles_log_unique_member_per_cycle')],
            },
        ),
    ]
