from django.contrib import admin
from django.db.models import Count, Q
from django.utils.html import format_html

from .models import Group, Member, PaymentCycle, PaymentLog
from .services import QueueService


class MemberInline(admin.TabularInline):
    model = Member
    extra = 0
    fields = ['user', 'queue_position', 'status', 'role', 'missed_payment_count']
    readonly_fields = ['queue_position']
    ordering = ['status', 'queue_position']


@admin.register(Group)
class GroupAdmin(admin.ModelAdmin):
    list_display = [
        'name', 'president', 'contribution_amount', 'frequency',
        'invite_code', 'active_members', 'archived_at', 'created_at'
    ]
    list_filter = ['frequency', 'created_at']
    search_fields = ['name', 'invite_code', 'president__username']
    readonly_fields = ['invite_code', 'created_at', 'updated_at']
    inlines = [MemberInline]

    fieldsets = (
        ('Group', {
            'fields': ('name', 'president', 'contribution_amount', 'frequency', 'invite_code')
        }),
        ('Lifecycle', {
            'fields': ('archived_at', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    actions = ['compact_queues']

    def get_queryset(self, request):
        return super().get_queryset(request).annotate(
            active_count=Count('members', filter=Q(members__status='active'))
        )

    def active_members(self, obj):
        return obj.active_count
    active_members.short_description = 'Active Members'
    active_members.admin_order_field = 'active_count'

    def compact_queues(self, request, queryset):
        changed = sum(QueueService.compact(group) for group in queryset)
        self.message_user(request, f"{changed} queue position(s) renumbered across {queryset.count()} group(s).")
    compact_queues.short_description = "Renumber active queue positions"


@admin.register(Member)
class MemberAdmin(admin.ModelAdmin):
    list_display = ['user', 'group', 'queue_position', 'status_badge', 'role', 'missed_payment_count']
    list_filter = ['status', 'role']
    search_fields = ['user__username', 'user__email', 'group__name']
    readonly_fields = ['created_at', 'updated_at']

    def status_badge(self, obj):
        colors = {'active': 'green', 'locked': 'red', 'pending': 'orange'}
        return format_html(
            '<span style="background-color: {}; color: white; padding: 3px 10px; border-radius: 3px;">{}</span>',
            colors.get(obj.status, 'gray'), obj.get_status_display()
        )
    status_badge.short_description = 'Status'


class PaymentLogInline(admin.TabularInline):
    model = PaymentLog
    extra = 0
    fields = ['member', 'status', 'marked_at', 'verified_at', 'reminder_count']
    readonly_fields = ['marked_at', 'verified_at', 'reminder_count']


@admin.register(PaymentCycle)
class PaymentCycleAdmin(admin.ModelAdmin):
    list_display = ['group', 'start_date', 'due_date', 'status', 'closed_at']
    list_filter = ['status', 'due_date']
    search_fields = ['group__name']
    readonly_fields = ['status', 'closed_at', 'created_at']
    inlines = [PaymentLogInline]


@admin.register(PaymentLog)
class PaymentLogAdmin(admin.ModelAdmin):
    list_display = ['member', 'cycle', 'status', 'marked_at', 'verified_at', 'reminder_count', 'last_reminded_at']
    list_filter = ['status', 'cycle__status']
    search_fields = ['member__user__username', 'cycle__group__name']
    readonly_fields = ['created_at']
