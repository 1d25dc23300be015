from django.contrib import admin

from .models import ActivityLog, Notification
from .utils import format_activity_message


@admin.register(ActivityLog)
class ActivityLogAdmin(admin.ModelAdmin):
    list_display = ['group', 'action_type', 'actor_name', 'target_name', 'summary', 'created_at']
    list_filter = ['action_type', 'created_at']
    search_fields = ['group__name', 'actor_name', 'target_name']
    readonly_fields = [field.name for field in ActivityLog._meta.fields]

    def summary(self, obj):
        return format_activity_message(obj)
    summary.short_description = 'Summary'

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ['user', 'notification_type', 'title', 'group', 'read_at', 'created_at']
    list_filter = ['notification_type', 'created_at']
    search_fields = ['user__username', 'title', 'message']
    readonly_fields = ['created_at']

    actions = ['mark_as_read']

    def mark_as_read(self, request, queryset):
        from django.utils import timezone
        updated = queryset.filter(read_at__isnull=True).update(read_at=timezone.now())
        self.message_user(request, f'{updated} notification(s) marked as read.')
    mark_as_read.short_description = 'Mark selected notifications as read'
