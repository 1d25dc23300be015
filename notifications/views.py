from django.contrib.auth.decorators import login_required
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_http_methods

from circles.models import Group, Member
from . import types, utils


def serialize_notification(notification):
    return types.to_push_payload(types.from_row(notification))


@login_required
@require_http_methods(["GET"])
def notification_list(request):
    """Latest notifications for the signed-in user"""
    try:
        limit = min(int(request.GET.get('limit', 50)), 200)
    except ValueError:
        limit = 50
    notifications = utils.get_user_notifications(request.user, limit=limit)
    return JsonResponse({
        'success': True,
        'notifications': [serialize_notification(n) for n in notifications],
        'unread_count': utils.get_unread_count(request.user),
    })


@login_required
@require_http_methods(["GET"])
def unread_count(request):
    return JsonResponse({'success': True, 'unread_count': utils.get_unread_count(request.user)})


@login_required
@require_http_methods(["POST"])
def mark_read(request, notification_id):
    if not utils.mark_notification_read(request.user, notification_id):
        return JsonResponse({'error': 'Notification not found'}, status=404)
    return JsonResponse({'success': True})


@login_required
@require_http_methods(["POST"])
def mark_all_read(request):
    updated = utils.mark_all_read(request.user)
    return JsonResponse({'success': True, 'updated': updated})


@login_required
@require_http_methods(["POST"])
def clear_notifications(request):
    deleted = utils.clear_all(request.user)
    return JsonResponse({'success': True, 'deleted': deleted})


@login_required
@require_http_methods(["GET"])
def group_activity(request, group_id):
    """Activity feed of a group the user belongs to"""
    group = get_object_or_404(Group, id=group_id)
    if group.president_id != request.user.id and not Member.objects.filter(group=group, user=request.user).exists():
        return JsonResponse({'error': 'Not a member'}, status=403)

    activities = utils.get_group_activities(group, limit=20)
    return JsonResponse({
        'success': True,
        'activities': [
            {
                'id': str(activity.id),
                'action_type': activity.action_type,
                'message': utils.format_activity_message(activity),
                'metadata': activity.metadata,
                'created_at': activity.created_at.isoformat(),
            }
            for activity in activities
        ],
    })
