from django.contrib.auth.decorators import login_required
from django.core.exceptions import ValidationError
from django.http import JsonResponse
from django.views.decorators.http import require_http_methods

from .decorators import json_command, is_group_member
from .exceptions import InvalidInput, NotFound
from .forms import JoinGroupForm, StartCycleForm, MoveQueueForm, form_errors
from .models import Member
from .services import QueueService, CycleService, ReminderService, GroupService

import logging
logger = logging.getLogger(__name__)


def _invalid(form):
    errors = form_errors(form)
    first = next(iter(errors.values()))[0]
    return InvalidInput(first, errors=errors)


def _get_member(member_id):
    try:
        return Member.objects.select_related('group', 'user').get(pk=member_id)
    except (Member.DoesNotExist, ValidationError, ValueError):
        raise NotFound('Member not found')


def serialize_group(group):
    return {
        'id': str(group.id),
        'name': group.name,
        'contribution_amount': str(group.contribution_amount),
        'frequency': group.frequency,
        'invite_code': group.invite_code,
        'president_id': group.president_id,
        'archived': group.is_archived,
        'member_count': getattr(group, 'active_member_count', None),
    }


def serialize_log(log):
    return {
        'id': str(log.id),
        'cycle_id': str(log.cycle_id),
        'member_id': str(log.member_id),
        'status': log.status,
        'marked_at': log.marked_at.isoformat() if log.marked_at else None,
        'verified_at': log.verified_at.isoformat() if log.verified_at else None,
    }


# ========================================
# GROUPS
# ========================================

@login_required
@require_http_methods(["GET"])
def my_groups(request):
    """Dashboard list of the user's groups"""
    include_archived = request.GET.get('archived') == '1'
    groups = GroupService.get_user_groups(request.user, include_archived=include_archived)
    return JsonResponse({'success': True, 'groups': [serialize_group(g) for g in groups]})


@login_required
@require_http_methods(["POST"])
@json_command
def create_group(request):
    group = GroupService.create_group(request.user, request.POST)
    return JsonResponse({
        'success': True,
        'message': f'Group "{group.name}" created successfully',
        'group': serialize_group(group),
    }, status=201)


@login_required
@require_http_methods(["GET"])
@json_command
def lookup_invite(request):
    """Preview the group behind an invite code before joining"""
    form = JoinGroupForm({'invite_code': request.GET.get('code', '')})
    if not form.is_valid():
        raise _invalid(form)
    preview = GroupService.find_group_by_invite_code(form.cleaned_data['invite_code'], user=request.user)
    return JsonResponse({'success': True, 'group': preview})


@login_required
@require_http_methods(["POST"])
@json_command
def join_group(request):
    form = JoinGroupForm(request.POST)
    if not form.is_valid():
        raise _invalid(form)
    member = GroupService.join_group(request.user, form.cleaned_data['invite_code'])
    return JsonResponse({
        'success': True,
        'message': f'You joined {member.group.name} at position #{member.queue_position}',
        'group_id': str(member.group_id),
        'queue_position': member.queue_position,
    })


@login_required
@require_http_methods(["GET"])
@json_command
@is_group_member
def group_detail(request, group_id):
    group = GroupService.get_group(group_id)
    return JsonResponse({'success': True, **GroupService.get_group_overview(group, request.user)})


@login_required
@require_http_methods(["POST"])
@json_command
def update_settings(request, group_id):
    group = GroupService.get_group(group_id)
    group = GroupService.update_group_settings(group, request.user, request.POST)
    return JsonResponse({
        'success': True,
        'message': 'Group settings saved',
        'group': serialize_group(group),
    })


@login_required
@require_http_methods(["POST"])
@json_command
def archive_group(request, group_id):
    group = GroupService.archive_group(GroupService.get_group(group_id), request.user)
    return JsonResponse({'success': True, 'message': f'"{group.name}" has been archived'})


@login_required
@require_http_methods(["POST"])
@json_command
def restore_group(request, group_id):
    group = GroupService.restore_group(GroupService.get_group(group_id), request.user)
    return JsonResponse({'success': True, 'message': f'"{group.name}" has been restored'})


@login_required
@require_http_methods(["POST"])
@json_command
def delete_group(request, group_id):
    group = GroupService.get_group(group_id)
    name = group.name
    deleted = GroupService.delete_group(group, request.user)
    return JsonResponse({'success': True, 'message': f'"{name}" has been deleted', 'deleted': deleted})


# ========================================
# QUEUE
# ========================================

@login_required
@require_http_methods(["GET"])
@json_command
@is_group_member
def queue(request, group_id):
    group = GroupService.get_group(group_id)
    return JsonResponse({'success': True, 'queue': QueueService.get_payout_order(group)})


@login_required
@require_http_methods(["POST"])
@json_command
def move_member(request, member_id):
    form = MoveQueueForm(request.POST)
    if not form.is_valid():
        raise _invalid(form)
    result = QueueService.move(_get_member(member_id), form.cleaned_data['direction'], request.user)
    return JsonResponse({'success': True, **result})


@login_required
@require_http_methods(["POST"])
@json_command
def restore_member(request, member_id):
    result = CycleService.restore_member(member_id, request.user)
    return JsonResponse({
        'success': True,
        'message': result['message'],
        'queue_position': result['queue_position'],
    })


# ========================================
# CYCLES & PAYMENTS
# ========================================

@login_required
@require_http_methods(["POST"])
@json_command
def start_cycle(request, group_id):
    group = GroupService.get_group(group_id)
    form = StartCycleForm(request.POST)
    if not form.is_valid():
        raise _invalid(form)

    result = CycleService.start_cycle(
        group, request.user, form.cleaned_data['start_date'], form.cleaned_data['due_date']
    )
    return JsonResponse({
        'success': True,
        'message': result['message'],
        'warning': result['warning'],
        'cycle_id': str(result['cycle'].id),
        'payment_logs_created': result['payment_logs_created'],
    }, status=201)


@login_required
@require_http_methods(["POST"])
@json_command
def close_cycle(request, cycle_id):
    result = CycleService.close_cycle(cycle_id, request.user)
    return JsonResponse({'success': True, **result})


@login_required
@require_http_methods(["GET"])
@json_command
@is_group_member
def current_cycle(request, group_id):
    group = GroupService.get_group(group_id)
    return JsonResponse({'success': True, **CycleService.get_cycle_status(group)})


@login_required
@require_http_methods(["GET"])
@json_command
@is_group_member
def cycle_history(request, group_id):
    group = GroupService.get_group(group_id)
    return JsonResponse({'success': True, 'cycles': CycleService.get_cycle_history(group)})


@login_required
@require_http_methods(["POST"])
@json_command
def mark_sent(request, log_id):
    log = CycleService.mark_as_sent(log_id, request.user)
    return JsonResponse({
        'success': True,
        'message': 'Payment marked as sent. Waiting for verification.',
        'payment': serialize_log(log),
    })


@login_required
@require_http_methods(["POST"])
@json_command
def verify_payment(request, log_id):
    log = CycleService.verify_payment(log_id, request.user)
    return JsonResponse({'success': True, 'message': 'Payment verified', 'payment': serialize_log(log)})


@login_required
@require_http_methods(["POST"])
@json_command
def reject_payment(request, log_id):
    log = CycleService.reject_payment(log_id, request.user)
    return JsonResponse({'success': True, 'message': 'Payment rejected', 'payment': serialize_log(log)})


@login_required
@require_http_methods(["POST"])
@json_command
def remind_member(request, log_id):
    result = ReminderService.remind_member(log_id, request.user)
    return JsonResponse({'success': True, **result})


@login_required
@require_http_methods(["POST"])
@json_command
def remind_all(request, group_id):
    group = GroupService.get_group(group_id)
    result = ReminderService.remind_all(group, request.user)
    return JsonResponse({'success': True, **result})
