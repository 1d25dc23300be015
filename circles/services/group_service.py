from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone
from django.utils.crypto import get_random_string
from constance import config
import string

from notifications.helpers import NotificationHelper
from notifications.utils import log_activity
from ..exceptions import InvalidInput, NotFound, StateConflict
from ..forms import GroupForm, sanitize_invite_code, form_errors, INVITE_CODE_MIN_LENGTH, INVITE_CODE_MAX_LENGTH
from ..models import Group, Member, PaymentCycle, PaymentLog
from ..permissions import require_group_admin, require_group_president, get_membership, is_group_admin
from ..rate_limit import get_rate_limiter
from .cycle_service import CycleService
from .queue_service import QueueService

import logging
logger = logging.getLogger(__name__)


INVITE_CODE_CHARS = string.ascii_uppercase + string.digits
INVITE_CODE_ATTEMPTS = 10


class GroupService:
    """Group lifecycle: create, join by invite code, settings, archive and delete"""

    @staticmethod
    def _validated(form_data, instance=None):
        form = GroupForm(data=form_data, instance=instance)
        if not form.is_valid():
            errors = form_errors(form)
            first = next(iter(errors.values()))[0]
            raise InvalidInput(first, errors=errors)
        return form.cleaned_data

    @staticmethod
    def generate_invite_code():
        # Codes outside the lookup bounds could never be joined
        length = min(max(config.CIRCLES_INVITE_CODE_LENGTH, INVITE_CODE_MIN_LENGTH), INVITE_CODE_MAX_LENGTH)
        for _ in range(INVITE_CODE_ATTEMPTS):
            code = get_random_string(length, allowed_chars=INVITE_CODE_CHARS)
            if not Group.objects.filter(invite_code=code).exists():
                return code
        logger.error(f"Could not generate a unique invite code after {INVITE_CODE_ATTEMPTS} attempts")
        raise StateConflict('Could not generate a unique invite code, please try again')

    @staticmethod
    @transaction.atomic
    def create_group(user, form_data, rate_limiter=None):
        """Create a group; the creator becomes its president at queue position 1"""
        get_rate_limiter(rate_limiter).enforce(user.pk, 'create_group')
        data = GroupService._validated(form_data)

        group = Group.objects.create(
            name=data['name'],
            contribution_amount=data['contribution_amount'],
            frequency=data['frequency'],
            president=user,
            invite_code=GroupService.generate_invite_code(),
        )
        Member.objects.create(
            group=group,
            user=user,
            queue_position=1,
            status='active',
            role='president',
        )

        logger.info(f"Group {group.id} '{group.name}' created by {user.username}")
        return group

    @staticmethod
    def _lookup(invite_code):
        code = sanitize_invite_code(invite_code)
        if not INVITE_CODE_MIN_LENGTH <= len(code) <= INVITE_CODE_MAX_LENGTH:
            raise InvalidInput(
                f'Invite code must be {INVITE_CODE_MIN_LENGTH}-{INVITE_CODE_MAX_LENGTH} letters or numbers'
            )
        group = Group.objects.filter(invite_code__iexact=code).first()
        if group is None:
            raise NotFound('No group found with that invite code')
        if group.is_archived:
            raise StateConflict('This group is no longer accepting members')
        return group

    @staticmethod
    def find_group_by_invite_code(invite_code, user=None, rate_limiter=None):
        """Preview of the group an invite code belongs to"""
        if user is not None:
            get_rate_limiter(rate_limiter).enforce(user.pk, 'join_group')

        group = GroupService._lookup(invite_code)
        return {
            'id': str(group.id),
            'name': group.name,
            'frequency': group.frequency,
            'contribution_amount': str(group.contribution_amount),
            'member_count': group.members.filter(status='active').count(),
        }

    @staticmethod
    @transaction.atomic
    def join_group(user, invite_code, rate_limiter=None):
        """
        Join the group behind invite_code at the back of the queue.

        A cycle already running gets an unpaid log for the newcomer, so they
        owe the current contribution like everyone else.
        """
        get_rate_limiter(rate_limiter).enforce(user.pk, 'join_group')

        group = GroupService._lookup(invite_code)
        group = Group.objects.select_for_update().get(pk=group.pk)
        if Member.objects.filter(group=group, user=user).exists():
            raise StateConflict('You are already a member of this group')

        member = Member(group=group, user=user, role='member')
        QueueService.append(member)

        cycle = group.get_active_cycle()
        if cycle is not None:
            PaymentLog.objects.create(cycle=cycle, member=member, status='unpaid')

        logger.info(f"{user.username} joined group {group.id} at position {member.queue_position}")

        log_activity(group, 'member_joined', actor=user,
                     metadata={'queue_position': member.queue_position})
        NotificationHelper.notify_member_joined(member, group)
        return member

    @staticmethod
    @transaction.atomic
    def update_group_settings(group, actor, form_data):
        require_group_admin(group, actor)
        data = GroupService._validated(form_data, instance=group)

        group.name = data['name']
        group.contribution_amount = data['contribution_amount']
        group.frequency = data['frequency']
        group.save(update_fields=['name', 'contribution_amount', 'frequency', 'updated_at'])

        logger.info(f"Group {group.id} settings updated by {actor.username}")
        return group

    @staticmethod
    @transaction.atomic
    def archive_group(group, actor):
        """Hide the group from dashboards; nothing is deleted"""
        require_group_president(group, actor)
        if group.is_archived:
            raise StateConflict('Group is already archived')
        group.archived_at = timezone.now()
        group.save(update_fields=['archived_at', 'updated_at'])
        logger.info(f"Group {group.id} archived by {actor.username}")
        return group

    @staticmethod
    @transaction.atomic
    def restore_group(group, actor):
        require_group_president(group, actor)
        if not group.is_archived:
            raise StateConflict('Group is not archived')
        group.archived_at = None
        group.save(update_fields=['archived_at', 'updated_at'])
        logger.info(f"Group {group.id} restored by {actor.username}")
        return group

    @staticmethod
    @transaction.atomic
    def delete_group(group, actor):
        """Delete the group and everything under it, children first"""
        require_group_president(group, actor)
        group_id = group.id

        deleted = {
            'payment_logs': PaymentLog.objects.filter(cycle__group=group).delete()[0],
            'cycles': PaymentCycle.objects.filter(group=group).delete()[0],
            'members': Member.objects.filter(group=group).delete()[0],
        }
        group.delete()

        logger.warning(f"Group {group_id} deleted by {actor.username}: {deleted}")
        return deleted

    @staticmethod
    def get_group(group_id):
        try:
            return Group.objects.select_related('president').get(pk=group_id)
        except (Group.DoesNotExist, ValidationError, ValueError):
            raise NotFound('Group not found')

    @staticmethod
    def get_user_groups(user, include_archived=False):
        """Groups the user presides over or belongs to, newest first"""
        member_of = Member.objects.filter(user=user).values('group_id')
        groups = Group.objects.filter(Q(id__in=member_of) | Q(president=user)).annotate(
            active_member_count=Count('members', filter=Q(members__status='active'))
        )
        if not include_archived:
            groups = groups.filter(archived_at__isnull=True)
        return list(groups.order_by('-created_at'))

    @staticmethod
    def get_group_overview(group, user):
        """Everything a group page needs in one read"""
        membership = get_membership(group, user)
        return {
            'group': {
                'id': str(group.id),
                'name': group.name,
                'contribution_amount': str(group.contribution_amount),
                'frequency': group.frequency,
                'invite_code': group.invite_code,
                'archived': group.is_archived,
            },
            'membership': {
                'member_id': str(membership.id),
                'role': membership.role,
                'status': membership.status,
                'queue_position': membership.queue_position,
                'missed_payment_count': membership.missed_payment_count,
            } if membership else None,
            'is_admin': is_group_admin(group, user),
            'queue': QueueService.get_payout_order(group),
            'locked_members': [
                {'member_id': str(m.id), 'user_id': m.user_id, 'missed_payment_count': m.missed_payment_count}
                for m in group.members.filter(status='locked')
            ],
            'active_cycle': CycleService.get_cycle_status(group),
        }
