from django.db import transaction
from django.db.models import Max
from django.utils import timezone

from notifications.utils import log_activity, get_user_display_name
from ..exceptions import InvalidInput, StateConflict
from ..models import Group, Member, QUEUE_SENTINEL
from ..permissions import require_group_admin

import logging
logger = logging.getLogger(__name__)


class QueueService:
    """
    Payout queue of a group.

    Active members hold the positions 1..N with no gaps or duplicates; position
    1 is paid next. Locked members keep whatever position they had but are not
    part of the ordering until they are restored, which appends them at the
    back. Every mutation locks the group row first so queue changes in the
    same group run one at a time.
    """

    DIRECTIONS = ('up', 'down')

    @staticmethod
    def _lock_group(group):
        return Group.objects.select_for_update().get(pk=group.pk)

    @staticmethod
    def get_active_ordering(group):
        """Active members sorted by queue position"""
        return list(
            Member.objects.filter(group=group, status='active')
            .select_related('user')
            .order_by('queue_position', 'created_at')
        )

    @staticmethod
    def get_payout_order(group):
        """Active ordering as plain dicts; the first entry receives the next payout"""
        return [
            {
                'member_id': str(member.id),
                'user_id': member.user_id,
                'name': get_user_display_name(member.user),
                'queue_position': member.queue_position,
                'role': member.role,
                'missed_payment_count': member.missed_payment_count,
            }
            for member in QueueService.get_active_ordering(group)
        ]

    @staticmethod
    def next_position(group):
        """max(active queue_position) + 1, or 1 for an empty queue"""
        current_max = Member.objects.filter(
            group=group, status='active'
        ).aggregate(max_position=Max('queue_position'))['max_position']
        return (current_max or 0) + 1

    @staticmethod
    def is_dense(group):
        positions = sorted(
            Member.objects.filter(group=group, status='active').values_list('queue_position', flat=True)
        )
        return positions == list(range(1, len(positions) + 1))

    @staticmethod
    @transaction.atomic
    def append(member):
        """
        Put member at the back of the payout line as an active member with a
        clean missed-payment record. Used for joins and restores.
        """
        QueueService._lock_group(member.group)

        member.queue_position = QueueService.next_position(member.group)
        member.status = 'active'
        member.missed_payment_count = 0
        if member._state.adding:
            member.save()
        else:
            member.save(update_fields=['queue_position', 'status', 'missed_payment_count', 'updated_at'])

        logger.info(
            f"Queue append: member {member.id} in group {member.group_id} "
            f"at position {member.queue_position}"
        )
        return member.queue_position

    @staticmethod
    @transaction.atomic
    def move(member, direction, actor):
        """
        Swap member with its neighbour in the active ordering.

        Moving the first member up or the last member down is a no-op and
        reported as such. The exchange parks member on the sentinel position,
        writes the neighbour into member's old slot, then writes member into
        the neighbour's old slot; all three writes commit together.
        """
        if direction not in QueueService.DIRECTIONS:
            raise InvalidInput(f"Direction must be one of: {', '.join(QueueService.DIRECTIONS)}")

        group = QueueService._lock_group(member.group)
        require_group_admin(group, actor)

        member = Member.objects.select_related('user').get(pk=member.pk)
        if member.status != 'active':
            raise StateConflict('Only active members can be moved in the queue')

        ordering = list(
            Member.objects.select_for_update()
            .filter(group=group, status='active')
            .order_by('queue_position', 'created_at')
        )
        index = next(i for i, m in enumerate(ordering) if m.pk == member.pk)
        target_index = index - 1 if direction == 'up' else index + 1

        if target_index < 0 or target_index >= len(ordering):
            edge = 'first' if direction == 'up' else 'last'
            logger.info(f"Queue move ignored: member {member.id} is already {edge} in group {group.id}")
            return {
                'moved': False,
                'member_id': str(member.id),
                'queue_position': member.queue_position,
                'message': f'Member is already {edge} in the queue',
            }

        neighbour = ordering[target_index]
        current_pos = member.queue_position
        swap_pos = neighbour.queue_position
        now = timezone.now()

        Member.objects.filter(pk=member.pk).update(queue_position=QUEUE_SENTINEL, updated_at=now)
        Member.objects.filter(pk=neighbour.pk).update(queue_position=current_pos, updated_at=now)
        Member.objects.filter(pk=member.pk).update(queue_position=swap_pos, updated_at=now)

        logger.info(
            f"Queue swap in group {group.id}: member {member.id} {current_pos} -> {swap_pos}, "
            f"member {neighbour.id} {swap_pos} -> {current_pos}"
        )

        log_activity(
            group,
            'queue_reordered',
            actor=actor,
            target=member.user,
            metadata={'direction': direction, 'from': current_pos, 'to': swap_pos},
        )

        name = get_user_display_name(member.user, fallback='Member')
        return {
            'moved': True,
            'member_id': str(member.id),
            'queue_position': swap_pos,
            'swapped_with': str(neighbour.id),
            'message': f'{name} moved {direction} to position #{swap_pos}',
        }

    @staticmethod
    @transaction.atomic
    def compact(group):
        """
        Renumber active members to 1..N keeping their relative order.

        Rows stranded on a non-positive position (an interrupted swap) go to
        the back. Returns the number of members whose position changed.
        """
        group = QueueService._lock_group(group)
        ordering = sorted(
            Member.objects.filter(group=group, status='active'),
            key=lambda m: (m.queue_position <= 0, m.queue_position, m.created_at),
        )
        targets = {m.pk: index for index, m in enumerate(ordering, start=1)}
        changed = [m for m in ordering if m.queue_position != targets[m.pk]]
        if not changed:
            return 0

        # Park every changed row below any existing position first so the
        # final writes never collide with a position still in use.
        offset = max(abs(m.queue_position) for m in ordering) + 1
        for m in changed:
            Member.objects.filter(pk=m.pk).update(queue_position=-(offset + targets[m.pk]))
        now = timezone.now()
        for m in changed:
            Member.objects.filter(pk=m.pk).update(queue_position=targets[m.pk], updated_at=now)

        logger.info(f"Queue compacted in group {group.id}: {len(changed)} position(s) changed")
        return len(changed)
