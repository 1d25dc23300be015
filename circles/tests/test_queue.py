import pytest
from django.core.exceptions import PermissionDenied

from circles.exceptions import InvalidInput, StateConflict
from circles.models import Member, QUEUE_SENTINEL
from circles.services import QueueService
from notifications.models import ActivityLog


def positions(group):
    return list(
        Member.objects.filter(group=group, status='active')
        .order_by('queue_position')
        .values_list('user__username', 'queue_position')
    )


@pytest.mark.django_db
class TestAppend:
    def test_append_goes_to_the_back(self, make_group, make_user):
        alice, bob = make_user('alice'), make_user('bob')
        group = make_group(members=[alice])

        member = Member(group=group, user=bob, role='member')
        assert QueueService.append(member) == 3
        assert positions(group)[-1] == ('bob', 3)

    def test_append_ignores_locked_positions(self, make_group, make_user):
        alice, bob, carol = make_user('alice'), make_user('bob'), make_user('carol')
        group = make_group(members=[alice, bob])
        Member.objects.filter(user=bob).update(status='locked')

        member = Member(group=group, user=carol)
        assert QueueService.append(member) == 3

    def test_append_resets_missed_count(self, make_group, make_user):
        alice = make_user('alice')
        group = make_group(members=[alice])
        member = Member.objects.get(user=alice)
        Member.objects.filter(pk=member.pk).update(status='locked', missed_payment_count=4)
        member.refresh_from_db()

        QueueService.append(member)
        member.refresh_from_db()
        assert member.status == 'active'
        assert member.missed_payment_count == 0
        assert member.queue_position == 2


@pytest.mark.django_db
class TestMove:
    def test_move_down_swaps_with_neighbour(self, make_group, make_user, president):
        alice, bob = make_user('alice'), make_user('bob')
        group = make_group(members=[alice, bob])
        member = Member.objects.get(user=alice)

        result = QueueService.move(member, 'down', president)

        assert result['moved'] is True
        assert result['queue_position'] == 3
        assert positions(group) == [('president', 1), ('bob', 2), ('alice', 3)]
        assert not Member.objects.filter(queue_position=QUEUE_SENTINEL).exists()

    def test_move_up_swaps_with_neighbour(self, make_group, make_user, president):
        alice = make_user('alice')
        group = make_group(members=[alice])

        QueueService.move(Member.objects.get(user=alice), 'up', president)
        assert positions(group) == [('alice', 1), ('president', 2)]

    def test_move_logs_activity(self, make_group, make_user, president):
        alice = make_user('alice')
        group = make_group(members=[alice])

        QueueService.move(Member.objects.get(user=alice), 'up', president)

        activity = ActivityLog.objects.get(group=group, action_type='queue_reordered')
        assert activity.target_user == alice
        assert activity.metadata == {'direction': 'up', 'from': 2, 'to': 1}

    def test_first_member_up_is_a_noop(self, make_group, make_user, president):
        alice = make_user('alice')
        group = make_group(members=[alice])
        before = positions(group)

        result = QueueService.move(Member.objects.get(user=president), 'up', president)

        assert result['moved'] is False
        assert 'already first' in result['message']
        assert positions(group) == before
        assert not ActivityLog.objects.filter(action_type='queue_reordered').exists()

    def test_last_member_down_is_a_noop(self, make_group, make_user, president):
        alice = make_user('alice')
        group = make_group(members=[alice])

        result = QueueService.move(Member.objects.get(user=alice), 'down', president)

        assert result['moved'] is False
        assert positions(group) == [('president', 1), ('alice', 2)]

    def test_neighbour_skips_locked_members(self, make_group, make_user, president):
        alice, bob = make_user('alice'), make_user('bob')
        group = make_group(members=[alice, bob])
        Member.objects.filter(user=alice).update(status='locked')

        QueueService.move(Member.objects.get(user=bob), 'up', president)

        assert positions(group) == [('bob', 1), ('president', 3)]
        assert Member.objects.get(user=alice).queue_position == 2

    def test_locked_member_cannot_move(self, make_group, make_user, president):
        alice = make_user('alice')
        make_group(members=[alice])
        Member.objects.filter(user=alice).update(status='locked')

        with pytest.raises(StateConflict):
            QueueService.move(Member.objects.get(user=alice), 'up', president)

    def test_plain_member_cannot_move(self, make_group, make_user):
        alice, bob = make_user('alice'), make_user('bob')
        make_group(members=[alice, bob])

        with pytest.raises(PermissionDenied):
            QueueService.move(Member.objects.get(user=alice), 'down', alice)

    def test_vice_president_can_move_until_locked(self, make_group, make_user):
        vp, alice = make_user('vp'), make_user('alice')
        group = make_group(members=[vp, alice])
        Member.objects.filter(user=vp).update(role='vice_president')

        QueueService.move(Member.objects.get(user=alice), 'up', vp)
        assert positions(group)[1] == ('alice', 2)

        Member.objects.filter(user=vp).update(status='locked')
        with pytest.raises(PermissionDenied):
            QueueService.move(Member.objects.get(user=alice), 'up', vp)

    def test_unknown_direction(self, make_group, make_user, president):
        alice = make_user('alice')
        make_group(members=[alice])

        with pytest.raises(InvalidInput):
            QueueService.move(Member.objects.get(user=alice), 'sideways', president)

    def test_repeated_moves_keep_positions_dense(self, make_group, make_user, president):
        users = [make_user(f'm{i}') for i in range(5)]
        group = make_group(members=users)

        for username, direction in [('m0', 'down'), ('m4', 'up'), ('m2', 'up'), ('m0', 'down'), ('m3', 'down')]:
            QueueService.move(Member.objects.get(user__username=username), direction, president)
            assert QueueService.is_dense(group)


@pytest.mark.django_db
class TestCompact:
    def test_compact_closes_gaps_in_order(self, make_group, make_user):
        alice, bob = make_user('alice'), make_user('bob')
        group = make_group(members=[alice, bob])
        Member.objects.filter(user=alice).update(queue_position=5)
        Member.objects.filter(user=bob).update(queue_position=9)

        assert QueueService.compact(group) == 2
        assert positions(group) == [('president', 1), ('alice', 2), ('bob', 3)]

    def test_compact_dense_queue_changes_nothing(self, make_group, make_user):
        group = make_group(members=[make_user('alice')])
        assert QueueService.compact(group) == 0

    def test_stranded_sentinel_goes_to_the_back(self, make_group, make_user):
        alice, bob = make_user('alice'), make_user('bob')
        group = make_group(members=[alice, bob])
        Member.objects.filter(user=alice).update(queue_position=QUEUE_SENTINEL)

        QueueService.compact(group)
        assert positions(group) == [('president', 1), ('bob', 2), ('alice', 3)]

    def test_locked_members_are_left_alone(self, make_group, make_user):
        alice, bob = make_user('alice'), make_user('bob')
        group = make_group(members=[alice, bob])
        Member.objects.filter(user=alice).update(status='locked')

        QueueService.compact(group)
        assert positions(group) == [('president', 1), ('bob', 2)]
        assert Member.objects.get(user=alice).queue_position == 2


@pytest.mark.django_db
class TestPayoutOrder:
    def test_payout_order_names_degrade(self, make_group, make_user):
        alice = make_user('alice', email='alice@example.com')
        bob = make_user('bob')
        group = make_group(members=[alice, bob])

        order = QueueService.get_payout_order(group)

        assert [entry['name'] for entry in order] == ['Grace Hopper', 'alice@example.com', 'bob']
        assert [entry['queue_position'] for entry in order] == [1, 2, 3]
