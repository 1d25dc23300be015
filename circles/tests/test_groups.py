import re
from datetime import date

import pytest
from constance.test import override_config
from django.core.exceptions import PermissionDenied

from circles.exceptions import InvalidInput, NotFound, RateLimitExceeded, StateConflict
from circles.models import Group, Member, PaymentCycle, PaymentLog
from circles.rate_limit import RateLimiter, RateLimitRule
from circles.services import CycleService, GroupService, QueueService
from notifications.models import ActivityLog, Notification


GROUP_DATA = {'name': 'Office Savers', 'contribution_amount': '250.00', 'frequency': 'weekly'}


@pytest.mark.django_db
class TestCreateGroup:
    def test_creator_becomes_president_at_front(self, president):
        group = GroupService.create_group(president, GROUP_DATA)

        assert group.president == president
        assert re.fullmatch(r'[A-Z0-9]{8}', group.invite_code)
        member = Member.objects.get(group=group)
        assert member.user == president
        assert member.role == 'president'
        assert member.queue_position == 1
        assert member.status == 'active'

    def test_invalid_data_is_rejected(self, president):
        with pytest.raises(InvalidInput) as exc_info:
            GroupService.create_group(president, {'name': 'ab', 'contribution_amount': '0', 'frequency': 'daily'})

        assert set(exc_info.value.errors) == {'name', 'contribution_amount', 'frequency'}
        assert not Group.objects.exists()

    def test_invite_code_collision_is_retried(self, president, make_group, monkeypatch):
        existing = make_group()
        codes = iter([existing.invite_code, 'FRESH123'])
        monkeypatch.setattr(
            'circles.services.group_service.get_random_string',
            lambda length, allowed_chars: next(codes),
        )

        group = GroupService.create_group(president, GROUP_DATA)
        assert group.invite_code == 'FRESH123'

    def test_create_is_rate_limited(self, president):
        limiter = RateLimiter(rules={'create_group': RateLimitRule(1, 3600, 'create')})
        GroupService.create_group(president, GROUP_DATA, rate_limiter=limiter)

        with pytest.raises(RateLimitExceeded) as exc_info:
            GroupService.create_group(president, GROUP_DATA, rate_limiter=limiter)
        assert exc_info.value.retry_after_seconds > 0
        assert Group.objects.count() == 1

    def test_given_limiter_is_the_one_charged(self, president):
        limiter = RateLimiter()

        GroupService.create_group(president, GROUP_DATA, rate_limiter=limiter)

        assert len(limiter) == 1
        assert limiter.check(president.pk, 'create_group').remaining == limiter.rules['create_group'].max_requests - 2

    @pytest.mark.parametrize('configured, expected', [(24, 20), (3, 6), (10, 10)])
    def test_invite_code_length_stays_joinable(self, president, configured, expected):
        with override_config(CIRCLES_INVITE_CODE_LENGTH=configured):
            group = GroupService.create_group(president, GROUP_DATA)

        assert len(group.invite_code) == expected
        assert GroupService.find_group_by_invite_code(group.invite_code)['id'] == str(group.id)


@pytest.mark.django_db
class TestInviteLookup:
    def test_lookup_is_case_insensitive_and_sanitized(self, make_group):
        group = make_group()
        group.invite_code = 'ABCD2345'
        group.save()

        preview = GroupService.find_group_by_invite_code('  abcd-2345 ')

        assert preview['id'] == str(group.id)
        assert preview['member_count'] == 1

    def test_lookup_validates_length(self):
        with pytest.raises(InvalidInput):
            GroupService.find_group_by_invite_code('ab1')
        with pytest.raises(InvalidInput):
            GroupService.find_group_by_invite_code('A' * 21)

    def test_lookup_unknown_code(self, db):
        with pytest.raises(NotFound):
            GroupService.find_group_by_invite_code('ZZZZZZZZ')

    def test_archived_group_is_not_joinable(self, make_group, president):
        group = make_group()
        GroupService.archive_group(group, president)

        with pytest.raises(StateConflict):
            GroupService.find_group_by_invite_code(group.invite_code)


@pytest.mark.django_db
class TestJoinGroup:
    def test_join_appends_and_notifies_president(self, make_group, make_user, president):
        alice, bob = make_user('alice'), make_user('bob')
        group = make_group(members=[alice])

        member = GroupService.join_group(bob, group.invite_code.lower())

        assert member.role == 'member'
        assert member.queue_position == 3
        assert ActivityLog.objects.filter(group=group, action_type='member_joined', user=bob).exists()
        notification = Notification.objects.get(user=president, notification_type='member_joined')
        assert 'bob' in notification.message
        assert not PaymentLog.objects.filter(member=member).exists()

    def test_join_during_active_cycle_creates_unpaid_log(self, make_group, make_user, president):
        alice = make_user('alice')
        group = make_group()
        cycle = CycleService.start_cycle(group, president, date(2026, 3, 1), date(2026, 3, 31))['cycle']

        member = GroupService.join_group(alice, group.invite_code)

        log = PaymentLog.objects.get(cycle=cycle, member=member)
        assert log.status == 'unpaid'

    def test_already_member(self, make_group, make_user):
        alice = make_user('alice')
        group = make_group(members=[alice])

        with pytest.raises(StateConflict):
            GroupService.join_group(alice, group.invite_code)

    def test_join_is_rate_limited(self, make_group, make_user):
        alice = make_user('alice')
        group = make_group()
        limiter = RateLimiter(rules={'join_group': RateLimitRule(1, 3600, 'join')})
        GroupService.find_group_by_invite_code(group.invite_code, user=alice, rate_limiter=limiter)

        with pytest.raises(RateLimitExceeded):
            GroupService.join_group(alice, group.invite_code, rate_limiter=limiter)
        assert not Member.objects.filter(user=alice).exists()

    def test_join_keeps_queue_dense(self, make_group, make_user, president):
        alice, bob = make_user('alice'), make_user('bob')
        group = make_group(members=[alice])
        GroupService.join_group(bob, group.invite_code)

        assert QueueService.is_dense(group)


@pytest.mark.django_db
class TestGroupSettings:
    def test_admin_updates_settings(self, make_group, make_user):
        vp = make_user('vp')
        group = make_group(members=[vp])
        Member.objects.filter(user=vp).update(role='vice_president')

        GroupService.update_group_settings(group, vp, GROUP_DATA)

        group.refresh_from_db()
        assert group.name == 'Office Savers'
        assert str(group.contribution_amount) == '250.00'
        assert group.frequency == 'weekly'

    def test_plain_member_cannot_update(self, make_group, make_user):
        alice = make_user('alice')
        group = make_group(members=[alice])

        with pytest.raises(PermissionDenied):
            GroupService.update_group_settings(group, alice, GROUP_DATA)

    def test_invalid_settings(self, make_group, president):
        group = make_group()

        with pytest.raises(InvalidInput):
            GroupService.update_group_settings(group, president, {**GROUP_DATA, 'name': ''})
        group.refresh_from_db()
        assert group.name == 'Family Circle'


@pytest.mark.django_db
class TestArchiveAndDelete:
    def test_archive_and_restore(self, make_group, president):
        group = make_group()

        GroupService.archive_group(group, president)
        assert group.is_archived
        with pytest.raises(StateConflict):
            GroupService.archive_group(group, president)

        GroupService.restore_group(group, president)
        group.refresh_from_db()
        assert not group.is_archived

    def test_only_president_archives(self, make_group, make_user):
        vp = make_user('vp')
        group = make_group(members=[vp])
        Member.objects.filter(user=vp).update(role='vice_president')

        with pytest.raises(PermissionDenied):
            GroupService.archive_group(group, vp)

    def test_delete_cascades(self, make_group, make_user, president):
        alice = make_user('alice')
        group = make_group(members=[alice])
        CycleService.start_cycle(group, president, date(2026, 3, 1), date(2026, 3, 31))

        deleted = GroupService.delete_group(group, president)

        assert deleted == {'payment_logs': 2, 'cycles': 1, 'members': 2}
        assert not Group.objects.exists()
        assert not PaymentCycle.objects.exists()
        assert not ActivityLog.objects.exists()
        assert Notification.objects.filter(group__isnull=True).count() == 2

    def test_plain_member_cannot_delete(self, make_group, make_user):
        alice = make_user('alice')
        group = make_group(members=[alice])

        with pytest.raises(PermissionDenied):
            GroupService.delete_group(group, alice)
        assert Group.objects.filter(pk=group.pk).exists()


@pytest.mark.django_db
class TestReadModels:
    def test_user_groups_hide_archived(self, make_group, make_user, president):
        alice = make_user('alice')
        kept = make_group(members=[alice], name='Kept')
        archived = make_group(members=[alice], name='Archived')
        GroupService.archive_group(archived, president)

        assert [g.name for g in GroupService.get_user_groups(alice)] == ['Kept']
        groups = GroupService.get_user_groups(alice, include_archived=True)
        assert {g.name for g in groups} == {'Kept', 'Archived'}
        assert {g.active_member_count for g in groups} == {2}
        assert kept in groups

    def test_overview(self, make_group, make_user, president):
        alice = make_user('alice')
        group = make_group(members=[alice])

        overview = GroupService.get_group_overview(group, alice)

        assert overview['membership']['queue_position'] == 2
        assert overview['is_admin'] is False
        assert [entry['queue_position'] for entry in overview['queue']] == [1, 2]
        assert overview['active_cycle']['cycle'] is None

    def test_unknown_group(self, db):
        with pytest.raises(NotFound):
            GroupService.get_group('not-a-uuid')
