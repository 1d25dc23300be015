import uuid
from datetime import date

import pytest
from django.db import DatabaseError
from django.urls import reverse

from circles.models import Group, Member, PaymentLog
from circles.rate_limit import RateLimitRule, get_rate_limiter
from circles.services import CycleService


def start(group, president):
    return CycleService.start_cycle(group, president, date(2026, 3, 1), date(2026, 3, 31))['cycle']


@pytest.mark.django_db
class TestGroupViews:
    def test_login_required(self, client):
        response = client.post(reverse('circles:create_group'), {})
        assert response.status_code == 302

    def test_create_group(self, client, president):
        client.force_login(president)
        response = client.post(reverse('circles:create_group'), {
            'name': 'Office Savers', 'contribution_amount': '50', 'frequency': 'weekly',
        })

        assert response.status_code == 201
        data = response.json()
        assert data['success'] is True
        assert data['group']['name'] == 'Office Savers'
        assert Group.objects.filter(president=president).count() == 1

    def test_create_group_invalid(self, client, president):
        client.force_login(president)
        response = client.post(reverse('circles:create_group'), {'name': '', 'frequency': 'weekly'})

        assert response.status_code == 400
        assert 'name' in response.json()['errors']

    def test_create_group_rate_limited(self, client, president, monkeypatch):
        monkeypatch.setitem(get_rate_limiter().rules, 'create_group', RateLimitRule(1, 3600, 'create'))
        client.force_login(president)
        data = {'name': 'Office Savers', 'contribution_amount': '50', 'frequency': 'weekly'}
        client.post(reverse('circles:create_group'), data)

        response = client.post(reverse('circles:create_group'), data)

        assert response.status_code == 429
        assert int(response['Retry-After']) > 0
        assert response.json()['retry_after'] > 0

    def test_get_not_allowed_on_commands(self, client, president):
        client.force_login(president)
        response = client.get(reverse('circles:create_group'))
        assert response.status_code == 405

    def test_lookup_and_join(self, client, make_group, make_user):
        group = make_group()
        alice = make_user('alice')
        client.force_login(alice)

        response = client.get(reverse('circles:lookup_invite'), {'code': group.invite_code.lower()})
        assert response.status_code == 200
        assert response.json()['group']['name'] == 'Family Circle'

        response = client.post(reverse('circles:join_group'), {'invite_code': group.invite_code})
        assert response.status_code == 200
        assert response.json()['queue_position'] == 2

        response = client.post(reverse('circles:join_group'), {'invite_code': group.invite_code})
        assert response.status_code == 409

    def test_lookup_errors(self, client, make_user):
        client.force_login(make_user('alice'))

        assert client.get(reverse('circles:lookup_invite'), {'code': 'ab'}).status_code == 400
        assert client.get(reverse('circles:lookup_invite'), {'code': 'NOSUCHCODE'}).status_code == 404

    def test_group_detail_members_only(self, client, make_group, make_user, president):
        alice, outsider = make_user('alice'), make_user('outsider')
        group = make_group(members=[alice])
        url = reverse('circles:group_detail', kwargs={'group_id': group.id})

        client.force_login(outsider)
        assert client.get(url).status_code == 403

        client.force_login(alice)
        response = client.get(url)
        assert response.status_code == 200
        assert response.json()['membership']['queue_position'] == 2

    def test_group_detail_unknown_group(self, client, president):
        client.force_login(president)
        url = reverse('circles:group_detail', kwargs={'group_id': uuid.uuid4()})
        assert client.get(url).status_code == 404

    def test_archive_requires_president(self, client, make_group, make_user):
        alice = make_user('alice')
        group = make_group(members=[alice])
        client.force_login(alice)

        response = client.post(reverse('circles:archive_group', kwargs={'group_id': group.id}))

        assert response.status_code == 403
        assert 'error' in response.json()

    def test_delete_group(self, client, make_group, president):
        group = make_group()
        client.force_login(president)

        response = client.post(reverse('circles:delete_group', kwargs={'group_id': group.id}))

        assert response.status_code == 200
        assert not Group.objects.exists()


@pytest.mark.django_db
class TestQueueViews:
    def test_move_member(self, client, make_group, make_user, president):
        alice = make_user('alice')
        group = make_group(members=[alice])
        member = Member.objects.get(user=alice)
        client.force_login(president)

        response = client.post(reverse('circles:move_member', kwargs={'member_id': member.id}), {'direction': 'up'})

        assert response.status_code == 200
        assert response.json()['moved'] is True
        queue = client.get(reverse('circles:queue', kwargs={'group_id': group.id})).json()['queue']
        assert [entry['name'] for entry in queue] == ['alice', 'Grace Hopper']

    def test_move_boundary_is_not_an_error(self, client, make_group, president):
        make_group()
        member = Member.objects.get(user=president)
        client.force_login(president)

        response = client.post(reverse('circles:move_member', kwargs={'member_id': member.id}), {'direction': 'up'})

        assert response.status_code == 200
        assert response.json()['moved'] is False

    def test_move_bad_direction(self, client, make_group, president):
        make_group()
        member = Member.objects.get(user=president)
        client.force_login(president)

        response = client.post(reverse('circles:move_member', kwargs={'member_id': member.id}), {'direction': 'left'})
        assert response.status_code == 400

    def test_restore_member(self, client, make_group, make_user, president):
        alice = make_user('alice')
        make_group(members=[alice])
        member = Member.objects.get(user=alice)
        Member.objects.filter(pk=member.pk).update(status='locked', missed_payment_count=3)
        client.force_login(president)

        response = client.post(reverse('circles:restore_member', kwargs={'member_id': member.id}))

        assert response.status_code == 200
        assert response.json()['queue_position'] == 2


@pytest.mark.django_db
class TestCycleViews:
    def test_start_cycle(self, client, make_group, president):
        group = make_group()
        client.force_login(president)
        url = reverse('circles:start_cycle', kwargs={'group_id': group.id})

        response = client.post(url, {'start_date': '2026-03-01', 'due_date': '2026-03-31'})
        assert response.status_code == 201
        assert response.json()['payment_logs_created'] == 1

        response = client.post(url, {'start_date': '2026-04-01', 'due_date': '2026-04-30'})
        assert response.status_code == 409

    def test_start_cycle_bad_dates(self, client, make_group, president):
        group = make_group()
        client.force_login(president)

        response = client.post(
            reverse('circles:start_cycle', kwargs={'group_id': group.id}),
            {'start_date': '2026-03-31', 'due_date': '2026-03-01'},
        )
        assert response.status_code == 400

    def test_payment_flow(self, client, make_group, make_user, president):
        alice = make_user('alice')
        group = make_group(members=[alice])
        cycle = start(group, president)
        log = PaymentLog.objects.get(cycle=cycle, member__user=alice)

        client.force_login(president)
        response = client.post(reverse('circles:mark_sent', kwargs={'log_id': log.id}))
        assert response.status_code == 403

        client.force_login(alice)
        response = client.post(reverse('circles:mark_sent', kwargs={'log_id': log.id}))
        assert response.status_code == 200
        assert response.json()['payment']['status'] == 'pending'

        response = client.post(reverse('circles:verify_payment', kwargs={'log_id': log.id}))
        assert response.status_code == 403

        client.force_login(president)
        response = client.post(reverse('circles:verify_payment', kwargs={'log_id': log.id}))
        assert response.status_code == 200
        assert response.json()['payment']['status'] == 'verified'

        status = client.get(reverse('circles:current_cycle', kwargs={'group_id': group.id})).json()
        assert status['totals']['verified'] == 1

    def test_unknown_log(self, client, president):
        client.force_login(president)
        response = client.post(reverse('circles:verify_payment', kwargs={'log_id': uuid.uuid4()}))
        assert response.status_code == 404

    def test_remind_and_remind_all(self, client, make_group, make_user, president):
        alice = make_user('alice')
        group = make_group(members=[alice])
        cycle = start(group, president)
        log = PaymentLog.objects.get(cycle=cycle, member__user=alice)
        client.force_login(president)

        response = client.post(reverse('circles:remind_member', kwargs={'log_id': log.id}))
        assert response.json()['reminded'] is True

        response = client.post(reverse('circles:remind_member', kwargs={'log_id': log.id}))
        assert response.status_code == 200
        assert response.json()['reason'] == 'already_reminded_recently'

        response = client.post(reverse('circles:remind_all', kwargs={'group_id': group.id}))
        assert response.json()['reminded'] == 1
        assert response.json()['skipped'] == 1

    def test_close_cycle(self, client, make_group, make_user, president):
        alice = make_user('alice')
        group = make_group(members=[alice])
        cycle = start(group, president)
        client.force_login(president)
        url = reverse('circles:close_cycle', kwargs={'cycle_id': cycle.id})

        response = client.post(url)
        assert response.status_code == 200
        assert response.json()['missed_payments'] == 2

        assert client.post(url).status_code == 409

        history = client.get(reverse('circles:cycle_history', kwargs={'group_id': group.id})).json()
        assert len(history['cycles']) == 1

    def test_database_error_is_reported_generically(self, client, make_group, president, monkeypatch):
        group = make_group()
        cycle = start(group, president)

        def broken(*args, **kwargs):
            raise DatabaseError('disk I/O error')
        monkeypatch.setattr(CycleService, 'close_cycle', broken)
        client.force_login(president)

        response = client.post(reverse('circles:close_cycle', kwargs={'cycle_id': cycle.id}))

        assert response.status_code == 500
        assert 'disk' not in response.json()['error']
