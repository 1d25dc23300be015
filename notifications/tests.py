from datetime import date

import pytest
from django.db import DatabaseError
from django.urls import reverse

from circles.models import PaymentLog
from circles.services import CycleService
from notifications import types
from notifications.channels import PushChannel, get_push_channel
from notifications.helpers import NotificationHelper, format_amount
from notifications.models import ActivityLog, Notification
from notifications.utils import (
    create_notification, format_activity_message, get_user_display_name, log_activity,
)


@pytest.mark.django_db
class TestNotificationMessage:
    def test_row_round_trip_keeps_fields(self, make_group, president):
        group = make_group()
        row = create_notification(president, 'cycle_started', 'New cycle', 'Pay up', group=group)

        message = types.from_row(row)

        assert message.id == str(row.id)
        assert message.group_id == str(group.id)
        assert message.group_name == 'Family Circle'
        assert message.read is False
        assert types.to_row(message).notification_type == 'cycle_started'

    def test_push_payload_mapping(self, make_group, president):
        group = make_group()
        message = types.NotificationMessage(
            notification_type='payment_pending',
            title='Payment Marked as Sent',
            message='alice marked their payment as sent',
            user_id=president.pk,
            group_id=group.id,
            group_name=group.name,
        )

        payload = types.to_push_payload(message)
        assert payload['kind'] == 'notification'
        assert payload['type'] == 'payment_pending'
        assert payload['group_id'] == str(group.id)
        assert payload['id'] == message.id
        assert payload['read'] is False

    def test_unknown_type_is_rejected(self):
        with pytest.raises(ValueError):
            types.NotificationMessage(notification_type='birthday', title='x', message='y')

    def test_every_model_type_is_known(self):
        assert types.NOTIFICATION_TYPES == {code for code, _ in Notification.NOTIFICATION_TYPE_CHOICES}


class TestPushChannel:
    def test_publish_reaches_matching_subscribers(self):
        channel = PushChannel()
        group_events, log_events = [], []
        channel.subscribe(group_events.append, group_id='g1')
        channel.subscribe(log_events.append, log_id='l1')

        delivered = channel.publish({'status': 'pending'}, group_id='g1', log_id='l1')

        assert delivered == 2
        assert group_events == [{'status': 'pending'}]
        assert log_events == [{'status': 'pending'}]
        assert channel.publish({'status': 'x'}, group_id='other') == 0

    def test_cancel_stops_delivery(self):
        channel = PushChannel()
        received = []
        subscription = channel.subscribe(received.append, user_id=7)

        subscription.cancel()

        assert channel.publish({'a': 1}, user_id=7) == 0
        assert channel.subscriber_count() == 0

    def test_failing_subscriber_does_not_block_others(self):
        channel = PushChannel()
        received = []

        def broken(payload):
            raise RuntimeError('socket closed')
        channel.subscribe(broken, group_id='g1')
        channel.subscribe(received.append, group_id='g1')

        assert channel.publish({'a': 1}, group_id='g1') == 1
        assert received == [{'a': 1}]

    def test_subscribe_needs_exactly_one_key(self):
        channel = PushChannel()
        with pytest.raises(ValueError):
            channel.subscribe(print)
        with pytest.raises(ValueError):
            channel.subscribe(print, group_id='g1', user_id=1)


@pytest.mark.django_db
class TestRelay:
    def test_payment_log_changes_are_pushed_after_commit(
        self, make_group, make_user, president, django_capture_on_commit_callbacks
    ):
        alice = make_user('alice')
        group = make_group(members=[alice])
        cycle = CycleService.start_cycle(group, president, date(2026, 3, 1), date(2026, 3, 31))['cycle']
        log = PaymentLog.objects.get(cycle=cycle, member__user=alice)
        by_group, by_log = [], []
        subscriptions = [
            get_push_channel().subscribe(by_group.append, group_id=group.id),
            get_push_channel().subscribe(by_log.append, log_id=log.id),
        ]

        try:
            with django_capture_on_commit_callbacks(execute=True):
                CycleService.mark_as_sent(log.id, alice)
        finally:
            for subscription in subscriptions:
                subscription.cancel()

        assert [p['status'] for p in by_log] == ['pending']
        assert [p['status'] for p in by_group] == ['pending']
        assert by_log[0]['group_id'] == str(group.id)

    def test_created_notification_is_pushed_to_user(
        self, make_group, president, django_capture_on_commit_callbacks
    ):
        group = make_group()
        received = []
        subscription = get_push_channel().subscribe(received.append, user_id=president.pk)

        try:
            with django_capture_on_commit_callbacks(execute=True):
                row = create_notification(president, 'member_joined', 'New Member', 'bob joined', group=group)
        finally:
            subscription.cancel()

        assert [p['id'] for p in received] == [str(row.id)]

    def test_activity_failure_keeps_the_mutation(self, make_group, make_user, president, monkeypatch):
        alice = make_user('alice')
        group = make_group(members=[alice])
        cycle = CycleService.start_cycle(group, president, date(2026, 3, 1), date(2026, 3, 31))['cycle']
        log = PaymentLog.objects.get(cycle=cycle, member__user=alice)

        def broken(**kwargs):
            raise DatabaseError('activity table is gone')
        monkeypatch.setattr(ActivityLog.objects, 'create', broken)

        CycleService.mark_as_sent(log.id, alice)

        log.refresh_from_db()
        assert log.status == 'pending'

    def test_log_activity_returns_none_on_failure(self, make_group, monkeypatch):
        group = make_group()

        def broken(**kwargs):
            raise DatabaseError('nope')
        monkeypatch.setattr(ActivityLog.objects, 'create', broken)

        assert log_activity(group, 'cycle_started') is None

    def test_activity_messages(self, make_group, make_user, president):
        alice = make_user('alice')
        group = make_group(members=[alice])

        activity = log_activity(group, 'queue_reordered', actor=president, target=alice,
                                metadata={'direction': 'up'})

        assert format_activity_message(activity) == 'Grace Hopper moved alice up the queue'

    def test_display_name_fallbacks(self, make_user):
        assert get_user_display_name(None) == 'Unknown'
        assert get_user_display_name(make_user('bob', email='bob@example.com')) == 'bob@example.com'
        assert get_user_display_name(make_user('carol')) == 'carol'

    def test_format_amount(self):
        from decimal import Decimal
        assert format_amount(Decimal('100.00')) == '$100'
        assert format_amount(Decimal('1250.50')) == '$1,250.50'

    def test_cycle_closed_notifies_every_participant(self, make_group, make_user, president):
        alice = make_user('alice')
        group = make_group(members=[alice])
        members = list(group.get_active_members().select_related('user'))

        rows = NotificationHelper.notify_cycle_closed(members, group, missed_payments=1, locked_count=0)

        assert len(rows) == 2
        assert rows[0].message == 'The payment cycle has been closed. 1 missed payment(s), 0 member(s) locked.'


@pytest.mark.django_db
class TestNotificationViews:
    def test_list_and_read(self, client, make_group, president):
        group = make_group()
        first = create_notification(president, 'cycle_started', 'One', 'first', group=group)
        create_notification(president, 'cycle_closed', 'Two', 'second', group=group)
        client.force_login(president)

        data = client.get(reverse('notifications:notification_list')).json()
        assert data['unread_count'] == 2
        assert len(data['notifications']) == 2

        response = client.post(reverse('notifications:mark_read', kwargs={'notification_id': first.id}))
        assert response.status_code == 200
        assert client.get(reverse('notifications:unread_count')).json()['unread_count'] == 1

        response = client.post(reverse('notifications:mark_all_read'))
        assert response.json()['updated'] == 1

        response = client.post(reverse('notifications:clear'))
        assert response.json()['deleted'] == 2
        assert not Notification.objects.filter(user=president).exists()

    def test_list_uses_the_push_payload_shape(self, client, make_group, president):
        group = make_group()
        row = create_notification(president, 'cycle_started', 'New cycle', 'Pay up', group=group)
        client.force_login(president)

        listed = client.get(reverse('notifications:notification_list')).json()['notifications']

        assert listed == [types.to_push_payload(types.from_row(row))]
        assert listed[0]['group_name'] == 'Family Circle'

    def test_cannot_read_someone_elses_notification(self, client, make_user, president):
        note = create_notification(president, 'member_joined', 'New Member', 'bob joined')
        client.force_login(make_user('mallory'))

        response = client.post(reverse('notifications:mark_read', kwargs={'notification_id': note.id}))

        assert response.status_code == 404
        note.refresh_from_db()
        assert note.read_at is None

    def test_group_activity_members_only(self, client, make_group, make_user, president):
        alice = make_user('alice')
        group = make_group(members=[alice])
        log_activity(group, 'member_joined', actor=alice)
        url = reverse('notifications:group_activity', kwargs={'group_id': group.id})

        client.force_login(make_user('outsider'))
        assert client.get(url).status_code == 403

        client.force_login(alice)
        activities = client.get(url).json()['activities']
        assert [a['message'] for a in activities] == ['alice joined the group']
