"""
Advisory in-process push channel.

Subscribers register for a group, a payment log, or a user and receive every
event published for that key. Delivery is at-most-once with no replay and no
ordering across rows: a subscriber that raises is logged and skipped. Events
only tell a session to refresh; the database stays the source of truth.
"""

import itertools
import threading

import logging
logger = logging.getLogger(__name__)


class Subscription:
    def __init__(self, channel, sub_id, key):
        self.channel = channel
        self.id = sub_id
        self.key = key

    def cancel(self):
        self.channel.unsubscribe(self)


class PushChannel:

    def __init__(self):
        self._subscribers = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    @staticmethod
    def _key(group_id=None, log_id=None, user_id=None):
        given = [(name, value) for name, value in (
            ('group', group_id), ('log', log_id), ('user', user_id)
        ) if value is not None]
        if len(given) != 1:
            raise ValueError("Subscribe with exactly one of group_id, log_id or user_id")
        name, value = given[0]
        return f"{name}:{value}"

    def subscribe(self, callback, group_id=None, log_id=None, user_id=None):
        key = self._key(group_id=group_id, log_id=log_id, user_id=user_id)
        with self._lock:
            sub_id = next(self._ids)
            self._subscribers.setdefault(key, {})[sub_id] = callback
        return Subscription(self, sub_id, key)

    def unsubscribe(self, subscription):
        with self._lock:
            callbacks = self._subscribers.get(subscription.key)
            if callbacks is not None:
                callbacks.pop(subscription.id, None)
                if not callbacks:
                    del self._subscribers[subscription.key]

    def publish(self, payload, group_id=None, log_id=None, user_id=None):
        """Deliver payload to every subscriber of the given keys; returns delivery count"""
        keys = []
        if group_id is not None:
            keys.append(f"group:{group_id}")
        if log_id is not None:
            keys.append(f"log:{log_id}")
        if user_id is not None:
            keys.append(f"user:{user_id}")

        with self._lock:
            targets = [
                callback
                for key in keys
                for callback in self._subscribers.get(key, {}).values()
            ]

        delivered = 0
        for callback in targets:
            try:
                callback(payload)
                delivered += 1
            except Exception as e:
                logger.warning(f"Push subscriber failed: {str(e)}")
        return delivered

    def subscriber_count(self):
        with self._lock:
            return sum(len(callbacks) for callbacks in self._subscribers.values())


def get_push_channel():
    """The channel built by the notifications app at startup"""
    from django.apps import apps
    return apps.get_app_config('notifications').push_channel
