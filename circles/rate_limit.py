"""
Process-local request rate limiting.

A single RateLimiter is built when the circles app is ready and handed to the
services that need it. Counters use fixed windows keyed by rule prefix and
caller identifier; expired entries are evicted by sweep(), which check() also
runs on its own every SWEEP_INTERVAL seconds.
"""

import threading
import time
from collections import namedtuple

from .exceptions import RateLimitExceeded

import logging
logger = logging.getLogger(__name__)


RateLimitRule = namedtuple('RateLimitRule', ['max_requests', 'window_seconds', 'key_prefix'])

RateLimitResult = namedtuple('RateLimitResult', ['allowed', 'remaining', 'retry_after_seconds'])


RATE_LIMITS = {
    'create_group': RateLimitRule(10, 60 * 60, 'create'),
    'join_group': RateLimitRule(20, 60 * 60, 'join'),
    'mark_payment': RateLimitRule(30, 60 * 60, 'payment'),
    'verify_payment': RateLimitRule(50, 60 * 60, 'verify'),
    'default': RateLimitRule(100, 60, 'general'),
}


class RateLimiter:
    """Fixed-window counters held in memory"""

    SWEEP_INTERVAL = 5 * 60

    def __init__(self, rules=None, clock=time.monotonic):
        self.rules = dict(RATE_LIMITS)
        if rules:
            self.rules.update(rules)
        self._clock = clock
        self._entries = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def _rule(self, rule):
        if isinstance(rule, RateLimitRule):
            return rule
        return self.rules.get(rule, self.rules['default'])

    def check(self, identifier, rule='default'):
        """Count one request for identifier; report whether it is allowed"""
        rule = self._rule(rule)
        key = f"{rule.key_prefix}:{identifier}"
        now = self._clock()

        with self._lock:
            if now - self._last_sweep >= self.SWEEP_INTERVAL:
                self._sweep_locked(now)

            entry = self._entries.get(key)
            if entry is None or now >= entry[1]:
                self._entries[key] = [1, now + rule.window_seconds]
                return RateLimitResult(True, rule.max_requests - 1, 0)

            count, reset_at = entry
            if count >= rule.max_requests:
                return RateLimitResult(False, 0, reset_at - now)

            entry[0] = count + 1
            return RateLimitResult(True, rule.max_requests - entry[0], 0)

    def enforce(self, identifier, rule='default'):
        """check(), raising RateLimitExceeded when the request is not allowed"""
        result = self.check(identifier, rule)
        if not result.allowed:
            logger.warning(f"Rate limit '{rule}' exceeded for {identifier}")
            raise RateLimitExceeded(result.retry_after_seconds)
        return result

    def sweep(self):
        """Drop every expired counter; returns how many were removed"""
        with self._lock:
            return self._sweep_locked(self._clock())

    def _sweep_locked(self, now):
        expired = [key for key, (_, reset_at) in self._entries.items() if now >= reset_at]
        for key in expired:
            del self._entries[key]
        self._last_sweep = now
        if expired:
            logger.debug(f"Rate limiter swept {len(expired)} expired entries")
        return len(expired)

    def reset(self):
        with self._lock:
            self._entries.clear()

    def __len__(self):
        return len(self._entries)


def get_rate_limiter(rate_limiter=None):
    """The given limiter, or the one built by the circles app at startup"""
    # An empty limiter is falsy (len 0), so compare against None
    if rate_limiter is not None:
        return rate_limiter
    from django.apps import apps
    return apps.get_app_config('circles').rate_limiter
