import pytest

from circles.exceptions import RateLimitExceeded
from circles.rate_limit import RateLimiter, RateLimitRule, RATE_LIMITS, get_rate_limiter


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class TestRateLimiter:
    def test_requests_within_limit_are_allowed(self):
        limiter = RateLimiter(rules={'test': RateLimitRule(3, 60, 'test')}, clock=FakeClock())

        results = [limiter.check('u1', 'test') for _ in range(3)]

        assert all(r.allowed for r in results)
        assert [r.remaining for r in results] == [2, 1, 0]

    def test_request_over_limit_reports_retry_after(self):
        clock = FakeClock()
        limiter = RateLimiter(rules={'test': RateLimitRule(2, 60, 'test')}, clock=clock)
        limiter.check('u1', 'test')
        clock.now += 15
        limiter.check('u1', 'test')

        result = limiter.check('u1', 'test')

        assert result.allowed is False
        assert result.remaining == 0
        assert result.retry_after_seconds == 45

    def test_window_resets(self):
        clock = FakeClock()
        limiter = RateLimiter(rules={'test': RateLimitRule(1, 60, 'test')}, clock=clock)
        limiter.check('u1', 'test')
        assert not limiter.check('u1', 'test').allowed

        clock.now += 60
        assert limiter.check('u1', 'test').allowed

    def test_identifiers_and_rules_are_independent(self):
        limiter = RateLimiter(clock=FakeClock())
        for _ in range(RATE_LIMITS['create_group'].max_requests):
            limiter.check('u1', 'create_group')

        assert not limiter.check('u1', 'create_group').allowed
        assert limiter.check('u2', 'create_group').allowed
        assert limiter.check('u1', 'join_group').allowed

    def test_unknown_rule_uses_default(self):
        limiter = RateLimiter(clock=FakeClock())
        result = limiter.check('u1', 'no_such_rule')
        assert result.remaining == RATE_LIMITS['default'].max_requests - 1

    def test_enforce_raises(self):
        limiter = RateLimiter(rules={'test': RateLimitRule(1, 120, 'test')}, clock=FakeClock())
        limiter.enforce('u1', 'test')

        with pytest.raises(RateLimitExceeded) as exc_info:
            limiter.enforce('u1', 'test')

        assert exc_info.value.retry_after_seconds == 120
        assert exc_info.value.status_code == 429
        assert '2 minute(s)' in exc_info.value.message

    def test_sweep_drops_expired_entries(self):
        clock = FakeClock()
        limiter = RateLimiter(rules={
            'short': RateLimitRule(5, 10, 'short'),
            'long': RateLimitRule(5, 1000, 'long'),
        }, clock=clock)
        limiter.check('u1', 'short')
        limiter.check('u1', 'long')
        assert len(limiter) == 2

        clock.now += 10
        assert limiter.sweep() == 1
        assert len(limiter) == 1

    def test_check_sweeps_periodically(self):
        clock = FakeClock()
        limiter = RateLimiter(rules={'short': RateLimitRule(5, 10, 'short')}, clock=clock)
        for identifier in ('a', 'b', 'c'):
            limiter.check(identifier, 'short')

        clock.now += RateLimiter.SWEEP_INTERVAL
        limiter.check('d', 'short')

        assert len(limiter) == 1

    def test_reset(self):
        limiter = RateLimiter(clock=FakeClock())
        limiter.check('u1')
        limiter.reset()
        assert len(limiter) == 0

    def test_app_builds_one_limiter(self):
        assert get_rate_limiter() is get_rate_limiter()
        assert isinstance(get_rate_limiter(), RateLimiter)
