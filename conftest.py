import pytest
from datetime import date
from decimal import Decimal


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    from circles.rate_limit import get_rate_limiter
    get_rate_limiter().reset()
    yield
    get_rate_limiter().reset()


@pytest.fixture
def make_user(db):
    from django.contrib.auth.models import User
    counter = {'n': 0}

    def make(username=None, **extra):
        counter['n'] += 1
        username = username or f'user{counter["n"]}'
        return User.objects.create_user(username=username, password='pass', **extra)
    return make


@pytest.fixture
def president(make_user):
    return make_user('president', first_name='Grace', last_name='Hopper')


@pytest.fixture
def make_group(president):
    """Group with the president at position 1 and members appended after"""
    from circles.models import Group, Member

    def make(members=(), name='Family Circle', amount='100.00'):
        group = Group.objects.create(
            name=name,
            president=president,
            contribution_amount=Decimal(amount),
            frequency='monthly',
            invite_code=f'CODE{Group.objects.count():04d}',
        )
        Member.objects.create(group=group, user=president, queue_position=1, role='president')
        for position, user in enumerate(members, start=2):
            Member.objects.create(group=group, user=user, queue_position=position)
        return group
    return make


@pytest.fixture
def cycle_dates():
    return date(2026, 3, 1), date(2026, 3, 31)
