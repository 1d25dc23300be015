from django.core.exceptions import PermissionDenied

from .models import Member


def get_membership(group, user):
    if user is None or not user.is_authenticated:
        return None
    return Member.objects.filter(group=group, user=user).first()


def is_group_admin(group, user):
    """President of the group, or an unlocked president/vice-president member"""
    if user is None or not user.is_authenticated:
        return False
    if group.president_id == user.pk:
        return True
    return Member.objects.filter(
        group=group,
        user=user,
        role__in=Member.ADMIN_ROLES,
    ).exclude(status='locked').exists()


def is_group_president(group, user):
    return user is not None and user.is_authenticated and group.president_id == user.pk


def require_group_admin(group, user):
    if not is_group_admin(group, user):
        raise PermissionDenied('Only the group president or vice-president can do this')


def require_group_president(group, user):
    if not is_group_president(group, user):
        raise PermissionDenied('Only the group president can do this')


def require_member_owner(member, user):
    if user is None or not user.is_authenticated or member.user_id != user.pk:
        raise PermissionDenied('You can only act on your own membership')


def get_group_admins(group):
    """Users allowed to verify payments in group"""
    from django.contrib.auth.models import User
    admin_ids = set(
        Member.objects.filter(group=group, role__in=Member.ADMIN_ROLES)
        .exclude(status='locked')
        .values_list('user_id', flat=True)
    )
    admin_ids.add(group.president_id)
    return list(User.objects.filter(pk__in=admin_ids))
