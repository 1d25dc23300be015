from django.core.exceptions import PermissionDenied
from django.db import DatabaseError
from django.http import JsonResponse

from .exceptions import CircleError, InvalidInput, RateLimitExceeded
from .models import Group, Member

import logging
logger = logging.getLogger(__name__)


def json_command(function):
    """Turn service errors into JSON error responses with a matching status"""
    def wrap(request, *args, **kwargs):
        try:
            return function(request, *args, **kwargs)
        except RateLimitExceeded as e:
            response = JsonResponse(
                {'error': e.message, 'retry_after': e.retry_after_seconds}, status=e.status_code
            )
            response['Retry-After'] = str(e.retry_after_seconds)
            return response
        except InvalidInput as e:
            body = {'error': e.message}
            if e.errors:
                body['errors'] = e.errors
            return JsonResponse(body, status=e.status_code)
        except CircleError as e:
            return JsonResponse({'error': e.message}, status=e.status_code)
        except PermissionDenied as e:
            return JsonResponse({'error': str(e) or 'Permission denied'}, status=403)
        except DatabaseError as e:
            logger.error(f"Database error in {function.__name__}: {str(e)}")
            return JsonResponse({'error': 'Something went wrong. Please try again.'}, status=500)
    wrap.__doc__ = function.__doc__
    wrap.__name__ = function.__name__
    return wrap


def is_group_member(function):
    """Only the president or members of kwargs['group_id'] get through"""
    def wrap(request, *args, **kwargs):
        group = Group.objects.filter(pk=kwargs['group_id']).first()
        if group is None:
            return JsonResponse({'error': 'Group not found'}, status=404)
        user = request.user
        if group.president_id == user.pk or Member.objects.filter(group=group, user=user).exists():
            return function(request, *args, **kwargs)
        return JsonResponse({'error': 'Not a member'}, status=403)
    wrap.__doc__ = function.__doc__
    wrap.__name__ = function.__name__
    return wrap
