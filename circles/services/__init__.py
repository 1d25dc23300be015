from .queue_service import QueueService
from .cycle_service import CycleService
from .reminder_service import ReminderService, ALREADY_REMINDED
from .group_service import GroupService

__all__ = ['QueueService', 'CycleService', 'ReminderService', 'GroupService', 'ALREADY_REMINDED']
