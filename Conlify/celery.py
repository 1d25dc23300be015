import os

from celery import Celery
from celery.schedules import crontab

# Set default Django settings module
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'Conlify.settings')

app = Celery('Conlify')

# Load config from Django settings (prefixed with CELERY_)
app.config_from_object('django.conf:settings', namespace='CELERY')

# Auto-discover tasks in all installed apps
app.autodiscover_tasks()

app.conf.beat_schedule = {
    'circles-due-date-reminders': {
        'task': 'circles.send_due_date_reminders',
        'schedule': crontab(hour=8, minute=0),
    },
}
