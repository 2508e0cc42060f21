# barberbook/celery.py
import os
from celery import Celery
from celery.schedules import crontab

# Set default Django settings
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "barberbook.settings")

app = Celery("barberbook")
# Read config from Django settings, using `CELERY_` namespace
app.config_from_object("django.conf:settings", namespace="CELERY")
# Auto-discover tasks from all installed apps
app.autodiscover_tasks()

# Celery Beat schedule: periodic tasks
app.conf.beat_schedule = {
    # Deliver due notification jobs every minute
    "process-notification-jobs": {
        "task": "api.tasks.process_notification_jobs",
        "schedule": crontab(minute="*"),
    },
}
