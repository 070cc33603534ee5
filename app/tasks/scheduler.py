"""
Scheduled tasks configuration for Celery Beat
"""

from celery.schedules import crontab
from app.celery_app import celery
from app.core.config import settings

# Configure periodic tasks
celery.conf.beat_schedule = {
    'settle-ended-contests': {
        'task': 'app.tasks.settlement.settle_ended_contests',
        'schedule': crontab(minute=f'*/{settings.settlement_sweep_minutes}'),
    },
}
