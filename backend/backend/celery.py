import os

from celery import Celery
from celery.schedules import crontab

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'backend.settings')

app = Celery('backend')

# Read CELERY_* keys from Django settings.
app.config_from_object('django.conf:settings', namespace='CELERY')

app.autodiscover_tasks()

# Payment reconciliation and period close each get a worker queue.
BILLING_QUEUE = 'billing'
USAGE_QUEUE = 'usage'

app.conf.task_routes = {
    'billing.tasks.retry_unprocessed_payment_events': {'queue': BILLING_QUEUE},
    'usage.tasks.close_usage_period_task': {'queue': USAGE_QUEUE},
    '*': {'queue': 'default'},
}
app.conf.task_default_queue = 'default'

app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
    task_track_started=True,
    task_time_limit=15 * 60,
    task_soft_time_limit=12 * 60,
    # Ledger and usage writes are idempotent, so redelivery after a lost worker is safe.
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    worker_send_task_events=True,
    task_send_sent_event=True,
    task_queues={
        name: {'exchange': name, 'routing_key': name}
        for name in ('default', BILLING_QUEUE, USAGE_QUEUE)
    },
    task_default_priority=5,
)

app.conf.task_annotations = {
    'usage.tasks.close_usage_period_task': {
        'time_limit': 3600,  # one pass over every aggregate of the period
        'soft_time_limit': 3300,
    },
}

app.conf.beat_schedule = {
    'retry-unprocessed-payment-events': {
        'task': 'billing.tasks.retry_unprocessed_payment_events',
        'schedule': crontab(minute='*/10'),
        'options': {'queue': BILLING_QUEUE, 'priority': 8},
    },
    'close-previous-usage-period': {
        'task': 'usage.tasks.close_usage_period_task',
        # 00:30 UTC on the 1st, once the previous month has no more events
        'schedule': crontab(day_of_month=1, hour=0, minute=30),
        'options': {'queue': USAGE_QUEUE},
    },
}
