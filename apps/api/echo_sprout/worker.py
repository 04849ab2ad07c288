"""
Celery worker for Echo Sprout background jobs.

Start worker:    celery -A echo_sprout.worker worker --loglevel=info
Start beat:      celery -A echo_sprout.worker beat --loglevel=info
Start both:      celery -A echo_sprout.worker worker --beat --loglevel=info
"""
from celery import Celery
from celery.schedules import crontab

from echo_sprout.core.config import settings
from echo_sprout.core.sentry import init_sentry

celery_app = Celery(
    "echo_sprout_worker",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.REDIS_URL,
    include=[
        "echo_sprout.tasks.report_retention",
    ],
)

init_sentry(settings.SENTRY_DSN, settings.SENTRY_ENVIRONMENT, settings.APP_VERSION)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    result_expires=86400,  # 24h
)

celery_app.conf.beat_schedule = {
    "expire-buyer-reports": {
        "task": "expire_buyer_reports",
        "schedule": crontab(hour=4, minute=0),  # nightly 04:00 UTC
    },
}
