"""
Celery Application Configuration
"""

import os

from celery import Celery
from celery.schedules import crontab

# Get configuration from environment
# Use REDIS_URL if set, otherwise construct from CELERY_BROKER_URL or default
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", REDIS_URL)
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", REDIS_URL)

# Create Celery app
app = Celery(
    "qc_dashboard",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
    include=[
        "qc_dashboard.tasks.notifications",
    ],
)

# Celery configuration
app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=5 * 60,  # 5 minutes
    task_soft_time_limit=4 * 60,  # 4 minutes
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
    result_expires=24 * 60 * 60,  # 1 day
)
# Periodic tasks (Celery Beat)
app.conf.beat_schedule = {
    # Drop password reset tokens that can no longer be used (hourly)
    "clear-expired-reset-tokens": {
        "task": "tasks.clear_expired_reset_tokens",
        "schedule": crontab(minute=15),
    },
}

if __name__ == "__main__":
    app.start()
