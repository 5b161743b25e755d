from celery import Celery
from celery.schedules import crontab
from kombu import Queue

from affitrack.core.config import settings

celery_app = Celery(
    "affitrack",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "affitrack.tasks.fraud",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=60 * 60,
    worker_prefetch_multiplier=1,
    task_default_queue="default",
    task_queues=[
        Queue("default", routing_key="default"),
        Queue("fraud", routing_key="fraud"),
    ],
    beat_schedule={
        "rescan-fraud-events": {
            "task": "affitrack.tasks.fraud.rescan_events",
            "schedule": crontab(hour=3, minute=0),
            "options": {"queue": "fraud"},
        },
    },
)


if __name__ == "__main__":
    celery_app.start()
