from celery import Celery
from .core.config import settings

# Create Celery instance
celery_app = Celery(
    "mealrelay",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["mealrelay.tasks"]
)

# Configure Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    result_expires=3600,  # 1 hour
    task_routes={
        "mealrelay.tasks.relay_outbox": {"queue": "outbox"},
        "mealrelay.tasks.expire_stale_assignments": {"queue": "dispatch"},
        "mealrelay.tasks.retry_pending_refunds": {"queue": "payments"},
    },
    beat_schedule={
        "relay-outbox": {
            "task": "mealrelay.tasks.relay_outbox",
            "schedule": 10.0,
        },
        "expire-stale-assignments": {
            "task": "mealrelay.tasks.expire_stale_assignments",
            "schedule": 60.0,
        },
        "retry-pending-refunds": {
            "task": "mealrelay.tasks.retry_pending_refunds",
            "schedule": 300.0,
        },
    },
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    worker_max_tasks_per_child=1000,
)
