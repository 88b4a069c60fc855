from celery import Celery

from inventory_sync.config import get_settings

settings = get_settings()

# Create Celery application
celery_app = Celery(
    "inventory",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["inventory_sync.tasks.notification_tasks"]
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Run tasks in-process when there is no worker (single-process deployments, tests)
    task_always_eager=settings.CELERY_TASK_ALWAYS_EAGER,
    task_store_eager_result=False,

    # Task settings
    task_time_limit=30,
    task_soft_time_limit=20,
    task_ignore_result=True,

    # Worker settings
    worker_prefetch_multiplier=1,
    worker_concurrency=4,

    # Notifications are advisory, losing one on worker loss is acceptable
    task_acks_late=False,
)
