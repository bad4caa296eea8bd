"""Celery application running directory builds."""

from celery import Celery

from critical_inline.core.config import settings

celery_app = Celery("critical_inline")

celery_app.conf.update(
    broker_url=settings.celery_broker_url or settings.redis_url,
    result_backend=settings.celery_result_backend or settings.redis_url,
    task_default_queue="critical_inline",
    # A build walks a whole output directory; give it room.
    task_soft_time_limit=600,
    task_time_limit=900,
    worker_max_tasks_per_child=50,
    task_track_started=True,
    task_always_eager=settings.debug,
)

celery_app.autodiscover_tasks(["critical_inline.tasks"], related_name="css_tasks")
