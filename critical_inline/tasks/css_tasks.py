"""Celery tasks for critical CSS builds."""

from __future__ import annotations

from critical_inline.core.logging import get_logger
from critical_inline.models.critical_css import BuildRequest
from critical_inline.services import job_store
from critical_inline.services.pipeline import build_directory, inline_critical_css
from critical_inline.worker.celery_app import celery_app

logger = get_logger(__name__)


@celery_app.task(name="critical_css.build")
def run_critical_css_build(job_id: str, payload: dict) -> dict:
    """Inline critical CSS across a rendered output directory."""

    logger.info("critical_css_build_task_started", job_id=job_id)
    job_store.mark_processing(job_id)
    try:
        request = BuildRequest(**payload)
        plugin = inline_critical_css(**request.plugin_options())
        report = build_directory(request.output_dir, plugin)
    except Exception as exc:
        logger.exception("critical_css_build_task_failed", job_id=job_id, error=str(exc))
        job_store.mark_failed(job_id, str(exc))
        raise

    job_store.mark_completed(job_id, report)
    logger.info("critical_css_build_task_completed", job_id=job_id, **report.counts)
    return report.model_dump(mode="json")
