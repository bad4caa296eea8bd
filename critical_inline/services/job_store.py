"""In-memory registry of build jobs."""

from __future__ import annotations

from collections.abc import Mapping
from threading import Lock
from typing import Callable, Dict, Optional

from critical_inline.models.critical_css import BuildReport
from critical_inline.models.job import BuildJob, JobStatus


class InMemoryJobStore:
    """Thread-safe job registry shared by the API and eager Celery tasks."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._jobs: Dict[str, BuildJob] = {}

    def create_job(self, job: BuildJob) -> None:
        with self._lock:
            self._jobs[job.job_id] = job

    def get_job(self, job_id: str) -> Optional[BuildJob]:
        with self._lock:
            return self._jobs.get(job_id)

    def transition(self, job_id: str, change: Callable[[BuildJob], BuildJob]) -> BuildJob:
        """Apply ``change`` to the stored job atomically and store the result."""

        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise KeyError(f"Job {job_id} not found")
            updated = change(job)
            self._jobs[job_id] = updated
            return updated

    def all_jobs(self) -> Mapping[str, BuildJob]:
        with self._lock:
            return dict(self._jobs)


job_store = InMemoryJobStore()


def create_job(job_id: str, payload: dict) -> BuildJob:
    """Register a new build in queued state."""

    job = BuildJob(job_id=job_id, status=JobStatus.queued, payload=payload)
    job_store.create_job(job)
    return job


def mark_processing(job_id: str) -> BuildJob:
    return job_store.transition(job_id, lambda job: job.with_status(JobStatus.processing))


def mark_completed(job_id: str, report: BuildReport) -> BuildJob:
    return job_store.transition(job_id, lambda job: job.with_report(report))


def mark_failed(job_id: str, message: str) -> BuildJob:
    return job_store.transition(job_id, lambda job: job.with_error(message))
