"""Build job models."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from .critical_css import BuildReport


def _now() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    """Possible states for asynchronous build jobs."""

    queued = "queued"
    processing = "processing"
    completed = "completed"
    failed = "failed"


class BuildJob(BaseModel):
    """A directory build tracked by the job store."""

    job_id: str
    status: JobStatus
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
    error: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)
    report: Optional[BuildReport] = None

    def with_status(self, status: JobStatus) -> "BuildJob":
        """Return a copy with an updated status."""

        return self.model_copy(update={"status": status, "updated_at": _now()})

    def with_report(self, report: BuildReport) -> "BuildJob":
        """Return a completed copy holding the build report."""

        return self.model_copy(update={"report": report, "status": JobStatus.completed, "updated_at": _now()})

    def with_error(self, message: str) -> "BuildJob":
        """Return a failed copy holding the error message."""

        return self.model_copy(update={"error": message, "status": JobStatus.failed, "updated_at": _now()})


class BuildJobStatusResponse(BaseModel):
    """API response for build job status queries."""

    job_id: str
    status: JobStatus
    output_dir: str
    css_public_path: str
    created_at: datetime
    updated_at: datetime
    counts: Dict[str, int] = Field(default_factory=dict)
    report: Optional[BuildReport] = None
    error: Optional[str] = None
