"""Routes for critical CSS extraction, inlining and directory builds."""

from __future__ import annotations

import uuid
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status

from critical_inline.api.dependencies import get_auth_dependency
from critical_inline.core.config import settings
from critical_inline.core.errors import ConfigurationError
from critical_inline.models.critical_css import (
    BuildRequest,
    ExtractRequest,
    ExtractResult,
    InlineRequest,
    InlineResult,
    MatchStrategy,
)
from critical_inline.models.job import BuildJobStatusResponse, JobStatus
from critical_inline.services import job_store
from critical_inline.services.critical_path import rewrite_for_critical_path
from critical_inline.services.pipeline import gzip_size, inline_critical_css
from critical_inline.services.selectors import get_matcher
from critical_inline.services.usage_extractor import extract_critical_css
from critical_inline.tasks.css_tasks import run_critical_css_build

router = APIRouter(prefix="/critical-css", tags=["critical-css"], dependencies=[Depends(get_auth_dependency)])


def _extract(html: str, css: str, match_strategy: Optional[MatchStrategy]) -> str:
    matcher = get_matcher(match_strategy or settings.default_match_strategy)
    return extract_critical_css(html, css, matcher=matcher)


@router.post("/extract", response_model=ExtractResult, summary="Compute the critical CSS of one document")
def extract(payload: ExtractRequest) -> ExtractResult:
    """Return the rules of the stylesheet the document exercises."""

    critical_css = _extract(payload.html, payload.css, payload.match_strategy)
    return ExtractResult(
        critical_css=critical_css,
        size_bytes=len(critical_css.encode("utf-8")),
        gzip_bytes=gzip_size(critical_css),
    )


@router.post("/inline", response_model=InlineResult, summary="Inline critical CSS into one document")
def inline(payload: InlineRequest) -> InlineResult:
    """Extract the critical CSS and rewrite the document's stylesheet link."""

    critical_css = _extract(payload.html, payload.css, payload.match_strategy)
    html = rewrite_for_critical_path(
        payload.html,
        payload.css_public_path,
        critical_css,
        strategy=payload.defer_strategy or settings.default_defer_strategy,
    )
    return InlineResult(html=html, critical_css=critical_css, rewritten=html != payload.html)


@router.post(
    "/builds",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Enqueue a critical CSS build over an output directory",
)
def enqueue_build(payload: BuildRequest) -> dict:
    """Validate the build options up front and dispatch the build to the worker."""

    inline_critical_css(**payload.plugin_options())
    if not Path(payload.output_dir).is_dir():
        raise ConfigurationError("Output directory does not exist", output_dir=payload.output_dir)

    job_id = f"build_{uuid.uuid4().hex}"
    serialized_payload = payload.model_dump(mode="json")
    job_store.create_job(job_id=job_id, payload=serialized_payload)
    run_critical_css_build.delay(job_id=job_id, payload=serialized_payload)
    return {"job_id": job_id, "status": JobStatus.queued}


@router.get(
    "/builds/{job_id}",
    response_model=BuildJobStatusResponse,
    summary="Retrieve critical CSS build status",
)
def get_build(job_id: str) -> BuildJobStatusResponse:
    """Return the build status and its per-document report when finished."""

    job = job_store.job_store.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")

    return BuildJobStatusResponse(
        job_id=job.job_id,
        status=job.status,
        output_dir=job.payload.get("output_dir", ""),
        css_public_path=job.payload.get("css_public_path", ""),
        created_at=job.created_at,
        updated_at=job.updated_at,
        counts=job.report.counts if job.report else {},
        report=job.report,
        error=job.error,
    )
