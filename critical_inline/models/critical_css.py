"""Models for critical CSS extraction and inlining workflows."""

from __future__ import annotations

import os
from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator

from critical_inline.core.config import settings


class DeferStrategy(str, Enum):
    """How the full stylesheet is loaded without blocking first render."""

    media_print = "media_print"
    preload_polyfill = "preload_polyfill"


class MatchStrategy(str, Enum):
    """How selectors are checked against a document."""

    tokens = "tokens"
    dom = "dom"


class OnError(str, Enum):
    """What a build does when one document fails to parse."""

    abort = "abort"
    skip = "skip"


class DocumentStatus(str, Enum):
    """Outcome of transforming one document."""

    rewritten = "rewritten"
    unchanged = "unchanged"
    failed = "failed"


class InlineCriticalCssOptions(BaseModel):
    """Options accepted by the inlining plugin."""

    pattern: Union[str, List[str]] = Field(..., description="Glob pattern(s) selecting the html files.")
    css_file: str = Field(..., description="Filesystem path of the single stylesheet to inline from.")
    css_public_path: str = Field(..., min_length=1, description="href under which pages link the stylesheet.")
    defer_strategy: DeferStrategy = Field(default_factory=lambda: DeferStrategy(settings.default_defer_strategy))
    match_strategy: MatchStrategy = Field(default_factory=lambda: MatchStrategy(settings.default_match_strategy))
    on_error: OnError = Field(default_factory=lambda: OnError(settings.default_on_error))
    max_workers: int = Field(default_factory=lambda: settings.max_workers, ge=1)

    @field_validator("pattern", mode="before")
    @classmethod
    def ensure_pattern(cls, value: Union[str, List[str], None]) -> Union[str, List[str]]:
        """Reject missing or empty patterns."""

        if not value:
            raise ValueError("You must supply a pattern for the html files.")
        if isinstance(value, (list, tuple)) and not all(isinstance(item, str) and item for item in value):
            raise ValueError("Every pattern must be a non-empty string.")
        return list(value) if isinstance(value, tuple) else value

    @field_validator("css_file", mode="before")
    @classmethod
    def ensure_single_css_file(cls, value: object) -> str:
        """Accept exactly one stylesheet path."""

        if isinstance(value, (list, tuple, set)):
            raise ValueError(
                "You must supply a single css file to look for. Multiple files are not currently supported."
            )
        if isinstance(value, os.PathLike):
            value = os.fspath(value)
        if not value:
            raise ValueError("You must supply a single css file to look for.")
        return value

    @property
    def patterns(self) -> List[str]:
        return [self.pattern] if isinstance(self.pattern, str) else list(self.pattern)


class BuildFile(BaseModel):
    """Content holder for one output file of a static-site build."""

    contents: Union[bytes, str]


class DocumentReport(BaseModel):
    """What happened to one selected document."""

    path: str
    status: DocumentStatus
    critical_css_bytes: int = 0
    critical_css_gzip_bytes: int = 0
    error: Optional[str] = None


class BuildReport(BaseModel):
    """Summary of one plugin run over a file collection."""

    css_file: str
    css_public_path: str
    documents: List[DocumentReport] = Field(default_factory=list)

    @property
    def counts(self) -> Dict[str, int]:
        tally = {status.value: 0 for status in DocumentStatus}
        for document in self.documents:
            tally[document.status.value] += 1
        return tally


class ExtractRequest(BaseModel):
    """Payload accepted by the extract endpoint."""

    html: str
    css: str
    match_strategy: Optional[MatchStrategy] = None


class ExtractResult(BaseModel):
    """Critical CSS computed for a single document."""

    critical_css: str
    size_bytes: int
    gzip_bytes: int


class InlineRequest(BaseModel):
    """Payload accepted by the inline endpoint."""

    html: str
    css: str
    css_public_path: str = Field(..., min_length=1)
    defer_strategy: Optional[DeferStrategy] = None
    match_strategy: Optional[MatchStrategy] = None


class InlineResult(BaseModel):
    """Rewritten document and the critical CSS inlined into it."""

    html: str
    critical_css: str
    rewritten: bool


class BuildRequest(BaseModel):
    """Payload accepted by the build endpoint: a directory of rendered output files."""

    output_dir: str = Field(..., description="Directory holding the rendered site.")
    pattern: Union[str, List[str]]
    css_file: Union[str, List[str]]
    css_public_path: str
    defer_strategy: Optional[DeferStrategy] = None
    match_strategy: Optional[MatchStrategy] = None
    on_error: Optional[OnError] = None

    def plugin_options(self) -> dict:
        """Plugin keyword options, leaving unset fields to the configured defaults."""

        return self.model_dump(exclude={"output_dir"}, exclude_none=True)
