"""Run the critical CSS transform over the output files of a static-site build."""

from __future__ import annotations

import gzip
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, List, MutableMapping

from pydantic import ValidationError
from wcmatch import glob

from critical_inline.core.errors import ConfigurationError, ParseError, SourceReadError
from critical_inline.core.logging import document_context, get_logger
from critical_inline.models.critical_css import (
    BuildFile,
    BuildReport,
    DocumentReport,
    DocumentStatus,
    InlineCriticalCssOptions,
    OnError,
)
from critical_inline.services.critical_path import rewrite_for_critical_path
from critical_inline.services.selectors import get_matcher
from critical_inline.services.usage import decode_document
from critical_inline.services.usage_extractor import extract_critical_css

logger = get_logger(__name__)


# `**` spans directories, `*` stays within one path segment and skips dotfiles.
GLOB_FLAGS = glob.GLOBSTAR | glob.FORCEUNIX


def matches_pattern(path: str, patterns: List[str]) -> bool:
    """Glob-match ``path``; a pattern starting with ``!`` excludes what earlier ones included."""

    matched = False
    for pattern in patterns:
        if pattern.startswith("!"):
            if matched and glob.globmatch(path, pattern[1:], flags=GLOB_FLAGS):
                matched = False
        elif not matched and glob.globmatch(path, pattern, flags=GLOB_FLAGS):
            matched = True
    return matched


def gzip_size(text: str) -> int:
    return len(gzip.compress(text.encode("utf-8")))


def read_stylesheet(css_file: str) -> str:
    """Read the shared stylesheet once for the whole build."""

    css_path = Path(css_file).resolve()
    logger.debug("stylesheet_read_started", css_file=str(css_path))
    try:
        content = css_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise SourceReadError("Unable to read stylesheet", css_file=str(css_path), reason=str(exc)) from exc
    logger.debug("stylesheet_read", css_file=str(css_path), bytes=len(content))
    return content


class CriticalCssPlugin:
    """Inline critical CSS into every selected document of a file collection."""

    def __init__(self, options: InlineCriticalCssOptions) -> None:
        self.options = options
        self.matcher = get_matcher(options.match_strategy)

    def __call__(self, files: MutableMapping[str, BuildFile]) -> BuildReport:
        css_content = read_stylesheet(self.options.css_file)

        selected = []
        for path in sorted(files):
            if matches_pattern(path, self.options.patterns):
                logger.debug("document_matched", document=path)
                selected.append(path)
            else:
                logger.debug("document_skipped", document=path)

        report = BuildReport(css_file=self.options.css_file, css_public_path=self.options.css_public_path)
        with ThreadPoolExecutor(max_workers=self.options.max_workers) as executor:
            outcomes = executor.map(lambda path: self._run_document(path, files[path], css_content), selected)
            for outcome in outcomes:
                report.documents.append(outcome)

        logger.info("critical_css_build_completed", **report.counts)
        return report

    def transform(self, html_content: str | bytes, css_content: str) -> tuple[str, str]:
        """Extract then rewrite one document; returns ``(critical_css, html)``."""

        critical_css = extract_critical_css(html_content, css_content, matcher=self.matcher)
        html = rewrite_for_critical_path(
            html_content,
            self.options.css_public_path,
            critical_css,
            strategy=self.options.defer_strategy,
        )
        return critical_css, html

    def _run_document(self, path: str, entry: BuildFile, css_content: str) -> DocumentReport:
        with document_context(path):
            try:
                original = decode_document(entry.contents)
                critical_css, html = self.transform(original, css_content)
            except ParseError as exc:
                error = exc.for_document(path)
                if self.options.on_error is OnError.abort:
                    logger.error("document_transform_failed", error=str(error))
                    raise error from exc
                logger.warning("document_transform_skipped", error=str(error))
                return DocumentReport(path=path, status=DocumentStatus.failed, error=str(error))

            size = len(critical_css.encode("utf-8"))
            # Inlined, the gzip size ends up smaller still since the page shares the class names.
            compressed = gzip_size(critical_css)
            logger.debug("critical_css_size", bytes=size, gzip_bytes=compressed)

            if html == original:
                return DocumentReport(path=path, status=DocumentStatus.unchanged)

            entry.contents = html
            logger.debug("document_rewritten")
            return DocumentReport(
                path=path,
                status=DocumentStatus.rewritten,
                critical_css_bytes=size,
                critical_css_gzip_bytes=compressed,
            )


def inline_critical_css(**options: Any) -> CriticalCssPlugin:
    """Validate ``options`` and return the plugin; invalid options fail before any document is read."""

    try:
        validated = InlineCriticalCssOptions(**options)
    except ValidationError as exc:
        messages = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'options'}: {error['msg']}" for error in exc.errors()
        )
        raise ConfigurationError(f"Invalid critical CSS options: {messages}") from exc
    return CriticalCssPlugin(validated)


def load_output_files(output_dir: Path) -> Dict[str, BuildFile]:
    """Read every file under ``output_dir`` keyed by its ``/``-separated relative path."""

    return {
        path.relative_to(output_dir).as_posix(): BuildFile(contents=path.read_bytes())
        for path in sorted(output_dir.rglob("*"))
        if path.is_file()
    }


def build_directory(output_dir: str | Path, plugin: CriticalCssPlugin) -> BuildReport:
    """Run the plugin over a rendered site on disk and write rewritten documents back."""

    root = Path(output_dir)
    if not root.is_dir():
        raise ConfigurationError("Output directory does not exist", output_dir=str(root))

    files = load_output_files(root)
    logger.info("critical_css_build_started", output_dir=str(root), files=len(files))
    report = plugin(files)

    for document in report.documents:
        if document.status is DocumentStatus.rewritten:
            (root / document.path).write_text(files[document.path].contents, encoding="utf-8")
    return report


