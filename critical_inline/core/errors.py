"""Error kinds raised by the critical CSS transform."""

from __future__ import annotations

from typing import Any, Dict, Optional


class CriticalCssError(Exception):
    """Base error carrying key/value context for reporting."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = {k: v for k, v in context.items() if v is not None}

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{key}={value!r}" for key, value in self.context.items())
        return f"{self.message} ({details})"


class ConfigurationError(CriticalCssError):
    """Invalid plugin options. Raised before any document is processed."""


class SourceReadError(CriticalCssError):
    """The shared stylesheet could not be read. Fatal for the whole run."""


class ParseError(CriticalCssError):
    """Stylesheet or document content the transform cannot process."""

    @property
    def document(self) -> Optional[str]:
        return self.context.get("document")

    def for_document(self, path: str) -> "ParseError":
        """Return a copy annotated with the logical path of the offending document."""

        annotated = ParseError(self.message, **{**self.context, "document": path})
        annotated.__cause__ = self.__cause__
        return annotated
