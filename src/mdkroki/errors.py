"""Error taxonomy for diagram preprocessing.

Every error raised by the pipeline derives from KrokiError. Reference-scoped
errors (ScanError, PathResolutionError, LoadError, RenderError) are wrapped in
a DocumentError once they make a document fail.
"""

from __future__ import annotations

from pathlib import Path


class KrokiError(Exception):
    """Base class for all preprocessing errors."""


class ConfigError(KrokiError, ValueError):
    """Invalid preprocessor configuration."""


class DiagramError(KrokiError):
    """An error scoped to a single diagram reference.

    Args:
        message: Human-readable description.
        span: Half-open (start, end) offsets of the reference, if known.
    """

    def __init__(self, message: str, span: tuple[int, int] | None = None) -> None:
        super().__init__(message)
        self.span = span

    def __str__(self) -> str:
        message = super().__str__()
        if self.span is None:
            return message
        return f"{message} (at offset {self.span[0]})"


class ScanError(DiagramError):
    """Malformed diagram reference syntax."""


class PathResolutionError(DiagramError):
    """A reference path that cannot be resolved against its root."""


class LoadError(DiagramError):
    """An external diagram file is missing or unreadable."""


class RenderError(DiagramError):
    """The rendering endpoint failed or returned no SVG."""


class DocumentError(KrokiError):
    """A document failed because one of its references failed.

    The failing reference error is available as ``__cause__`` and ``reason``.
    """

    def __init__(self, document: str | Path | None, reason: KrokiError) -> None:
        self.document = document
        self.reason = reason
        name = str(document) if document is not None else "<document>"
        super().__init__(f"error occurred while processing {name}: {reason}")
