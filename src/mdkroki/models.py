"""Data types shared by the scanner, loader, render client and splicer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from mdkroki.errors import KrokiError

Span = tuple[int, int]


class PathRoot(str, Enum):
    """Base directory an external diagram path is resolved against."""

    SYSTEM = "system"
    BOOK = "book"
    SOURCE = "source"
    THIS = "this"


@dataclass(frozen=True)
class Inline:
    """Diagram source captured directly from the document."""

    text: str


@dataclass(frozen=True)
class External:
    """Diagram source stored in a file."""

    root: PathRoot
    path: str


@dataclass(frozen=True)
class DiagramReference:
    """A located diagram reference in one document.

    Attributes:
        diagram_type: Kroki diagram type, passed through unvalidated.
        span: Half-open [start, end) offsets of the whole construct.
        content: Inline source or an external file reference.
    """

    diagram_type: str
    span: Span
    content: Inline | External


@dataclass(frozen=True)
class ResolvedDiagram:
    """A reference together with its loaded source text."""

    reference: DiagramReference
    source_text: str

    @property
    def span(self) -> Span:
        return self.reference.span

    @property
    def diagram_type(self) -> str:
        return self.reference.diagram_type


@dataclass(frozen=True)
class RenderResult:
    """Outcome of rendering one diagram, keyed by the reference span."""

    span: Span
    svg: str | None = None
    error: KrokiError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.svg is not None


@dataclass(frozen=True)
class DocumentContext:
    """Locations needed to resolve external references of one document.

    Attributes:
        document_path: Path of the document itself, or None for documents
            without a backing file (mdBook draft chapters).
        book_root: Directory holding the book's top-level configuration.
        source_root: Directory holding the book's sources.
    """

    document_path: Path | None
    book_root: Path
    source_root: Path
