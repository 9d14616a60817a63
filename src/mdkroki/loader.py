"""Source loading: turn diagram references into diagram source text."""

from __future__ import annotations

import asyncio

import aiofiles

from mdkroki.errors import LoadError, PathResolutionError
from mdkroki.models import DiagramReference, DocumentContext, External, ResolvedDiagram
from mdkroki.paths import resolve_path


async def load_source(reference: DiagramReference, context: DocumentContext) -> ResolvedDiagram:
    """Load the diagram source for a single reference.

    Inline content is returned unchanged. External content is resolved
    against the document context and read fully as UTF-8 text.

    Raises:
        PathResolutionError: If the external path cannot be resolved.
        LoadError: If the file is missing or unreadable.
    """
    content = reference.content
    if not isinstance(content, External):
        return ResolvedDiagram(reference=reference, source_text=content.text)

    try:
        full_path = resolve_path(
            content.root,
            content.path,
            context.document_path,
            context.book_root,
            context.source_root,
        )
    except PathResolutionError as e:
        e.span = reference.span
        raise

    try:
        async with aiofiles.open(full_path, encoding="utf-8") as f:
            source_text = await f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise LoadError(f"attempting to read {full_path}: {e}", reference.span) from e

    return ResolvedDiagram(reference=reference, source_text=source_text)


async def load_sources(
    references: list[DiagramReference], context: DocumentContext
) -> list[ResolvedDiagram]:
    """Load every reference of a document concurrently, preserving order.

    Raises the first failure in document order.
    """
    results = await asyncio.gather(
        *(load_source(ref, context) for ref in references), return_exceptions=True
    )
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return list(results)  # type: ignore[arg-type]
