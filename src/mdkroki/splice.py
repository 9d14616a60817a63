"""Splice rendered diagrams back into a document."""

from __future__ import annotations

from collections.abc import Sequence

from mdkroki.models import DiagramReference, RenderResult, Span


def match_results(
    references: Sequence[DiagramReference], results: Sequence[RenderResult]
) -> dict[Span, RenderResult]:
    """Pair every reference with the result carrying its span.

    Raises:
        ValueError: If spans overlap, are out of order, or the results are
            not in one-to-one correspondence with the references.
    """
    previous_end = 0
    for ref in references:
        start, end = ref.span
        if start < previous_end or end < start:
            raise ValueError(f"reference spans overlap or are out of order at {ref.span}")
        previous_end = end

    by_span = {result.span: result for result in results}
    if len(by_span) != len(results) or len(results) != len(references):
        raise ValueError(
            f"expected {len(references)} render results, got {len(results)}"
        )
    missing = [ref.span for ref in references if ref.span not in by_span]
    if missing:
        raise ValueError(f"no render result for reference spans {missing}")
    return by_span


def splice(
    document: str,
    references: Sequence[DiagramReference],
    results: Sequence[RenderResult],
) -> str:
    """Replace each reference span with its rendered SVG.

    Spans are replaced from the end of the document backwards so earlier
    offsets stay valid. Text outside every span is copied verbatim.

    Raises:
        ValueError: If references and results don't match up or a result
            carries no SVG.
    """
    if not references:
        return document

    by_span = match_results(references, results)
    text = document
    for ref in reversed(references):
        result = by_span[ref.span]
        if result.svg is None:
            raise ValueError(f"render result for span {ref.span} has no SVG")
        start, end = ref.span
        text = text[:start] + result.svg + text[end:]
    return text
