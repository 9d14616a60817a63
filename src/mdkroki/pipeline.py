"""Document transformation pipeline.

scan -> resolve + load -> render (concurrent) -> splice

Any failing reference fails its document, and any failing document fails
the whole run. Nothing is spliced into a document with a failed reference.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

import httpx

from mdkroki.config import KrokiConfig
from mdkroki.errors import DocumentError, LoadError, PathResolutionError
from mdkroki.loader import load_sources
from mdkroki.logging import log
from mdkroki.models import DocumentContext
from mdkroki.render import create_client, render_all
from mdkroki.scanner import scan_document
from mdkroki.splice import splice


async def transform_document(
    text: str,
    context: DocumentContext,
    *,
    client: httpx.AsyncClient,
    config: KrokiConfig,
) -> str:
    """Replace every diagram reference in a document with rendered SVG.

    Args:
        text: Document text.
        context: Document, book and source locations.
        client: Shared HTTP client for Kroki requests.
        config: Preprocessor settings.

    Returns:
        Transformed document text, identical to ``text`` when it holds no
        diagram references.

    Raises:
        DocumentError: If any reference fails to scan, resolve, load or render.
    """
    name = context.document_path
    with log("kroki.document", document=str(name)) as s:
        outcome = scan_document(text, name)
        if outcome.errors:
            error = outcome.errors[0]
            raise DocumentError(name, error) from error
        if not outcome.references:
            s.add(diagrams=0)
            return text

        try:
            diagrams = await load_sources(outcome.references, context)
        except (PathResolutionError, LoadError) as e:
            raise DocumentError(name, e) from e

        results = await render_all(diagrams, client=client, config=config)
        for result in results:
            if result.error is not None:
                raise DocumentError(name, result.error) from result.error

        s.add(diagrams=len(results))
        return splice(text, outcome.references, results)


async def transform_documents(
    documents: Sequence[tuple[str, DocumentContext]],
    *,
    client: httpx.AsyncClient,
    config: KrokiConfig,
) -> list[str]:
    """Transform several independent documents concurrently.

    Returns:
        Transformed texts in input order.

    Raises:
        DocumentError: The first failing document in input order; the run
            is aborted once every document has settled.
    """
    results = await asyncio.gather(
        *(
            transform_document(text, context, client=client, config=config)
            for text, context in documents
        ),
        return_exceptions=True,
    )
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return list(results)  # type: ignore[arg-type]


def process_document(
    text: str, context: DocumentContext, config: KrokiConfig | None = None
) -> str:
    """Synchronous entry point: transform one document with a fresh client."""
    config = config or KrokiConfig()

    async def _run() -> str:
        async with create_client(config) as client:
            return await transform_document(text, context, client=client, config=config)

    return asyncio.run(_run())
