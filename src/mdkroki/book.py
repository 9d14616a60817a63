"""mdBook preprocessor boundary.

mdBook writes ``[context, book]`` as JSON to the preprocessor's stdin and
reads the (possibly modified) book back from stdout. Only chapter ``content``
is rewritten; every other field passes through untouched.

Book items look like:

    {"Chapter": {"name": ..., "content": ..., "source_path": "intro.md",
                 "sub_items": [...], ...}}
    "Separator"
    {"PartTitle": "Part I"}
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from loguru import logger

from mdkroki.config import KrokiConfig, load_config, preprocessor_table
from mdkroki.errors import KrokiError
from mdkroki.logging import log
from mdkroki.models import DocumentContext
from mdkroki.pipeline import transform_documents
from mdkroki.render import create_client


def parse_payload(payload: str) -> tuple[dict[str, Any], dict[str, Any]]:
    """Split mdBook's stdin payload into context and book.

    Raises:
        KrokiError: If the payload is not a ``[context, book]`` JSON array.
    """
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise KrokiError(f"Unable to parse the input: {e}") from e

    if not isinstance(data, list) or len(data) != 2:
        raise KrokiError("Unable to parse the input: expected [context, book]")
    context, book = data
    if not isinstance(context, dict) or not isinstance(book, dict):
        raise KrokiError("Unable to parse the input: expected [context, book]")
    return context, book


def book_items(book: dict[str, Any]) -> list[Any]:
    """Top-level items of a book (``sections`` before mdBook 0.5, ``items`` after)."""
    if "sections" in book:
        return book["sections"]
    return book.get("items", [])


def iter_chapters(items: list[Any]) -> Iterator[dict[str, Any]]:
    """Yield every chapter dict depth-first, parents before sub-chapters."""
    for item in items:
        if isinstance(item, dict) and "Chapter" in item:
            chapter = item["Chapter"]
            yield chapter
            yield from iter_chapters(chapter.get("sub_items") or [])


def book_roots(context: dict[str, Any]) -> tuple[Path, Path]:
    """Book root and sources root from an mdBook context."""
    book_root = Path(context.get("root") or ".")
    book_config = context.get("config", {}).get("book", {})
    source_root = book_root / (book_config.get("src") or "src")
    return book_root, source_root


def chapter_context(chapter: dict[str, Any], book_root: Path, source_root: Path) -> DocumentContext:
    source_path = chapter.get("source_path")
    return DocumentContext(
        document_path=source_root / source_path if source_path else None,
        book_root=book_root,
        source_root=source_root,
    )


async def transform_book(
    context: dict[str, Any], book: dict[str, Any], config: KrokiConfig
) -> dict[str, Any]:
    """Render every diagram of every chapter in place.

    Chapters are processed concurrently on one shared client.

    Raises:
        DocumentError: If any chapter fails; the book is left unmodified.
    """
    book_root, source_root = book_roots(context)
    chapters = list(iter_chapters(book_items(book)))
    documents = [
        (chapter.get("content") or "", chapter_context(chapter, book_root, source_root))
        for chapter in chapters
    ]

    with log("kroki.book", root=str(book_root), chapters=len(chapters)):
        async with create_client(config) as client:
            contents = await transform_documents(documents, client=client, config=config)

    for chapter, content in zip(chapters, contents, strict=True):
        chapter["content"] = content
    return book


def run_preprocessor(payload: str, config_path: Path | str | None = None) -> str:
    """Run the full preprocessor on an mdBook stdin payload.

    Args:
        payload: ``[context, book]`` JSON text.
        config_path: Optional YAML config file layered under book.toml.

    Returns:
        The transformed book as JSON text.
    """
    context, book = parse_payload(payload)
    config = load_config(config_path, preprocessor_table(context))

    renderer = context.get("renderer")
    if renderer and not config.supports_renderer(renderer):
        logger.warning(f"Renderer {renderer!r} is not supported, passing book through")
        return json.dumps(book)

    logger.debug(f"Preprocessing book at {context.get('root')} for {renderer}")
    book = asyncio.run(transform_book(context, book, config))
    return json.dumps(book)
