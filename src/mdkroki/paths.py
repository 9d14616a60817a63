"""Path resolution for external diagram references.

Every external reference names one of four roots:
- this: the directory containing the current document
- book: the book root (directory holding book.toml)
- source: the book's sources directory (book.src, usually book_root/src)
- system: the filesystem root; the path must already be absolute

Paths are joined, not resolved against the filesystem, so relative inputs
produce relative outputs.
"""

from __future__ import annotations

from pathlib import Path

from mdkroki.errors import PathResolutionError
from mdkroki.models import PathRoot


def resolve_path(
    root: PathRoot,
    path: str | Path,
    document_path: Path | None,
    book_root: Path,
    source_root: Path,
) -> Path:
    """Resolve an external diagram path against its root.

    Args:
        root: Root qualifier of the reference.
        path: Path as written in the document.
        document_path: Path of the referencing document, if it has one.
        book_root: Book root directory.
        source_root: Sources root directory.

    Returns:
        Path to the diagram source file.

    Raises:
        PathResolutionError: If the root cannot be applied.
    """
    path = Path(path)

    if root is PathRoot.SYSTEM:
        if not Path(source_root).is_absolute():
            raise PathResolutionError(
                f"cannot resolve system path {path}: source root {source_root} is not absolute"
            )
        return path

    if root is PathRoot.BOOK:
        return Path(book_root) / path

    if root is PathRoot.SOURCE:
        return Path(source_root) / path

    # PathRoot.THIS
    if path.is_absolute():
        return path
    if document_path is None:
        raise PathResolutionError(f"cannot resolve {path}: document has no path")
    return Path(document_path).parent / path
