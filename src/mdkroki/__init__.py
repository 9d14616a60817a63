"""mdkroki - render Kroki diagrams embedded in mdBook chapters.

Diagrams are referenced three ways:

    <kroki type="mermaid" path="flow.mmd" />

    ```kroki-plantuml
    @startuml
    A -> B
    @enduml
    ```

    ![Architecture](kroki-d2:arch.d2)

Each reference is rendered to SVG by a Kroki server and spliced into the
chapter in place of the reference.

Usage:
    # As an mdBook preprocessor (book.toml)
    [preprocessor.kroki-preprocessor]

    # Standalone
    mdbook-kroki-preprocessor render chapter.md
"""

from importlib.metadata import version

__version__ = version("mdbook-kroki-preprocessor")

__all__ = ["__version__"]
