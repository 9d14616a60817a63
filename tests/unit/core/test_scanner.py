"""Unit tests for the diagram reference scanner."""

from __future__ import annotations

import pytest

from mdkroki.errors import ScanError
from mdkroki.models import External, Inline, PathRoot
from mdkroki.scanner import parse_tag_attributes, scan_document


def _span_of(doc: str, construct: str) -> tuple[int, int]:
    start = doc.index(construct)
    return (start, start + len(construct))


# -----------------------------------------------------------------------------
# Tag form
# -----------------------------------------------------------------------------


@pytest.mark.unit
@pytest.mark.core
class TestTagForm:
    """Tests for <kroki> tags."""

    def test_inline_body(self) -> None:
        tag = '<kroki type="mermaid">graph TD; A-->B</kroki>'
        doc = f"Intro\n{tag}\nOutro\n"

        outcome = scan_document(doc)

        assert outcome.errors == []
        [ref] = outcome.references
        assert ref.diagram_type == "mermaid"
        assert ref.content == Inline("graph TD; A-->B")
        assert ref.span == _span_of(doc, tag)

    def test_multiline_body_kept_verbatim(self) -> None:
        tag = '<kroki type="plantuml">\n@startuml\nA -> B\n@enduml\n</kroki>'
        outcome = scan_document(tag)

        assert outcome.references[0].content == Inline("\n@startuml\nA -> B\n@enduml\n")
        assert outcome.references[0].span == (0, len(tag))

    def test_path_ignores_body(self) -> None:
        tag = '<kroki type="erd" path="schema.erd" root="source">ignored</kroki>'
        [ref] = scan_document(tag).references

        assert ref.content == External(PathRoot.SOURCE, "schema.erd")
        assert ref.span == (0, len(tag))

    def test_self_closing_defaults_to_this(self) -> None:
        doc = 'a <kroki type="dot" path="g.dot"/> b'
        [ref] = scan_document(doc).references

        assert ref.content == External(PathRoot.THIS, "g.dot")
        assert ref.span == _span_of(doc, '<kroki type="dot" path="g.dot"/>')

    def test_book_root_strips_leading_slash(self) -> None:
        [ref] = scan_document('<kroki type="dot" path="/d/g.dot" root="book" />').references
        assert ref.content == External(PathRoot.BOOK, "d/g.dot")

    def test_root_aliases(self) -> None:
        doc = (
            '<kroki type="a" path="x" root="src" />'
            '<kroki type="b" path="y" root="." />'
            '<kroki type="c" path="/z" root="system" />'
        )
        roots = [ref.content.root for ref in scan_document(doc).references]
        assert roots == [PathRoot.SOURCE, PathRoot.THIS, PathRoot.SYSTEM]

    def test_single_quoted_and_escaped_attributes(self) -> None:
        [ref] = scan_document("<kroki type='dot' path='a&amp;b.dot' />").references
        assert ref.content == External(PathRoot.THIS, "a&b.dot")

    def test_type_is_case_sensitive(self) -> None:
        [ref] = scan_document('<kroki type="BlockDiag">x</kroki>').references
        assert ref.diagram_type == "BlockDiag"


@pytest.mark.unit
@pytest.mark.core
class TestTagErrors:
    """Malformed tags become ScanErrors without stopping the scan."""

    def test_missing_type(self) -> None:
        doc = '<kroki path="a.txt" />\n\n```kroki-dot\ndigraph { a }\n```\n'
        outcome = scan_document(doc)

        assert len(outcome.errors) == 1
        assert isinstance(outcome.errors[0], ScanError)
        assert "missing type attribute" in str(outcome.errors[0])
        # The fence after the bad tag is still found
        [ref] = outcome.references
        assert ref.diagram_type == "dot"

    def test_missing_type_with_body_not_reported_as_reference(self) -> None:
        outcome = scan_document("<kroki>graph TD</kroki>")

        assert outcome.references == []
        assert outcome.errors[0].span == (0, len("<kroki>graph TD</kroki>"))

    def test_unknown_root(self) -> None:
        outcome = scan_document('<kroki type="a" path="x" root="elsewhere" />')

        assert outcome.references == []
        assert "unrecognized root type: elsewhere" in str(outcome.errors[0])

    def test_relative_path_with_system_root(self) -> None:
        outcome = scan_document('<kroki type="a" path="rel.txt" root="system" />')

        assert outcome.references == []
        assert "relative path" in str(outcome.errors[0])

    def test_self_closing_without_path(self) -> None:
        outcome = scan_document('<kroki type="a" />')

        assert outcome.references == []
        assert "requires a path" in str(outcome.errors[0])

    def test_unterminated_tag(self) -> None:
        outcome = scan_document('<kroki type="a">never closed\n![x](kroki-b:c.txt)')

        assert "unterminated" in str(outcome.errors[0])
        [ref] = outcome.references
        assert ref.diagram_type == "b"


# -----------------------------------------------------------------------------
# Fenced block form
# -----------------------------------------------------------------------------


@pytest.mark.unit
@pytest.mark.core
class TestFencedForm:
    """Tests for ```kroki-<type> fences."""

    def test_backtick_fence(self) -> None:
        fence = "```kroki-plantuml\n@startuml\nA -> B\n@enduml\n```\n"
        doc = f"Text\n\n{fence}After\n"

        [ref] = scan_document(doc).references

        assert ref.diagram_type == "plantuml"
        assert ref.content == Inline("@startuml\nA -> B\n@enduml\n")
        assert ref.span == _span_of(doc, fence.rstrip("\n"))

    def test_tilde_fence(self) -> None:
        [ref] = scan_document("~~~kroki-ditaa\n+--+\n~~~\n").references
        assert ref.content == Inline("+--+\n")

    def test_longer_fence_contains_shorter(self) -> None:
        doc = "````kroki-a\n```\ninner\n```\n````\n"
        [ref] = scan_document(doc).references

        assert ref.content == Inline("```\ninner\n```\n")
        assert ref.span == (0, len(doc) - 1)

    def test_indented_fence_is_dedented(self) -> None:
        doc = "- item\n\n    ```kroki-dot\n    digraph { a }\n    ```\n"
        [ref] = scan_document(doc).references

        assert ref.content == Inline("digraph { a }\n")
        assert ref.span == (doc.index("    ```kroki"), len(doc) - 1)

    def test_tab_indented_fence_is_dedented(self) -> None:
        doc = "\t```kroki-dot\n\tdigraph { a }\n\t```\n"
        [ref] = scan_document(doc).references

        assert ref.content == Inline("digraph { a }\n")

    def test_newline_after_closing_fence_not_in_span(self) -> None:
        doc = "```kroki-dot\nx\n```\n# Next\n"
        [ref] = scan_document(doc).references

        assert doc[ref.span[1] :] == "\n# Next\n"

    def test_unterminated_fence_runs_to_end(self) -> None:
        doc = "```kroki-dot\ndigraph { a }"
        [ref] = scan_document(doc).references

        assert ref.content == Inline("digraph { a }")
        assert ref.span == (0, len(doc))

    def test_closing_fence_without_trailing_newline(self) -> None:
        doc = "```kroki-dot\nx\n```"
        [ref] = scan_document(doc).references
        assert ref.span == (0, len(doc))

    def test_info_string_must_be_exact(self) -> None:
        assert scan_document("```kroki-dot title\nx\n```\n").references == []
        assert scan_document("```python\nx\n```\n").references == []


# -----------------------------------------------------------------------------
# Image form
# -----------------------------------------------------------------------------


@pytest.mark.unit
@pytest.mark.core
class TestImageForm:
    """Tests for ![alt](kroki-<type>:<path>) images."""

    def test_relative_path(self) -> None:
        image = "![Flow](kroki-mermaid:diagrams/flow.mmd)"
        doc = f"See {image} here"

        [ref] = scan_document(doc).references

        assert ref.diagram_type == "mermaid"
        assert ref.content == External(PathRoot.THIS, "diagrams/flow.mmd")
        assert ref.span == _span_of(doc, image)

    def test_absolute_path_is_system_rooted(self) -> None:
        [ref] = scan_document("![](kroki-dot:/abs/g.dot)").references
        assert ref.content == External(PathRoot.SYSTEM, "/abs/g.dot")

    def test_title_is_part_of_span(self) -> None:
        image = '![x](kroki-dot:g.dot "Graph")'
        [ref] = scan_document(image).references

        assert ref.span == (0, len(image))
        assert ref.content == External(PathRoot.THIS, "g.dot")

    def test_ordinary_images_ignored(self) -> None:
        assert scan_document("![logo](img/logo.png)").references == []


# -----------------------------------------------------------------------------
# Whole documents
# -----------------------------------------------------------------------------


@pytest.mark.unit
@pytest.mark.core
class TestDocumentScan:
    """Ordering, skipped regions and mixed syntaxes."""

    def test_mixed_syntaxes_in_document_order(self) -> None:
        doc = (
            "# Title\n\n"
            "![a](kroki-d2:a.d2)\n\n"
            "```kroki-mermaid\ngraph TD\n```\n\n"
            '<kroki type="erd" path="b.erd" />\n'
        )
        refs = scan_document(doc).references

        assert [r.diagram_type for r in refs] == ["d2", "mermaid", "erd"]
        starts = [r.span[0] for r in refs]
        ends = [r.span[1] for r in refs]
        assert starts == sorted(starts)
        assert all(end <= start for end, start in zip(ends, starts[1:]))

    def test_no_references(self) -> None:
        outcome = scan_document("# Plain\n\nNothing to see.\n")
        assert outcome.references == []
        assert outcome.errors == []

    def test_ordinary_code_block_is_skipped(self) -> None:
        doc = '```markdown\n<kroki type="a">x</kroki>\n![x](kroki-a:b)\n```\n'
        assert scan_document(doc).references == []

    def test_inline_code_is_skipped(self) -> None:
        doc = "Write `![x](kroki-a:b)` or ``<kroki type=\"a\">x</kroki>``."
        assert scan_document(doc).references == []

    def test_stray_backtick_does_not_hide_later_blocks(self) -> None:
        doc = (
            "Press ` to open the console.\n\n"
            "```kroki-dot\ndigraph { a }\n```\n\n"
            "Then run `ls`.\n"
        )
        [ref] = scan_document(doc).references
        assert ref.diagram_type == "dot"

    def test_code_span_may_cross_a_line_break(self) -> None:
        doc = "Write `![x](kroki-a:b)\nstill code` here."
        assert scan_document(doc).references == []

    def test_html_comment_is_skipped(self) -> None:
        assert scan_document("<!-- ![x](kroki-a:b) -->").references == []

    def test_pre_regions_are_skipped_with_nesting(self) -> None:
        doc = "<pre><pre></pre>![x](kroki-a:b)</pre>![y](kroki-c:d)"
        [ref] = scan_document(doc).references
        assert ref.diagram_type == "c"

    def test_rendered_output_is_not_rescanned(self) -> None:
        doc = "<pre><svg><text>```kroki-dot</text></svg></pre>\n"
        assert scan_document(doc).references == []


@pytest.mark.unit
@pytest.mark.core
def test_parse_tag_attributes() -> None:
    attrs = parse_tag_attributes(' type="dot" PATH=\'g.dot\' flag root = "book"')
    assert attrs == {"type": "dot", "path": "g.dot", "root": "book"}
