"""Diagram reference scanner for markdown documents.

Recognises three syntaxes in a single left-to-right pass:

1. Tag form:
       <kroki type="mermaid" path="flow.mmd" root="book" />
       <kroki type="mermaid">graph TD; A-->B</kroki>
2. Fenced block form:
       ```kroki-plantuml
       @startuml ... @enduml
       ```
3. Image form:
       ![Architecture](kroki-d2:diagrams/arch.d2)

Ordinary code blocks, inline code spans, HTML comments and <pre> regions are
skipped so that references inside them are left alone. Malformed references
are collected as ScanError values and never abort the scan.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from mdkroki.errors import ScanError
from mdkroki.models import DiagramReference, External, Inline, PathRoot, Span

# Fixed prefixes for the fenced and image syntaxes
FENCE_PREFIX = "kroki-"
IMAGE_PREFIX = "kroki-"

# Accepted spellings of the tag's root attribute
ROOT_ALIASES = {
    "system": PathRoot.SYSTEM,
    "book": PathRoot.BOOK,
    "source": PathRoot.SOURCE,
    "src": PathRoot.SOURCE,
    "this": PathRoot.THIS,
    ".": PathRoot.THIS,
}

_TOKEN_RE = re.compile(
    # Fence opener at the start of a line, including its newline
    r"(?P<fence>^(?P<fence_indent>[ \t]*)(?P<fence_chars>`{3,}|~{3,})(?P<info>[^\n]*)(?:\n|\Z))"
    r"|(?P<comment><!--)"
    r"|(?P<pre><(?i:pre)\b[^>]*>)"
    r"|(?P<tag><kroki(?=[\s/>])(?P<attrs>(?:\"[^\"]*\"|'[^']*'|[^\"'>])*)>)"
    r"|(?P<image>!\[(?:[^\]\\]|\\.)*\]\(\s*"
    + re.escape(IMAGE_PREFIX)
    + r"(?P<image_type>[^:\s()]+):(?P<image_path>[^\s()]+)"
    r"(?:\s+(?:\"[^\"]*\"|'[^']*'))?\s*\))"
    r"|(?P<code>(?<!`)`+(?!`))",
    re.MULTILINE,
)

_ATTR_RE = re.compile(r"""([A-Za-z_:][-\w:.]*)\s*=\s*(?:"([^"]*)"|'([^']*)')""")
_TAG_CLOSE_RE = re.compile(r"</kroki\s*>")
_PRE_RE = re.compile(r"<(/?)pre\b[^>]*>", re.IGNORECASE)
_BLANK_LINE_RE = re.compile(r"\n[ \t]*\n")
_FENCE_TYPE_RE = re.compile(re.escape(FENCE_PREFIX) + r"(\S+)")


class KrokiTagAttributes(BaseModel):
    """Validated attribute set of a <kroki> tag."""

    model_config = ConfigDict(extra="ignore")

    type: str = Field(..., min_length=1, description="Kroki diagram type")
    path: str | None = Field(default=None, description="External diagram file")
    root: PathRoot = Field(default=PathRoot.THIS, description="Base for path")

    @field_validator("root", mode="before")
    @classmethod
    def resolve_alias(cls, value: object) -> object:
        if isinstance(value, str) and value in ROOT_ALIASES:
            return ROOT_ALIASES[value]
        if isinstance(value, str):
            raise ValueError(f"unrecognized root type: {value}")
        return value

    @model_validator(mode="after")
    def check_path(self) -> KrokiTagAttributes:
        if self.path is None:
            return self
        if self.root is PathRoot.SYSTEM and not Path(self.path).is_absolute():
            raise ValueError('cannot use relative path with root="system"')
        if self.root in (PathRoot.BOOK, PathRoot.SOURCE):
            # Leading separators stay relative to the chosen root
            self.path = self.path.lstrip("/")
        return self


@dataclass
class ScanOutcome:
    """References found in a document plus any malformed ones."""

    references: list[DiagramReference] = field(default_factory=list)
    errors: list[ScanError] = field(default_factory=list)


def parse_tag_attributes(attrs: str) -> dict[str, str]:
    """Parse quoted HTML attributes into a dict, unescaping entities."""
    parsed: dict[str, str] = {}
    for match in _ATTR_RE.finditer(attrs):
        name, double, single = match.groups()
        value = double if double is not None else single
        parsed[name.lower()] = html.unescape(value)
    return parsed


def _describe_validation_error(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        loc = ".".join(str(p) for p in err["loc"])
        msg = err["msg"].removeprefix("Value error, ")
        if err["type"] == "missing":
            parts.append(f"missing {loc} attribute")
        elif loc:
            parts.append(f"{loc}: {msg}")
        else:
            parts.append(msg)
    return "; ".join(parts)


def _dedent(body: str, indent: int) -> str:
    """Remove up to ``indent`` leading spaces or tabs from every line of a fence body."""
    if indent == 0:
        return body
    lines = body.splitlines(keepends=True)
    out = []
    for line in lines:
        strip = len(line) - len(line.lstrip(" \t"))
        out.append(line[min(strip, indent) :])
    return "".join(out)


class ReferenceScanner:
    """Single-pass scanner producing diagram references in document order."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.outcome = ScanOutcome()

    def scan(self) -> ScanOutcome:
        pos = 0
        while True:
            match = _TOKEN_RE.search(self.text, pos)
            if match is None:
                break
            kind = match.lastgroup
            if match["fence"] is not None:
                pos = self._on_fence(match)
            elif match["comment"] is not None:
                end = self.text.find("-->", match.end())
                pos = len(self.text) if end == -1 else end + 3
            elif match["pre"] is not None:
                pos = self._skip_pre(match)
            elif match["tag"] is not None:
                pos = self._on_tag(match)
            elif match["image"] is not None:
                pos = self._on_image(match)
            else:
                pos = self._skip_code_span(match)
            logger.trace(f"scanner advanced to {pos} after {kind}")
        return self.outcome

    def _add(self, diagram_type: str, span: Span, content: Inline | External) -> None:
        self.outcome.references.append(
            DiagramReference(diagram_type=diagram_type, span=span, content=content)
        )

    def _on_fence(self, match: re.Match[str]) -> int:
        chars = match["fence_chars"]
        info = match["info"].strip()
        if chars[0] == "`" and "`" in info:
            # Not a fence; an inline code span starting a line
            return self._skip_code_span(match, start=match.start("fence_chars"))

        indent = len(match["fence_indent"])
        closer = re.compile(
            rf"^[ \t]*{re.escape(chars[0])}{{{len(chars)},}}[ \t]*(?=\n|\Z)",
            re.MULTILINE,
        )
        close = closer.search(self.text, match.end())
        body_end = close.start() if close else len(self.text)
        # The newline after the closing fence stays outside the span
        end = close.end() if close else len(self.text)

        type_match = _FENCE_TYPE_RE.fullmatch(info)
        if type_match is not None:
            body = _dedent(self.text[match.end() : body_end], indent)
            self._add(type_match.group(1), (match.start(), end), Inline(body))
        return end

    def _skip_pre(self, match: re.Match[str]) -> int:
        depth = 0
        for tag in _PRE_RE.finditer(self.text, match.start()):
            depth += -1 if tag.group(1) else 1
            if depth == 0:
                return tag.end()
        return len(self.text)

    def _skip_code_span(self, match: re.Match[str], start: int | None = None) -> int:
        start = match.start() if start is None else start
        run = len(self.text[start:]) - len(self.text[start:].lstrip("`"))
        closer = re.compile(rf"(?<!`)`{{{run}}}(?!`)")
        # Code spans end at the paragraph: a blank line closes the block
        blank = _BLANK_LINE_RE.search(self.text, start + run)
        limit = blank.start() if blank else len(self.text)
        close = closer.search(self.text, start + run, limit)
        return close.end() if close else start + run

    def _on_tag(self, match: re.Match[str]) -> int:
        attrs_text = match["attrs"].rstrip()
        self_closing = attrs_text.endswith("/")
        if self_closing:
            attrs_text = attrs_text[:-1]

        start = match.start()
        if self_closing:
            end = match.end()
            body = None
        else:
            close = _TAG_CLOSE_RE.search(self.text, match.end())
            if close is None:
                self.outcome.errors.append(
                    ScanError("unterminated <kroki> tag", (start, match.end()))
                )
                return match.end()
            end = close.end()
            body = self.text[match.end() : close.start()]

        span = (start, end)
        try:
            attrs = KrokiTagAttributes.model_validate(parse_tag_attributes(attrs_text))
        except ValidationError as e:
            self.outcome.errors.append(
                ScanError(f"invalid <kroki> tag: {_describe_validation_error(e)}", span)
            )
            return end

        if attrs.path is not None:
            self._add(attrs.type, span, External(attrs.root, attrs.path))
        elif body is not None:
            self._add(attrs.type, span, Inline(body))
        else:
            self.outcome.errors.append(
                ScanError("self-closing <kroki> tag requires a path attribute", span)
            )
        return end

    def _on_image(self, match: re.Match[str]) -> int:
        path = match["image_path"]
        root = PathRoot.SYSTEM if Path(path).is_absolute() else PathRoot.THIS
        self._add(match["image_type"], (match.start(), match.end()), External(root, path))
        return match.end()


def scan_document(text: str, document_path: Path | str | None = None) -> ScanOutcome:
    """Scan a markdown document for diagram references.

    Args:
        text: Full document text.
        document_path: Location of the document, used for log context only.

    Returns:
        ScanOutcome with references in document order and collected errors.
    """
    outcome = ReferenceScanner(text).scan()
    logger.debug(
        f"Scanned {document_path or '<document>'}: "
        f"{len(outcome.references)} references, {len(outcome.errors)} errors"
    )
    return outcome
