"""Kroki render client.

Every diagram of a document is POSTed to the Kroki JSON API concurrently on
one shared httpx.AsyncClient. Results are keyed by the span of the reference
they belong to, so completion order never matters.

Request body (https://docs.kroki.io/kroki/setup/http-clients/):

    {"diagram_source": "...", "diagram_type": "mermaid", "output_format": "svg"}
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

import httpx

from mdkroki.config import KrokiConfig, normalize_endpoint
from mdkroki.errors import RenderError
from mdkroki.logging import log
from mdkroki.models import RenderResult, ResolvedDiagram, Span

USER_AGENT = "mdbook-kroki-preprocessor"


def create_client(config: KrokiConfig) -> httpx.AsyncClient:
    """Create the HTTP client shared by all render requests of a run.

    The connection pool is unbounded so every request of a batch can be in
    flight at once.
    """
    return httpx.AsyncClient(
        timeout=httpx.Timeout(config.timeout),
        follow_redirects=True,
        headers={"User-Agent": USER_AGENT},
        limits=httpx.Limits(
            max_keepalive_connections=20,
            max_connections=None,
            keepalive_expiry=30.0,
        ),
    )


def extract_svg(body: str, span: Span | None = None) -> str:
    """Strip anything before the <svg> element and wrap it for HTML output.

    Raises:
        RenderError: If the response holds no <svg> element.
    """
    start = body.find("<svg")
    if start == -1:
        raise RenderError(f"didn't find '<svg' in kroki response: {body[:200]}", span)
    return f"<pre>{body[start:]}</pre>"


async def fetch_svg(
    diagram: ResolvedDiagram,
    *,
    client: httpx.AsyncClient,
    endpoint: str,
    output_format: str = "svg",
) -> str:
    """Render one diagram through Kroki.

    Raises:
        RenderError: On a non-success response, transport failure or a
            response without SVG.
    """
    payload = {
        "diagram_source": diagram.source_text,
        "diagram_type": diagram.diagram_type,
        "output_format": output_format,
    }
    with log("kroki.render", diagram_type=diagram.diagram_type, offset=diagram.span[0]) as s:
        try:
            response = await client.post(endpoint, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            detail = e.response.text[:200] if e.response.text else f"HTTP {status}"
            raise RenderError(
                f"kroki returned HTTP {status} for {diagram.diagram_type} diagram: {detail}",
                diagram.span,
            ) from e
        except httpx.RequestError as e:
            raise RenderError(f"request to {endpoint} failed: {e}", diagram.span) from e

        s.add(status=response.status_code)
        svg = extract_svg(response.text, diagram.span)
        s.add(size=len(svg))
        return svg


async def render_one(
    diagram: ResolvedDiagram,
    *,
    client: httpx.AsyncClient,
    endpoint: str,
    output_format: str = "svg",
) -> RenderResult:
    """Render one diagram, capturing a RenderError in the result."""
    try:
        svg = await fetch_svg(
            diagram, client=client, endpoint=endpoint, output_format=output_format
        )
    except RenderError as e:
        return RenderResult(span=diagram.span, error=e)
    return RenderResult(span=diagram.span, svg=svg)


async def render_all(
    diagrams: Sequence[ResolvedDiagram],
    *,
    client: httpx.AsyncClient,
    config: KrokiConfig,
) -> list[RenderResult]:
    """Render every diagram concurrently.

    All requests are issued before any is awaited. A failed request does not
    cancel the others; every diagram gets exactly one RenderResult.

    Args:
        diagrams: Resolved diagrams of one document.
        client: Shared HTTP client.
        config: Preprocessor settings (endpoint, output format).

    Returns:
        One RenderResult per diagram, in input order.
    """
    endpoint = normalize_endpoint(config.endpoint)
    return list(
        await asyncio.gather(
            *(
                render_one(
                    diagram,
                    client=client,
                    endpoint=endpoint,
                    output_format=config.output_format,
                )
                for diagram in diagrams
            )
        )
    )
