"""Render a stored document back into a readable format.

Supported formats: ``markdown``, ``plain``, ``html`` and ``json``.  Rendering
works from stored rows only, so it needs no remote access.
"""

from __future__ import annotations

import html
import json
from dataclasses import asdict
from typing import Callable

from docmirror.db.models import DocumentRow, NodeRow

FORMATS = ("markdown", "plain", "html", "json")

_MARKDOWN_PREFIX = {
    "heading_1": "# ",
    "heading_2": "## ",
    "heading_3": "### ",
    "bulleted_list_item": "- ",
    "numbered_list_item": "1. ",
    "quote": "> ",
    "to_do": "- ",
}

_HTML_TAG = {
    "heading_1": "h1",
    "heading_2": "h2",
    "heading_3": "h3",
    "quote": "blockquote",
    "bulleted_list_item": "li",
    "numbered_list_item": "li",
    "code": "pre",
}


def _visible(nodes: list[NodeRow]) -> list[NodeRow]:
    return [n for n in nodes if n.plain_text.strip()]


def to_markdown(document: DocumentRow, nodes: list[NodeRow]) -> str:
    blocks = [f"# {document.title}"]
    for node in _visible(nodes):
        if node.type == "code":
            language = node.content.get("language", "")
            blocks.append(f"```{language}\n{node.plain_text}\n```")
        elif node.type == "divider":
            blocks.append("---")
        else:
            indent = "  " * node.depth if node.type in _MARKDOWN_PREFIX else ""
            blocks.append(f"{indent}{_MARKDOWN_PREFIX.get(node.type, '')}{node.plain_text}")
    return "\n\n".join(blocks)


def to_plain(document: DocumentRow, nodes: list[NodeRow]) -> str:
    return "\n".join([document.title, *(n.plain_text for n in _visible(nodes))])


def to_html(document: DocumentRow, nodes: list[NodeRow]) -> str:
    parts = [f"<h1>{html.escape(document.title)}</h1>"]
    for node in _visible(nodes):
        if node.type == "divider":
            parts.append("<hr>")
            continue
        tag = _HTML_TAG.get(node.type, "p")
        parts.append(f"<{tag}>{html.escape(node.plain_text)}</{tag}>")
    return "\n".join(parts)


def to_json(document: DocumentRow, nodes: list[NodeRow]) -> str:
    return json.dumps(
        {"document": asdict(document), "nodes": [asdict(n) for n in nodes]},
        indent=2,
        ensure_ascii=False,
    )


_RENDERERS: dict[str, Callable[[DocumentRow, list[NodeRow]], str]] = {
    "markdown": to_markdown,
    "plain": to_plain,
    "html": to_html,
    "json": to_json,
}


def render(document: DocumentRow, nodes: list[NodeRow], fmt: str) -> str:
    """Render *document* in *fmt*.

    Raises:
        ValueError: If *fmt* is not one of :data:`FORMATS`.
    """
    try:
        renderer = _RENDERERS[fmt]
    except KeyError:
        raise ValueError(
            f"Unsupported format {fmt!r}; expected one of {', '.join(FORMATS)}"
        ) from None
    return renderer(document, nodes)
