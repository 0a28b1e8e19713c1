"""Parse/print adapter around ``marko`` with the GFM extension."""

from __future__ import annotations

from typing import List, Optional, Tuple

import marko
from marko import block, inline
from marko.element import Element
from marko.md_renderer import MarkdownRenderer

_FRONT_MATTER_FENCES = ("---", "...")


class PreservingMarkdownRenderer(MarkdownRenderer):
    """Markdown renderer that writes text node values back verbatim.

    The stock renderer inserts spaces between CJK and Latin runs, which would
    silently rewrite translated prose.
    """

    def render_raw_text(self, element: inline.RawText) -> str:
        return element.children


def create_markdown() -> marko.Markdown:
    return marko.Markdown(renderer=PreservingMarkdownRenderer, extensions=["gfm"])


def split_front_matter(text: str) -> Tuple[str, str]:
    """Return ``(front_matter, body)``; ``front_matter`` is ``""`` when absent."""

    lines = text.splitlines(keepends=True)
    if not lines or lines[0].rstrip() != "---":
        return "", text

    collected: List[str] = [lines[0]]
    for idx in range(1, len(lines)):
        collected.append(lines[idx])
        if lines[idx].rstrip() in _FRONT_MATTER_FENCES:
            return "".join(collected), "".join(lines[idx + 1 :])
    return "", text


def fold_escapes(node: Element) -> None:
    """Merge backslash escapes back into the text runs around them.

    ``marko`` parses ``\\*`` into a separate ``Literal`` node. Folding it
    into one ``RawText`` keeps the escape, and any math span around it,
    inside a single text value. The verbatim renderer writes it back as-is.
    """

    children = getattr(node, "children", None)
    if not isinstance(children, list):
        return
    if any(child.get_type() == "Literal" for child in children):
        node.children = _merge_text_runs(children)
    for child in node.children:
        fold_escapes(child)


def _merge_text_runs(children: List[Element]) -> List[Element]:
    merged: List[Element] = []
    run: List[str] = []
    for child in children:
        kind = child.get_type()
        if kind == "Literal":
            run.append("\\" + child.children)
        elif kind == "RawText":
            run.append(child.children)
        else:
            if run:
                merged.append(inline.RawText("".join(run)))
                run = []
            merged.append(child)
    if run:
        merged.append(inline.RawText("".join(run)))
    return merged


def parse_document(
    text: str,
    *,
    markdown: Optional[marko.Markdown] = None,
) -> Tuple[str, block.Document, marko.Markdown]:
    """Split off front matter and parse the body into a tree."""

    md = markdown or create_markdown()
    front_matter, body = split_front_matter(text)
    return front_matter, md.parse(body), md


def render_document(
    document: block.Document,
    *,
    front_matter: str = "",
    markdown: Optional[marko.Markdown] = None,
) -> str:
    md = markdown or create_markdown()
    return front_matter + md.render(document)


__all__ = [
    "PreservingMarkdownRenderer",
    "create_markdown",
    "split_front_matter",
    "fold_escapes",
    "parse_document",
    "render_document",
]
