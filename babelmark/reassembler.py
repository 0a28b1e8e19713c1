from __future__ import annotations

import re
from typing import Mapping

from marko import block, inline

from .markdown import render_document
from .models import SEP
from .segmenter import SegmentationResult

_BLOCK_MATH_RE = re.compile(r"\$\$([\s\S]*?)\$\$")
# Single-line only so that prices such as "$5 and $6" across lines stay intact.
_INLINE_MATH_RE = re.compile(r"\$([^$\n]*?)\$")


def apply_translations(
    result: SegmentationResult,
    translations: Mapping[str, str],
) -> block.Document:
    """Write the accumulated translations into the indexed tree nodes.

    Segments without text yet keep their source values. When the number of
    separators in a translation does not match the recorded nodes, the whole
    text goes to the first node and the other nodes show their source text.
    """

    for segment_id, nodes in result.text_nodes.items():
        translated = translations.get(segment_id)
        if not translated:
            continue
        parts = translated.split(SEP)
        if len(parts) == len(nodes):
            for node, part in zip(nodes, parts):
                node.children = part
            continue
        nodes[0].children = translated
        sources = result.source_parts(segment_id)
        for node, source in zip(nodes[1:], sources[1:]):
            node.children = source

    for segment_id, images in result.image_nodes.items():
        translated = translations.get(segment_id)
        if not translated:
            continue
        for image in images:
            image.children = [inline.RawText(translated)]

    return result.document


def unescape_math(markdown: str) -> str:
    """Undo ``\\*`` escapes inside ``$$...$$`` and ``$...$`` spans."""

    def _block(match: re.Match[str]) -> str:
        return "$$" + match.group(1).replace("\\*", "*") + "$$"

    def _inline(match: re.Match[str]) -> str:
        return "$" + match.group(1).replace("\\*", "*") + "$"

    out = _BLOCK_MATH_RE.sub(_block, markdown)
    return _INLINE_MATH_RE.sub(_inline, out)


def render_markdown(result: SegmentationResult) -> str:
    body = render_document(result.document, markdown=result.markdown)
    return result.front_matter + unescape_math(body)


def apply_and_render(result: SegmentationResult, translations: Mapping[str, str]) -> str:
    apply_translations(result, translations)
    return render_markdown(result)


__all__ = ["apply_translations", "render_markdown", "apply_and_render", "unescape_math"]
