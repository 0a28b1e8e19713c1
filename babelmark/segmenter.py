from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

import marko
from marko import block, inline

from .markdown import create_markdown, fold_escapes, parse_document
from .models import SEP, Segment, SegmentKind, TranslationOptions
from .protection import ProtectionRules, node_type, plain_text


@dataclass
class SegmentationResult:
    """A parsed document together with its segments and node index."""

    document: block.Document
    segments: List[Segment]
    text_nodes: Dict[str, List[inline.RawText]]
    image_nodes: Dict[str, List[inline.Image]]
    front_matter: str = ""
    markdown: marko.Markdown = field(default_factory=create_markdown)
    _by_id: Dict[str, Segment] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self._by_id = {segment.id: segment for segment in self.segments}

    def get(self, segment_id: str) -> Optional[Segment]:
        return self._by_id.get(segment_id)

    def source_parts(self, segment_id: str) -> List[str]:
        """Original values of the text nodes behind ``segment_id``."""

        segment = self.get(segment_id)
        if segment is None:
            return []
        if segment.kind is SegmentKind.IMAGE_ALT:
            return [segment.text]
        return segment.text.split(SEP)


class Segmenter:
    """Pre-order walk that turns containers into segments.

    Every text node is claimed by the first (outermost) container that
    reaches it, so nested containers never re-emit text an ancestor already
    covers.
    """

    def __init__(self, rules: ProtectionRules) -> None:
        self.rules = rules
        self.segments: List[Segment] = []
        self.text_nodes: Dict[str, List[inline.RawText]] = {}
        self.image_nodes: Dict[str, List[inline.Image]] = {}
        self._claimed: Set[int] = set()
        self._text_counter = 0
        self._image_counter = 0

    def run(self, document: block.Document) -> None:
        fold_escapes(document)
        self._visit(document)

    def _visit(self, node: Any) -> None:
        if self.rules.is_code(node) or self.rules.skips_link(node):
            return
        if self.rules.is_container(node):
            self._make_text_segment(node)
        elif node_type(node) == "Image":
            if self.rules.wants_image_alt(node):
                self._make_image_segment(node)
            return

        children = getattr(node, "children", None)
        if isinstance(children, list):
            for child in children:
                self._visit(child)

    def _make_text_segment(self, container: Any) -> None:
        nodes: List[inline.RawText] = []
        self._collect(container, nodes)
        if not nodes:
            return
        text = SEP.join(node.children for node in nodes)
        if not text.strip():
            return
        self._text_counter += 1
        segment_id = f"s{self._text_counter}"
        self.segments.append(Segment(segment_id, text, SegmentKind.TEXT))
        self.text_nodes[segment_id] = nodes
        self._claimed.update(id(node) for node in nodes)

    def _make_image_segment(self, image: inline.Image) -> None:
        self._image_counter += 1
        segment_id = f"img{self._image_counter}"
        self.segments.append(Segment(segment_id, plain_text(image), SegmentKind.IMAGE_ALT))
        self.image_nodes[segment_id] = [image]

    def _collect(self, node: Any, out: List[inline.RawText]) -> None:
        if self.rules.is_excluded(node):
            return
        if self.rules.is_text(node):
            if id(node) not in self._claimed and node.children.strip():
                out.append(node)
            return
        children = getattr(node, "children", None)
        if isinstance(children, list):
            for child in children:
                self._collect(child, out)


def segment_tree(
    document: block.Document,
    rules: Optional[ProtectionRules] = None,
    *,
    front_matter: str = "",
    markdown: Optional[marko.Markdown] = None,
) -> SegmentationResult:
    segmenter = Segmenter(rules or ProtectionRules())
    segmenter.run(document)
    return SegmentationResult(
        document=document,
        segments=segmenter.segments,
        text_nodes=segmenter.text_nodes,
        image_nodes=segmenter.image_nodes,
        front_matter=front_matter,
        markdown=markdown or create_markdown(),
    )


def segment_markdown(
    text: str,
    options: Optional[TranslationOptions] = None,
) -> SegmentationResult:
    """Parse ``text`` and extract its translatable segments.

    Front matter is split off before parsing and never segmented.
    """

    front_matter, document, md = parse_document(text)
    rules = ProtectionRules.from_options(options or TranslationOptions())
    return segment_tree(document, rules, front_matter=front_matter, markdown=md)


__all__ = ["SegmentationResult", "Segmenter", "segment_tree", "segment_markdown"]
