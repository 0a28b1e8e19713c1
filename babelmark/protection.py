"""Per-node policy deciding which parts of a Markdown tree are translatable."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List

from .models import TranslationOptions

CODE_TYPES = frozenset({"CodeSpan", "FencedCode", "CodeBlock"})
URL_TYPES = frozenset({"AutoLink", "Url"})
CONTAINER_TYPES = frozenset({"Paragraph", "Heading", "SetextHeading", "ListItem", "TableCell"})
LINK_TYPE = "Link"
IMAGE_TYPE = "Image"
TEXT_TYPE = "RawText"


def node_type(node: Any) -> str:
    get_type = getattr(node, "get_type", None)
    if get_type is not None:
        return get_type()
    return type(node).__name__


def plain_text(node: Any) -> str:
    """Concatenate every string value below ``node``."""

    children = getattr(node, "children", None)
    if isinstance(children, str):
        return children
    if not isinstance(children, list):
        return ""
    parts: List[str] = [plain_text(child) for child in children]
    return "".join(parts)


@dataclass(frozen=True)
class ProtectionRules:
    translate_link_text: bool = True
    translate_image_alt: bool = False

    @classmethod
    def from_options(cls, options: TranslationOptions) -> "ProtectionRules":
        return cls(
            translate_link_text=options.translate_link_text,
            translate_image_alt=options.translate_image_alt,
        )

    def is_code(self, node: Any) -> bool:
        return node_type(node) in CODE_TYPES

    def skips_link(self, node: Any) -> bool:
        return not self.translate_link_text and node_type(node) == LINK_TYPE

    def is_excluded(self, node: Any) -> bool:
        """True when no text below ``node`` may enter a text segment.

        Image alt text is excluded here as well; it is only ever translated
        through its own ``image-alt`` segment.
        """

        kind = node_type(node)
        if kind in CODE_TYPES or kind in URL_TYPES or kind == IMAGE_TYPE:
            return True
        return kind == LINK_TYPE and not self.translate_link_text

    def is_container(self, node: Any) -> bool:
        return node_type(node) in CONTAINER_TYPES

    def is_text(self, node: Any) -> bool:
        return node_type(node) == TEXT_TYPE and isinstance(getattr(node, "children", None), str)

    def wants_image_alt(self, node: Any) -> bool:
        if not self.translate_image_alt or node_type(node) != IMAGE_TYPE:
            return False
        return bool(plain_text(node).strip())


__all__ = [
    "CODE_TYPES",
    "CONTAINER_TYPES",
    "URL_TYPES",
    "ProtectionRules",
    "node_type",
    "plain_text",
]
