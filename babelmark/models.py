from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import ClassVar, Dict, Optional, Union

# Joins the text nodes of one container into a single request; the model is
# told to keep it so the translation can be split back per node.
SEP = "␞"


class SegmentKind(str, enum.Enum):
    TEXT = "text"
    IMAGE_ALT = "image-alt"


class EventType(str, enum.Enum):
    DELTA = "delta"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True)
class Segment:
    """An independently translatable unit extracted from one container."""

    id: str
    text: str
    kind: SegmentKind = SegmentKind.TEXT

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "text": self.text, "kind": self.kind.value}


@dataclass(frozen=True)
class GlossaryEntry:
    source: str
    target: str


@dataclass(frozen=True)
class TranslationOptions:
    translate_link_text: bool = True
    translate_image_alt: bool = False
    spellcheck: bool = True
    punctuation_locale: Optional[str] = None


@dataclass(frozen=True)
class DeltaEvent:
    type: ClassVar[EventType] = EventType.DELTA

    segment_id: str
    delta: str

    def to_dict(self) -> Dict[str, str]:
        return {"type": self.type.value, "segmentId": self.segment_id, "delta": self.delta}


@dataclass(frozen=True)
class DoneEvent:
    type: ClassVar[EventType] = EventType.DONE

    segment_id: str

    def to_dict(self) -> Dict[str, str]:
        return {"type": self.type.value, "segmentId": self.segment_id}


@dataclass(frozen=True)
class ErrorEvent:
    type: ClassVar[EventType] = EventType.ERROR

    segment_id: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"type": self.type.value, "segmentId": self.segment_id, "message": self.message}


TranslationEvent = Union[DeltaEvent, DoneEvent, ErrorEvent]


__all__ = [
    "SEP",
    "SegmentKind",
    "EventType",
    "Segment",
    "GlossaryEntry",
    "TranslationOptions",
    "DeltaEvent",
    "DoneEvent",
    "ErrorEvent",
    "TranslationEvent",
]
