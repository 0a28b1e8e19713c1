from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from babelmark.models import GlossaryEntry, Segment, SegmentKind, TranslationOptions


class SegmentSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    text: str
    kind: SegmentKind = SegmentKind.TEXT

    def to_model(self) -> Segment:
        return Segment(id=self.id, text=self.text, kind=self.kind)


class GlossaryEntrySchema(BaseModel):
    source: str
    target: str

    def to_model(self) -> GlossaryEntry:
        return GlossaryEntry(source=self.source, target=self.target)


class TranslationOptionsSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    translate_link_text: bool = Field(True, alias="translateLinkText")
    translate_image_alt: bool = Field(False, alias="translateImageAlt")
    spellcheck: bool = True
    punctuation_locale: Optional[str] = Field(None, alias="punctuationLocale")

    def to_model(self) -> TranslationOptions:
        return TranslationOptions(
            translate_link_text=self.translate_link_text,
            translate_image_alt=self.translate_image_alt,
            spellcheck=self.spellcheck,
            punctuation_locale=self.punctuation_locale or None,
        )


class TranslateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    segments: List[SegmentSchema] = Field(default_factory=list)
    target_lang: str = Field("en", alias="targetLang")
    glossary: List[GlossaryEntrySchema] = Field(default_factory=list)
    protected_terms: List[str] = Field(default_factory=list, alias="protectedTerms")
    options: TranslationOptionsSchema = Field(default_factory=TranslationOptionsSchema)
    model: Optional[str] = None
    concurrency: Optional[float] = None


class ErrorResponse(BaseModel):
    error: str


__all__ = [
    "ErrorResponse",
    "GlossaryEntrySchema",
    "SegmentSchema",
    "TranslateRequest",
    "TranslationOptionsSchema",
]
