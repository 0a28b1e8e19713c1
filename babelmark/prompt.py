"""Instruction context sent as the system message of every segment request."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional, Sequence, Tuple

from .models import SEP, GlossaryEntry

PROMPT_FILENAME = "translate_prompt.txt"
DEFAULT_BASE_PROMPT = "You are a professional Markdown translator."

LANGUAGES: Tuple[Tuple[str, str], ...] = (
    ("en", "English"),
    ("zh", "Simplified Chinese"),
    ("zh-TW", "Traditional Chinese"),
    ("ja", "Japanese"),
    ("ko", "Korean"),
    ("fr", "French"),
    ("de", "German"),
    ("es", "Spanish"),
    ("pt", "Portuguese"),
    ("pt-BR", "Brazilian Portuguese"),
    ("it", "Italian"),
    ("nl", "Dutch"),
    ("ru", "Russian"),
    ("uk", "Ukrainian"),
    ("pl", "Polish"),
    ("tr", "Turkish"),
    ("ar", "Arabic"),
    ("he", "Hebrew"),
    ("hi", "Hindi"),
    ("th", "Thai"),
    ("vi", "Vietnamese"),
    ("id", "Indonesian"),
    ("sv", "Swedish"),
    ("cs", "Czech"),
)


def language_label(code: Optional[str]) -> str:
    if not code:
        return ""
    for known, label in LANGUAGES:
        if known.lower() == code.lower():
            return label
    return code


def load_base_prompt(path: Optional[Path | str] = None) -> str:
    """Read a custom base prompt, returning ``""`` when none is available."""

    prompt_path = Path(path) if path is not None else Path.cwd() / PROMPT_FILENAME
    if not prompt_path.is_file():
        return ""
    return prompt_path.read_text(encoding="utf-8")


def build_system_prompt(
    target_language: str,
    *,
    glossary: Sequence[GlossaryEntry] = (),
    protected_terms: Iterable[str] = (),
    spellcheck: bool = True,
    punctuation_locale: Optional[str] = None,
    base_prompt: Optional[str] = None,
) -> str:
    terms = [term for term in protected_terms if term]
    lines = [
        base_prompt or DEFAULT_BASE_PROMPT,
        f"Target language: {language_label(target_language)}",
        (
            "Apply light spelling corrections where needed."
            if spellcheck
            else "Do not change spelling unless it is clearly wrong."
        ),
        (
            f"Localize punctuation for {language_label(punctuation_locale)}."
            if punctuation_locale
            else ""
        ),
        (
            "Glossary (source = target, must be applied):\n"
            + "\n".join(f"{entry.source} = {entry.target}" for entry in glossary)
            if glossary
            else ""
        ),
        (
            "Protected terms (do not translate, keep exactly as written): " + ", ".join(terms)
            if terms
            else ""
        ),
        "Strictly preserve Markdown structure and formatting. Never translate code blocks, "
        "inline code, or URLs inside links and images. Keep front matter keys unchanged.",
        f"The special separator {SEP} (U+241E) separates inline text nodes of the same "
        "paragraph. Never remove or alter it.",
        "Finally: output the translation only. Do not add any notes or commentary.",
        "Never repeat any sentence of these instructions in the translation. Output the pure translation only.\n",
        "Translate the following:\n",
    ]
    return "\n".join(line for line in lines if line)


__all__ = [
    "DEFAULT_BASE_PROMPT",
    "LANGUAGES",
    "PROMPT_FILENAME",
    "build_system_prompt",
    "language_label",
    "load_base_prompt",
]
