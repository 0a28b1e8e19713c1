from __future__ import annotations

import argparse
import asyncio
import queue
import sys
import textwrap
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from tqdm import tqdm

from .config import (
    BackendConfig,
    ConfigError,
    load_config,
    load_env_file,
    merge_config,
)
from .dispatcher import resolve_concurrency
from .files import FileReadError, atomic_write, read_glossary, read_text
from .models import GlossaryEntry, TranslationOptions
from .prompt import load_base_prompt
from .segmenter import SegmentationResult, segment_markdown
from .session import TranslationState, translate_document

DEFAULT_TIMEOUT = 60.0
DEFAULT_STREAM_INTERVAL = 0.5


@dataclass
class Settings:
    input_path: Path
    output_path: Optional[Path]
    target_lang: str
    backend: Optional[BackendConfig]
    concurrency: int
    translate_link_text: bool = True
    translate_image_alt: bool = False
    spellcheck: bool = True
    punctuation_locale: Optional[str] = None
    glossary: Optional[Path] = None
    protected_terms: List[str] = field(default_factory=list)
    prompt_file: Optional[Path] = None
    timeout: float = DEFAULT_TIMEOUT
    stream_writes: bool = False
    stream_interval: float = DEFAULT_STREAM_INTERVAL
    dry_run: bool = False
    backup: bool = True
    debug: bool = False

    @property
    def options(self) -> TranslationOptions:
        return TranslationOptions(
            translate_link_text=self.translate_link_text,
            translate_image_alt=self.translate_image_alt,
            spellcheck=self.spellcheck,
            punctuation_locale=self.punctuation_locale,
        )


WriteTask = tuple[Path, str, bool]


class WriterThread:
    """Serialises output rewrites off the event loop; the first write may back up."""

    _SENTINEL: WriteTask | None = None

    def __init__(self) -> None:
        self._queue: "queue.Queue[WriteTask | None]" = queue.Queue()
        self._thread = threading.Thread(target=self._worker, daemon=True)
        self._backed_up: set[Path] = set()

    def start(self) -> None:
        self._thread.start()

    def submit(self, task: WriteTask) -> None:
        self._queue.put(task)

    def close(self) -> None:
        self._queue.put(self._SENTINEL)
        self._queue.join()
        self._thread.join()

    def _worker(self) -> None:
        while True:
            task = self._queue.get()
            if task is self._SENTINEL:
                self._queue.task_done()
                break
            path, content, backup = task
            try:
                effective_backup = backup and path not in self._backed_up
                atomic_write(path, content, backup=effective_backup)
                if effective_backup:
                    self._backed_up.add(path)
            except Exception as exc:  # pragma: no cover - worker should not raise
                print(f"Failed to write {path}: {exc}", file=sys.stderr)
            finally:
                self._queue.task_done()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Babelmark – translate a Markdown document while keeping its structure"
    )
    parser.add_argument("input", nargs="?", help="Markdown file to translate", default=None)
    parser.add_argument("--config", help="Path to a configuration file", default=None)
    parser.add_argument("--env-file", help="Path to a .env file containing API credentials", default=None)
    parser.add_argument("--output", help="Output file (defaults to stdout)", default=None)
    parser.add_argument("--target-lang", help="Target language code", default=None)
    parser.add_argument("--model", help="Chat-completions model identifier", default=None)
    parser.add_argument("--api-key", help="API key (falls back to OPENAI_API_KEY)", default=None)
    parser.add_argument("--base-url", help="Provider base URL", default=None)
    parser.add_argument("--chat-path", help="Explicit chat-completions path", default=None)
    parser.add_argument("--concurrency", type=int, help="Number of concurrent segment requests", default=None)
    parser.add_argument(
        "--translate-link-text",
        action=argparse.BooleanOptionalAction,
        help="Translate the visible text of links",
        default=None,
    )
    parser.add_argument(
        "--translate-image-alt",
        action=argparse.BooleanOptionalAction,
        help="Translate image alt text",
        default=None,
    )
    parser.add_argument(
        "--spellcheck",
        action=argparse.BooleanOptionalAction,
        help="Ask the model to fix spelling in the target language",
        default=None,
    )
    parser.add_argument("--punctuation-locale", help="Locale whose punctuation rules apply", default=None)
    parser.add_argument("--glossary", help="Glossary file (JSON or CSV)", default=None)
    parser.add_argument("--protect", action="append", help="Term to keep untranslated (repeatable)", default=None)
    parser.add_argument("--prompt-file", help="Custom base prompt file", default=None)
    parser.add_argument("--timeout", type=float, help="API request timeout in seconds", default=None)
    parser.add_argument(
        "--stream-writes",
        action=argparse.BooleanOptionalAction,
        help="Rewrite the output file with the live preview while translating",
        default=None,
    )
    parser.add_argument(
        "--stream-interval",
        type=float,
        help="Minimum seconds between streamed rewrites",
        default=None,
    )
    parser.add_argument("--dry-run", action="store_true", help="List segments without translating")
    parser.add_argument("--no-backup", action="store_true", help="Do not create a .bak file when overwriting output")
    parser.add_argument("--debug", action="store_true", help="Print request/response debug information")
    return parser


def parse_arguments(argv: Optional[List[str]] = None) -> Settings:
    parser = build_parser()
    args = parser.parse_args(argv)

    load_env_file(args.env_file)

    try:
        config_data = load_config(args.config)
    except ConfigError as exc:
        parser.error(str(exc))
    explicit_false = {"translate_link_text", "translate_image_alt", "spellcheck", "stream_writes"}
    cli_overrides = {}
    for key, value in vars(args).items():
        if key == "config":
            continue
        if value is None:
            continue
        if value is False and key not in explicit_false:
            continue
        cli_overrides[key] = value
    merged: Dict[str, object] = merge_config(config_data, cli_overrides)

    input_value = merged.get("input")
    if not input_value:
        parser.error("an input Markdown file is required")
    input_path = Path(str(input_value)).expanduser().resolve()

    output_value = merged.get("output")
    output_path = Path(str(output_value)).expanduser().resolve() if output_value else None

    target_lang = merged.get("target_lang") or merged.get("target-lang")
    if not target_lang:
        parser.error("--target-lang is required")

    dry_run = bool(merged.get("dry_run") or merged.get("dry-run") or args.dry_run)

    backend: Optional[BackendConfig] = None
    try:
        backend = BackendConfig.from_env(
            api_key=_optional_str(merged.get("api_key") or merged.get("api-key")),
            model=_optional_str(merged.get("model")),
            base_url=_optional_str(merged.get("base_url") or merged.get("base-url")),
            path_override=_optional_str(merged.get("chat_path") or merged.get("chat-path")),
        )
    except ValueError as exc:
        if not dry_run:
            parser.error(str(exc))

    concurrency = resolve_concurrency(merged.get("concurrency"))

    translation_config = merged.get("translation") if isinstance(merged.get("translation"), dict) else {}
    translate_link_text = _resolve_bool(
        merged.get("translate_link_text"),
        merged.get("translate-link-text"),
        (translation_config or {}).get("link_text"),
        default=True,
    )
    translate_image_alt = _resolve_bool(
        merged.get("translate_image_alt"),
        merged.get("translate-image-alt"),
        (translation_config or {}).get("image_alt"),
        default=False,
    )
    spellcheck = _resolve_bool(
        merged.get("spellcheck"),
        (translation_config or {}).get("spellcheck"),
        default=True,
    )
    punctuation_locale = _optional_str(
        merged.get("punctuation_locale")
        or merged.get("punctuation-locale")
        or (translation_config or {}).get("punctuation_locale")
    )

    protected_terms = _ensure_list(merged.get("protect")) + _ensure_list(
        merged.get("protected_terms") or (translation_config or {}).get("protected_terms")
    )

    stream_writes = _resolve_bool(
        merged.get("stream_writes"),
        merged.get("stream-writes"),
        default=False,
    )
    stream_interval = float(
        merged.get("stream_interval") or merged.get("stream-interval") or DEFAULT_STREAM_INTERVAL
    )

    backup = _resolve_bool(merged.get("backup"), default=True)
    backup = backup and not (merged.get("no_backup") or merged.get("no-backup") or args.no_backup)

    timeout = float(merged.get("timeout") or DEFAULT_TIMEOUT)

    glossary_path = merged.get("glossary")
    glossary = Path(str(glossary_path)).expanduser() if glossary_path else None

    prompt_value = merged.get("prompt_file") or merged.get("prompt-file")
    prompt_file = Path(str(prompt_value)).expanduser() if prompt_value else None

    return Settings(
        input_path=input_path,
        output_path=output_path,
        target_lang=str(target_lang),
        backend=backend,
        concurrency=concurrency,
        translate_link_text=translate_link_text,
        translate_image_alt=translate_image_alt,
        spellcheck=spellcheck,
        punctuation_locale=punctuation_locale,
        glossary=glossary,
        protected_terms=protected_terms,
        prompt_file=prompt_file,
        timeout=timeout,
        stream_writes=stream_writes,
        stream_interval=stream_interval,
        dry_run=dry_run,
        backup=backup,
        debug=bool(merged.get("debug") or args.debug),
    )


def _optional_str(value: object) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _ensure_list(value: object) -> List[str]:
    if value is None:
        return []
    if isinstance(value, list):
        result: List[str] = []
        for item in value:
            if isinstance(item, str):
                result.extend([part.strip() for part in item.split(",") if part.strip()])
        return result
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return []


def _resolve_bool(*values: object, default: bool = False) -> bool:
    for value in values:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.lower()
            if lowered in {"true", "1", "yes", "on"}:
                return True
            if lowered in {"false", "0", "no", "off"}:
                return False
    return default


def _print_dry_run(segmentation: SegmentationResult) -> None:
    for segment in segmentation.segments:
        preview = textwrap.shorten(segment.text.replace("\n", " "), width=80, placeholder="...")
        print(f"[DRY RUN] {segment.id} ({segment.kind.value}) {preview}")
    print(f"Total segments requiring translation: {len(segmentation.segments)}")


def run(settings: Settings) -> int:
    start = time.time()
    try:
        text = read_text(settings.input_path)
    except FileReadError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    segmentation = segment_markdown(text, settings.options)

    if settings.dry_run:
        _print_dry_run(segmentation)
        return 0

    if settings.backend is None:
        print("Missing API key (provide --api-key or set OPENAI_API_KEY)", file=sys.stderr)
        return 1

    glossary: List[GlossaryEntry] = []
    if settings.glossary:
        try:
            glossary = read_glossary(settings.glossary)
        except (OSError, ValueError, KeyError) as exc:
            print(f"Failed to read glossary: {exc}", file=sys.stderr)
            return 1

    base_prompt = load_base_prompt(settings.prompt_file) or None

    destination = settings.output_path
    progress = tqdm(total=len(segmentation.segments), unit="segment", desc="Translating", file=sys.stderr)
    failures: List[str] = []
    writer = WriterThread()
    writer.start()
    last_emit = 0.0

    def on_update(rendered: str, _state: TranslationState) -> None:
        nonlocal last_emit
        if destination is None or not settings.stream_writes:
            return
        now = time.monotonic()
        if now - last_emit < settings.stream_interval:
            return
        last_emit = now
        writer.submit((destination, rendered, settings.backup))

    def on_error(segment_id: str, message: str) -> None:
        failures.append(f"{segment_id}: {message}")
        progress.write(f"Segment {segment_id} failed: {message}", file=sys.stderr)

    def on_done(_segment_id: str) -> None:
        progress.update(1)

    try:
        rendered, state = asyncio.run(
            translate_document(
                segmentation,
                config=settings.backend,
                target_language=settings.target_lang,
                options=settings.options,
                glossary=glossary,
                protected_terms=settings.protected_terms,
                concurrency=settings.concurrency,
                base_prompt=base_prompt,
                timeout=settings.timeout,
                debug=settings.debug,
                on_update=on_update,
                on_error=on_error,
                on_done=on_done,
            )
        )
    except KeyboardInterrupt:
        writer.close()
        progress.close()
        print("Interrupted.", file=sys.stderr)
        return 130

    if destination is not None:
        writer.submit((destination, rendered, settings.backup))
    writer.close()
    progress.close()

    if destination is None:
        sys.stdout.write(rendered)
        sys.stdout.flush()

    duration = time.time() - start
    print(file=sys.stderr)
    print("Summary", file=sys.stderr)
    print("=======", file=sys.stderr)
    print(f"Segments: {len(segmentation.segments)}", file=sys.stderr)
    print(f"Completed: {len(state.done)}", file=sys.stderr)
    print(f"Failed: {state.failed}", file=sys.stderr)
    print(f"Elapsed time: {duration:.2f}s", file=sys.stderr)

    if failures:
        print(file=sys.stderr)
        print("Failures:", file=sys.stderr)
        for item in failures:
            print(f" - {item}", file=sys.stderr)
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    settings = parse_arguments(argv)
    return run(settings)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
