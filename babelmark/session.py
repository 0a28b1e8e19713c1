from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Iterable, Optional, Sequence, Set, Tuple

from .backend import StreamingBackend
from .config import BackendConfig
from .dispatcher import DEFAULT_CONCURRENCY, TranslateOne, TranslationDispatcher
from .models import (
    DeltaEvent,
    DoneEvent,
    ErrorEvent,
    GlossaryEntry,
    TranslationEvent,
    TranslationOptions,
)
from .prompt import build_system_prompt
from .reassembler import apply_and_render, render_markdown
from .segmenter import SegmentationResult

UpdateCallback = Callable[[str, "TranslationState"], Awaitable[None] | None]
ErrorCallback = Callable[[str, str], Awaitable[None] | None]
DoneCallback = Callable[[str], Awaitable[None] | None]


@dataclass
class TranslationState:
    """Accumulated translation progress of one run."""

    by_id: Dict[str, str] = field(default_factory=dict)
    done: Set[str] = field(default_factory=set)
    errors: Dict[str, Optional[str]] = field(default_factory=dict)

    def reset(self) -> None:
        self.by_id.clear()
        self.done.clear()
        self.errors.clear()

    def record(self, event: TranslationEvent) -> None:
        if isinstance(event, DeltaEvent):
            self.by_id[event.segment_id] = self.by_id.get(event.segment_id, "") + event.delta
        elif isinstance(event, DoneEvent):
            self.done.add(event.segment_id)
        elif isinstance(event, ErrorEvent):
            self.errors[event.segment_id] = event.message or "error"

    @property
    def failed(self) -> int:
        return len(self.errors)


class TranslationSession:
    """Drives one document through dispatch and live re-rendering."""

    def __init__(
        self,
        segmentation: SegmentationResult,
        translate_one: TranslateOne,
        *,
        concurrency: object = DEFAULT_CONCURRENCY,
        on_update: Optional[UpdateCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        on_done: Optional[DoneCallback] = None,
        debug: bool = False,
    ) -> None:
        self.segmentation = segmentation
        self.state = TranslationState()
        self.on_update = on_update
        self.on_error = on_error
        self.on_done = on_done
        self._dispatcher = TranslationDispatcher(translate_one, concurrency=concurrency, debug=debug)

    @property
    def dispatcher(self) -> TranslationDispatcher:
        return self._dispatcher

    def render(self) -> str:
        return apply_and_render(self.segmentation, self.state.by_id)

    def cancel(self) -> None:
        self._dispatcher.cancel()

    async def run(self) -> str:
        self.state.reset()
        if not self.segmentation.segments:
            return render_markdown(self.segmentation)

        async for event in self._dispatcher.stream(self.segmentation.segments):
            self.state.record(event)
            if isinstance(event, DeltaEvent):
                await _maybe_await(self.on_update, self.render(), self.state)
            elif isinstance(event, ErrorEvent):
                await _maybe_await(self.on_error, event.segment_id, event.message)
            else:
                await _maybe_await(self.on_done, event.segment_id)
        return self.render()


async def _maybe_await(callback: Optional[Callable[..., object]], *args: object) -> None:
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


async def translate_document(
    segmentation: SegmentationResult,
    *,
    config: BackendConfig,
    target_language: str,
    options: Optional[TranslationOptions] = None,
    glossary: Sequence[GlossaryEntry] = (),
    protected_terms: Iterable[str] = (),
    concurrency: object = DEFAULT_CONCURRENCY,
    base_prompt: Optional[str] = None,
    timeout: float = 60.0,
    debug: bool = False,
    on_update: Optional[UpdateCallback] = None,
    on_error: Optional[ErrorCallback] = None,
    on_done: Optional[DoneCallback] = None,
) -> Tuple[str, TranslationState]:
    """Translate a segmented document end to end and return the final render."""

    options = options or TranslationOptions()
    system_prompt = build_system_prompt(
        target_language,
        glossary=glossary,
        protected_terms=protected_terms,
        spellcheck=options.spellcheck,
        punctuation_locale=options.punctuation_locale,
        base_prompt=base_prompt,
    )
    backend = StreamingBackend(config, system_prompt=system_prompt, timeout=timeout, debug=debug)
    session = TranslationSession(
        segmentation,
        backend.translate_one,
        concurrency=concurrency,
        on_update=on_update,
        on_error=on_error,
        on_done=on_done,
        debug=debug,
    )
    try:
        rendered = await session.run()
    finally:
        await backend.close()
    return rendered, session.state


__all__ = ["TranslationSession", "TranslationState", "translate_document"]
