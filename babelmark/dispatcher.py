from __future__ import annotations

import asyncio
import math
import os
import sys
from typing import AsyncIterator, Callable, List, Optional, Sequence

from .models import DoneEvent, ErrorEvent, EventType, Segment, TranslationEvent

MIN_CONCURRENCY = 1
MAX_CONCURRENCY = 30
DEFAULT_CONCURRENCY = 3

TranslateOne = Callable[[str, str], AsyncIterator[TranslationEvent]]


class PreconditionError(ValueError):
    """Raised before dispatching when a run cannot start at all."""


class _WorkerExit:
    pass


_WORKER_EXIT = _WorkerExit()


def _as_number(value: object) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def clamp_concurrency(value: object) -> int:
    number = _as_number(value)
    if number is None:
        number = DEFAULT_CONCURRENCY
    return max(MIN_CONCURRENCY, min(MAX_CONCURRENCY, math.floor(number)))


def resolve_concurrency(
    override: object = None,
    payload: object = None,
    env: object = None,
    *,
    default: int = DEFAULT_CONCURRENCY,
) -> int:
    """Pick the concurrency limit: override > payload > environment > default.

    ``env`` defaults to ``OPENAI_CONCURRENCY``. Values that are not finite
    numbers are skipped; the winner is clamped to ``[1, 30]``.
    """

    if env is None:
        env = os.environ.get("OPENAI_CONCURRENCY")
    for candidate in (override, payload, env):
        number = _as_number(candidate)
        if number is not None:
            return clamp_concurrency(number)
    return clamp_concurrency(default)


class TranslationDispatcher:
    """Bounded worker pool that streams per-segment translation events.

    A dispatcher drives a single run; create a new one for every run.
    """

    def __init__(
        self,
        translate_one: TranslateOne,
        *,
        concurrency: object = DEFAULT_CONCURRENCY,
        debug: bool = False,
    ) -> None:
        self._translate_one = translate_one
        self.concurrency = clamp_concurrency(concurrency)
        self.debug = debug
        self.in_flight = 0
        self.peak_in_flight = 0
        self.started: List[str] = []
        self._cancelled = False
        self._workers: List[asyncio.Task[None]] = []
        self._events: Optional[asyncio.Queue[object]] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Stop dequeuing, abort in-flight requests and close the stream."""

        if self._cancelled:
            return
        self._cancelled = True
        for task in self._workers:
            task.cancel()
        if self._events is not None:
            self._events.put_nowait(_WORKER_EXIT)

    async def stream(self, segments: Sequence[Segment]) -> AsyncIterator[TranslationEvent]:
        if not segments:
            raise PreconditionError("No segments provided")

        pending: asyncio.Queue[Segment] = asyncio.Queue()
        for segment in segments:
            pending.put_nowait(segment)
        events: asyncio.Queue[object] = asyncio.Queue()
        self._events = events

        worker_count = min(self.concurrency, len(segments))
        self._workers = [asyncio.create_task(self._worker(pending, events)) for _ in range(worker_count)]
        remaining = worker_count
        try:
            while remaining and not self._cancelled:
                item = await events.get()
                if self._cancelled:
                    break
                if item is _WORKER_EXIT:
                    remaining -= 1
                    continue
                yield item  # type: ignore[misc]
        finally:
            for task in self._workers:
                task.cancel()
            await asyncio.gather(*self._workers, return_exceptions=True)

    async def _worker(self, pending: asyncio.Queue[Segment], events: asyncio.Queue[object]) -> None:
        try:
            while not self._cancelled:
                try:
                    segment = pending.get_nowait()
                except asyncio.QueueEmpty:
                    break
                self.in_flight += 1
                self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
                self.started.append(segment.id)
                try:
                    await self._run_segment(segment, events)
                finally:
                    self.in_flight -= 1
        finally:
            events.put_nowait(_WORKER_EXIT)

    async def _run_segment(self, segment: Segment, events: asyncio.Queue[object]) -> None:
        finished = False
        try:
            async for event in self._translate_one(segment.id, segment.text):
                if event.type is EventType.DONE:
                    finished = True
                events.put_nowait(event)
        except Exception as exc:  # one failing segment must not stop its siblings
            if self.debug:
                print(f"[debug] segment={segment.id} raised {exc!r}", file=sys.stderr)
            if not finished:
                events.put_nowait(ErrorEvent(segment.id, str(exc) or "translate failed"))
        if not finished:
            events.put_nowait(DoneEvent(segment.id))


__all__ = [
    "DEFAULT_CONCURRENCY",
    "MAX_CONCURRENCY",
    "MIN_CONCURRENCY",
    "PreconditionError",
    "TranslateOne",
    "TranslationDispatcher",
    "clamp_concurrency",
    "resolve_concurrency",
]
