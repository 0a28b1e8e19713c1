from __future__ import annotations

import json
import re
import sys
import textwrap
from typing import AsyncIterator, List, Optional, Union

import httpx

from .config import BackendConfig
from .models import DeltaEvent, DoneEvent, ErrorEvent, TranslationEvent

CHAT_COMPLETIONS_PATH = "/chat/completions"
STREAM_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"

_CHAT_SUFFIX_RE = re.compile(r"/chat/completions$", re.IGNORECASE)
_VERSION_SUFFIX_RE = re.compile(r"/(v\d+|api/paas/v\d+)$", re.IGNORECASE)
_LINE_BREAK_RE = re.compile(r"\r?\n")


class _StreamDone:
    def __repr__(self) -> str:
        return "STREAM_DONE"


STREAM_DONE = _StreamDone()


def resolve_chat_url(base_url: str, path_override: Optional[str] = None) -> str:
    """Build the chat-completions endpoint for providers with slightly different URL shapes."""

    url = (base_url or "").rstrip("/")
    if path_override:
        return url + (path_override if path_override.startswith("/") else f"/{path_override}")
    if _CHAT_SUFFIX_RE.search(url):
        return url
    if _VERSION_SUFFIX_RE.search(url):
        return url + CHAT_COMPLETIONS_PATH
    return url + "/v1" + CHAT_COMPLETIONS_PATH


class SSELineDecoder:
    """Incremental line splitter for an event-stream body.

    Text is fed chunk by chunk; only terminated lines are returned and the
    trailing fragment waits for the next chunk.
    """

    def __init__(self) -> None:
        self._buffer = ""

    @property
    def pending(self) -> str:
        return self._buffer

    def feed(self, chunk: str) -> List[str]:
        self._buffer += chunk
        lines = _LINE_BREAK_RE.split(self._buffer)
        self._buffer = lines.pop()
        return lines


def decode_line(line: str) -> Union[None, _StreamDone, str]:
    """Decode one event-stream line into a content delta.

    Returns ``None`` for lines that carry nothing (comments, keep-alives,
    malformed JSON, empty deltas) and ``STREAM_DONE`` for the end sentinel.
    """

    if not line.startswith(STREAM_PREFIX):
        return None
    data = line[len(STREAM_PREFIX) :].strip()
    if data == DONE_SENTINEL:
        return STREAM_DONE
    try:
        chunk = json.loads(data)
    except json.JSONDecodeError:
        return None
    try:
        content = chunk["choices"][0]["delta"]["content"]
    except (KeyError, IndexError, TypeError):
        return None
    if not isinstance(content, str) or not content:
        return None
    return content


class StreamingBackend:
    """Streams one chat completion per segment and yields uniform events."""

    def __init__(
        self,
        config: BackendConfig,
        *,
        system_prompt: str,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
        debug: bool = False,
    ) -> None:
        self.config = config
        self.system_prompt = system_prompt
        self.debug = debug
        self.url = resolve_chat_url(config.base_url, config.path_override)
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        await self._client.aclose()

    def _payload(self, text: str) -> dict:
        return {
            "model": self.config.model,
            "stream": True,
            "temperature": 0,
            "messages": [
                {"role": "system", "content": self.system_prompt},
                {"role": "user", "content": text},
            ],
        }

    def _debug(self, message: str) -> None:
        if self.debug:
            print(f"[debug] {message}", file=sys.stderr)

    async def translate_one(self, segment_id: str, text: str) -> AsyncIterator[TranslationEvent]:
        """Yield ``delta`` events followed by exactly one ``done`` event.

        A failed request yields one ``error`` event before its ``done`` so the
        caller can free the slot; transport exceptions never escape.
        """

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.config.api_key}",
        }
        if self.debug:
            preview = textwrap.shorten(text.replace("\n", " "), width=120, placeholder="...")
            self._debug(
                f"request segment={segment_id} model={self.config.model} url={self.url}"
                f" chars={len(text)} preview='{preview}'"
            )
        try:
            async with self._client.stream(
                "POST", self.url, json=self._payload(text), headers=headers
            ) as response:
                self._debug(f"response segment={segment_id} status={response.status_code}")
                if not response.is_success:
                    body = await response.aread()
                    message = body.decode("utf-8", errors="replace").strip()
                    yield ErrorEvent(segment_id, message or f"upstream error (HTTP {response.status_code})")
                    yield DoneEvent(segment_id)
                    return

                decoder = SSELineDecoder()
                async for chunk in response.aiter_text():
                    for line in decoder.feed(chunk):
                        item = decode_line(line)
                        if item is None:
                            continue
                        if item is STREAM_DONE:
                            yield DoneEvent(segment_id)
                            return
                        yield DeltaEvent(segment_id, item)
        except (httpx.HTTPError, httpx.StreamError, httpx.InvalidURL) as exc:
            self._debug(f"segment={segment_id} failed: {exc!r}")
            yield ErrorEvent(segment_id, str(exc) or exc.__class__.__name__)
            yield DoneEvent(segment_id)
            return
        yield DoneEvent(segment_id)


__all__ = [
    "CHAT_COMPLETIONS_PATH",
    "DONE_SENTINEL",
    "STREAM_DONE",
    "SSELineDecoder",
    "StreamingBackend",
    "decode_line",
    "resolve_chat_url",
]
