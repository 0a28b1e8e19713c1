from __future__ import annotations

import json
import sys
from typing import AsyncIterator, Callable

from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError

from babelmark.backend import StreamingBackend
from babelmark.config import BackendConfig
from babelmark.dispatcher import TranslationDispatcher, resolve_concurrency
from babelmark.prompt import build_system_prompt, load_base_prompt

from .schemas import ErrorResponse, TranslateRequest
from .settings import AppSettings

BackendFactory = Callable[..., StreamingBackend]

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def get_app_settings() -> AppSettings:
    return AppSettings.load()


def get_backend_factory() -> BackendFactory:
    return StreamingBackend


app = FastAPI(title="Babelmark Translation API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _sse(data: dict) -> str:
    return f"data: {json.dumps(data, ensure_ascii=False)}\n\n"


@app.get("/api/health")
async def health() -> dict:
    return {"status": "ok"}


@app.post(
    "/api/translate",
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)
async def translate(
    request: Request,
    settings: AppSettings = Depends(get_app_settings),
    backend_factory: BackendFactory = Depends(get_backend_factory),
):
    try:
        payload = TranslateRequest.model_validate(await request.json())
    except (ValueError, ValidationError):
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid JSON")

    headers = request.headers
    try:
        config = BackendConfig.from_env(
            api_key=headers.get("x-openai-key") or None,
            model=payload.model or settings.model,
            base_url=headers.get("x-openai-base") or settings.base_url,
            path_override=headers.get("x-openai-path") or settings.chat_path,
        )
    except ValueError as exc:
        return _error(status.HTTP_401_UNAUTHORIZED, str(exc))

    if not payload.segments:
        return _error(status.HTTP_400_BAD_REQUEST, "No segments provided")

    concurrency = resolve_concurrency(
        headers.get("x-openai-concurrency"),
        payload.concurrency,
        default=settings.concurrency,
    )
    options = payload.options.to_model()
    system_prompt = build_system_prompt(
        payload.target_lang,
        glossary=[entry.to_model() for entry in payload.glossary],
        protected_terms=payload.protected_terms,
        spellcheck=options.spellcheck,
        punctuation_locale=options.punctuation_locale,
        base_prompt=load_base_prompt(settings.prompt_file) or None,
    )
    if settings.debug:
        print(
            f"[debug] translate segments={len(payload.segments)} model={config.model}"
            f" concurrency={concurrency} target={payload.target_lang}",
            file=sys.stderr,
        )

    backend = backend_factory(
        config,
        system_prompt=system_prompt,
        timeout=settings.timeout,
        debug=settings.debug,
    )
    dispatcher = TranslationDispatcher(backend.translate_one, concurrency=concurrency, debug=settings.debug)
    segments = [segment.to_model() for segment in payload.segments]

    async def event_stream() -> AsyncIterator[str]:
        # Runs on normal completion and when the client goes away mid-stream.
        try:
            async for event in dispatcher.stream(segments):
                yield _sse(event.to_dict())
        finally:
            dispatcher.cancel()
            await backend.close()

    return StreamingResponse(event_stream(), media_type="text/event-stream", headers=SSE_HEADERS)


__all__ = ["app", "get_app_settings", "get_backend_factory"]
