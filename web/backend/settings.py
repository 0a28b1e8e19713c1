from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from babelmark.config import DEFAULT_BASE_URL, DEFAULT_MODEL, load_config, load_env_file
from babelmark.dispatcher import DEFAULT_CONCURRENCY, clamp_concurrency
from babelmark.prompt import PROMPT_FILENAME

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _coerce_bool(*values: object, default: bool = False) -> bool:
    for value in values:
        if value is None:
            continue
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in _TRUE_VALUES:
                return True
            if lowered in _FALSE_VALUES:
                return False
    return default


def _coerce_float(value: object, default: float) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class AppSettings:
    """Service-wide defaults; request headers and payload fields override them."""

    model: str
    base_url: str
    chat_path: Optional[str]
    concurrency: int
    timeout: float
    prompt_file: Path
    debug: bool

    @classmethod
    def load(cls, *, env_path: Optional[Path] = None, config_path: Optional[str] = None) -> "AppSettings":
        load_env_file(env_path)

        config = load_config(config_path)
        service_config = config.get("service")
        service = service_config if isinstance(service_config, dict) else {}

        model = str(service.get("model") or config.get("model") or os.getenv("OPENAI_MODEL") or DEFAULT_MODEL)
        base_url = str(
            service.get("base_url")
            or config.get("base_url")
            or os.getenv("OPENAI_BASE_URL")
            or os.getenv("OPENAI_API_BASE")
            or DEFAULT_BASE_URL
        )
        chat_path = (
            service.get("chat_path")
            or config.get("chat_path")
            or os.getenv("OPENAI_CHAT_COMPLETIONS_PATH")
            or None
        )

        concurrency_value = (
            service.get("concurrency")
            or config.get("concurrency")
            or os.getenv("OPENAI_CONCURRENCY")
        )
        concurrency = clamp_concurrency(
            concurrency_value if concurrency_value is not None else DEFAULT_CONCURRENCY
        )

        timeout = _coerce_float(
            service.get("timeout") or config.get("timeout") or os.getenv("BABELMARK_TIMEOUT"),
            default=60.0,
        )

        prompt_file = Path(
            str(service.get("prompt_file") or os.getenv("BABELMARK_PROMPT_FILE") or PROMPT_FILENAME)
        ).expanduser()

        debug = _coerce_bool(
            service.get("debug"),
            config.get("debug"),
            os.getenv("BABELMARK_DEBUG"),
            default=False,
        )

        return cls(
            model=model,
            base_url=base_url,
            chat_path=str(chat_path) if chat_path else None,
            concurrency=concurrency,
            timeout=timeout,
            prompt_file=prompt_file,
            debug=debug,
        )


__all__ = ["AppSettings"]
