"""Convenience entry point for running the translation API in development.

``--reload`` in the stock ``uvicorn`` command watches the whole working tree.
This wrapper keeps autoreload opt-out via ``UVICORN_RELOAD`` and only tracks
the backend and the ``babelmark`` package sources.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, List

import uvicorn

import babelmark


def _to_unique_strings(paths: Iterable[Path]) -> List[str]:
    """Return a list of unique, resolved string paths."""

    unique: List[Path] = []
    for path in paths:
        resolved = path.resolve()
        if resolved not in unique:
            unique.append(resolved)
    return [str(item) for item in unique]


def _should_reload(flag: str | None) -> bool:
    if flag is None:
        return True
    lowered = flag.strip().lower()
    return lowered not in {"0", "false", "no", "off"}


def main() -> None:
    """Start the FastAPI application with dev defaults."""

    backend_dir = Path(__file__).resolve().parent
    package_dir = Path(babelmark.__file__).resolve().parent

    uvicorn.run(  # pragma: no cover - thin wrapper around uvicorn
        "web.backend.app:app",
        host=os.getenv("UVICORN_HOST", "127.0.0.1"),
        port=int(os.getenv("UVICORN_PORT", "8000")),
        reload=_should_reload(os.getenv("UVICORN_RELOAD")),
        reload_dirs=_to_unique_strings((backend_dir, package_dir)),
    )


if __name__ == "__main__":
    main()
