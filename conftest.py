from __future__ import annotations

import asyncio
import inspect

import pytest

_PROVIDER_ENV = (
    "OPENAI_API_KEY",
    "OPENAI_BASE_URL",
    "OPENAI_API_BASE",
    "OPENAI_CHAT_COMPLETIONS_PATH",
    "OPENAI_MODEL",
    "OPENAI_CONCURRENCY",
)


def pytest_configure(config: pytest.Config) -> None:  # pragma: no cover - pytest integration
    config.addinivalue_line("markers", "asyncio: run the marked test as an asyncio coroutine")


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:  # pragma: no cover - pytest integration
    test_obj = pyfuncitem.obj
    if not inspect.iscoroutinefunction(test_obj):
        return None
    if pyfuncitem.get_closest_marker("asyncio") is None:
        return None

    funcargs = {
        name: pyfuncitem.funcargs[name]
        for name in pyfuncitem._fixtureinfo.argnames  # type: ignore[attr-defined]
        if name in pyfuncitem.funcargs
    }
    asyncio.run(test_obj(**funcargs))
    return True


@pytest.fixture(autouse=True)
def isolated_provider_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Keep developer credentials and stray config files out of every test."""

    for key in _PROVIDER_ENV:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
