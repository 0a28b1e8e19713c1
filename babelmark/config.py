from __future__ import annotations

import json
import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

import yaml

DEFAULT_CONFIG_FILENAMES: tuple[str, ...] = (
    "babelmark.config.yaml",
    "babelmark.config.yml",
    "babelmark.config.json",
    "babelmark.config.toml",
)

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_BASE_URL = "https://api.openai.com"

_DEFAULT_ENV_PATH = Path(".env")


class ConfigError(RuntimeError):
    """Raised when a configuration file cannot be parsed."""


def _candidate_paths(explicit: Optional[str]) -> Iterable[Path]:
    if explicit:
        yield Path(explicit)
        return

    cwd = Path.cwd()
    for name in DEFAULT_CONFIG_FILENAMES:
        candidate = cwd / name
        if candidate.exists():
            yield candidate
            return


def load_config(path: Optional[str]) -> Dict[str, Any]:
    """Load configuration from a file if one exists.

    Parameters
    ----------
    path:
        The explicit path passed via CLI. When ``None`` the default file names are
        searched for in the current working directory.
    """

    for candidate in _candidate_paths(path):
        if not candidate.exists():
            if path:
                raise ConfigError(f"Configuration file {candidate} does not exist")
            continue
        text = candidate.read_text(encoding="utf-8")
        suffix = candidate.suffix.lower()
        try:
            if suffix in {".yaml", ".yml"}:
                data = yaml.safe_load(text) or {}
            elif suffix == ".json":
                data = json.loads(text or "{}")
            elif suffix == ".toml":
                data = tomllib.loads(text or "")
            else:
                raise ConfigError(f"Unsupported config format: {candidate.suffix}")
        except (json.JSONDecodeError, tomllib.TOMLDecodeError, yaml.YAMLError) as exc:
            raise ConfigError(f"Failed to parse {candidate}: {exc}") from exc

        if not isinstance(data, dict):
            raise ConfigError("The configuration root must be a mapping/dictionary")

        return data
    return {}


def merge_config(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge two dictionaries recursively without mutating the inputs."""

    result: Dict[str, Any] = dict(base)
    for key, value in override.items():
        if (
            key in result
            and isinstance(result[key], dict)
            and isinstance(value, dict)
        ):
            result[key] = merge_config(result[key], value)
        else:
            result[key] = value
    return result


def env_default(*keys: str, default: Optional[str] = None) -> Optional[str]:
    """Return the first non-empty environment value among ``keys``."""

    for key in keys:
        value = os.environ.get(key)
        if value:
            return value
    return default


def load_env_file(path: Optional[Path | str] = None) -> None:
    """Load environment variables from a ``.env`` file without overriding existing values."""

    env_path: Path
    if path is None:
        env_path = _DEFAULT_ENV_PATH
    elif isinstance(path, Path):
        env_path = path
    else:
        env_path = Path(path)

    if not env_path.exists():
        return

    for raw_line in env_path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue

        key, _, value = line.partition("=")
        key = key.strip()
        if not key:
            continue

        if key in os.environ:
            continue

        normalized = value.strip()
        if (
            len(normalized) >= 2
            and normalized[0] in {'"', "'"}
            and normalized[-1] == normalized[0]
        ):
            normalized = normalized[1:-1]

        os.environ[key] = normalized


@dataclass(frozen=True)
class BackendConfig:
    """Credentials and endpoint of the chat-completions provider."""

    api_key: str
    model: str = DEFAULT_MODEL
    base_url: str = DEFAULT_BASE_URL
    path_override: Optional[str] = None

    @classmethod
    def from_env(
        cls,
        *,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        path_override: Optional[str] = None,
        env_path: Optional[Path] = None,
    ) -> "BackendConfig":
        """Resolve the configuration; explicit arguments win over the environment.

        Raises ``ValueError`` when no API key is available so callers can
        report the problem before any segment is dispatched.
        """

        if env_path is not None:
            load_env_file(env_path)

        resolved_key = api_key or env_default("OPENAI_API_KEY")
        if not resolved_key:
            raise ValueError("Missing API key (provide x-openai-key or set OPENAI_API_KEY)")

        return cls(
            api_key=resolved_key,
            model=model or env_default("OPENAI_MODEL", default=DEFAULT_MODEL) or DEFAULT_MODEL,
            base_url=(
                base_url
                or env_default("OPENAI_BASE_URL", "OPENAI_API_BASE", default=DEFAULT_BASE_URL)
                or DEFAULT_BASE_URL
            ),
            path_override=path_override or env_default("OPENAI_CHAT_COMPLETIONS_PATH"),
        )


__all__ = [
    "BackendConfig",
    "ConfigError",
    "DEFAULT_BASE_URL",
    "DEFAULT_CONFIG_FILENAMES",
    "DEFAULT_MODEL",
    "env_default",
    "load_config",
    "load_env_file",
    "merge_config",
]
