import os
from pathlib import Path
import tempfile
import unittest
from unittest.mock import patch

import pytest

from babelmark.config import (
    DEFAULT_BASE_URL,
    DEFAULT_MODEL,
    BackendConfig,
    ConfigError,
    load_config,
    load_env_file,
    merge_config,
)


class LoadEnvFileTests(unittest.TestCase):
    def test_loads_simple_key_values(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            env_path = Path(tmp) / ".env"
            env_path.write_text("FOO=bar\nEMPTY=\n# comment\nQUOTED='spaced value'\n")

            with patch.dict(os.environ, {}, clear=True):
                load_env_file(env_path)
                self.assertEqual(os.environ["FOO"], "bar")
                self.assertEqual(os.environ["EMPTY"], "")
                self.assertEqual(os.environ["QUOTED"], "spaced value")

    def test_does_not_override_existing_variables(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            env_path = Path(tmp) / ".env"
            env_path.write_text("FOO=from_file\n")

            with patch.dict(os.environ, {"FOO": "from_env"}, clear=True):
                load_env_file(env_path)
                self.assertEqual(os.environ["FOO"], "from_env")


class BackendConfigTests(unittest.TestCase):
    def test_reads_configuration_from_environment(self) -> None:
        with patch.dict(
            os.environ,
            {
                "OPENAI_API_KEY": "abc123",
                "OPENAI_MODEL": "gpt-test",
                "OPENAI_BASE_URL": "https://llm.example/v1",
                "OPENAI_CHAT_COMPLETIONS_PATH": "/chat",
            },
            clear=True,
        ):
            config = BackendConfig.from_env()
            self.assertEqual(config.api_key, "abc123")
            self.assertEqual(config.model, "gpt-test")
            self.assertEqual(config.base_url, "https://llm.example/v1")
            self.assertEqual(config.path_override, "/chat")

    def test_defaults_apply_when_only_key_is_set(self) -> None:
        with patch.dict(os.environ, {"OPENAI_API_KEY": "abc123"}, clear=True):
            config = BackendConfig.from_env()
            self.assertEqual(config.model, DEFAULT_MODEL)
            self.assertEqual(config.base_url, DEFAULT_BASE_URL)
            self.assertIsNone(config.path_override)

    def test_legacy_api_base_variable_is_honoured(self) -> None:
        with patch.dict(os.environ, {"OPENAI_API_KEY": "k", "OPENAI_API_BASE": "https://legacy.test"}, clear=True):
            self.assertEqual(BackendConfig.from_env().base_url, "https://legacy.test")

    def test_explicit_arguments_win(self) -> None:
        with patch.dict(os.environ, {"OPENAI_API_KEY": "env", "OPENAI_MODEL": "env-model"}, clear=True):
            config = BackendConfig.from_env(api_key="header", model="payload-model", base_url="https://x.test")
            self.assertEqual(config.api_key, "header")
            self.assertEqual(config.model, "payload-model")
            self.assertEqual(config.base_url, "https://x.test")

    def test_env_file_is_loaded_when_path_is_provided(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            env_path = Path(tmp) / ".env"
            env_path.write_text("OPENAI_API_KEY=from_file\nOPENAI_MODEL=file-model\n")

            with patch.dict(os.environ, {}, clear=True):
                config = BackendConfig.from_env(env_path=env_path)
                self.assertEqual(config.api_key, "from_file")
                self.assertEqual(config.model, "file-model")

    def test_missing_api_key_raises_value_error(self) -> None:
        with patch.dict(os.environ, {"OPENAI_MODEL": "gpt-test"}, clear=True):
            with self.assertRaisesRegex(ValueError, "Missing API key"):
                BackendConfig.from_env()


def test_load_config_formats(tmp_path):
    yaml_path = tmp_path / "conf.yaml"
    yaml_path.write_text("target_lang: fr\ntranslation:\n  image_alt: true\n", encoding="utf-8")
    assert load_config(str(yaml_path)) == {"target_lang": "fr", "translation": {"image_alt": True}}

    json_path = tmp_path / "conf.json"
    json_path.write_text('{"concurrency": 4}', encoding="utf-8")
    assert load_config(str(json_path)) == {"concurrency": 4}

    toml_path = tmp_path / "conf.toml"
    toml_path.write_text('model = "gpt-test"\n', encoding="utf-8")
    assert load_config(str(toml_path)) == {"model": "gpt-test"}


def test_load_config_discovers_default_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert load_config(None) == {}

    (tmp_path / "babelmark.config.yaml").write_text("model: discovered\n", encoding="utf-8")
    assert load_config(None) == {"model": "discovered"}


def test_load_config_errors(tmp_path):
    with pytest.raises(ConfigError):
        load_config(str(tmp_path / "missing.yaml"))

    broken = tmp_path / "broken.json"
    broken.write_text("{nope", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(str(broken))

    listing = tmp_path / "list.yaml"
    listing.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(str(listing))


def test_merge_config_is_recursive_and_pure():
    base = {"translation": {"image_alt": False, "spellcheck": True}, "model": "a"}
    override = {"translation": {"image_alt": True}, "timeout": 5}

    merged = merge_config(base, override)

    assert merged == {
        "translation": {"image_alt": True, "spellcheck": True},
        "model": "a",
        "timeout": 5,
    }
    assert base["translation"]["image_alt"] is False


if __name__ == "__main__":
    unittest.main()
