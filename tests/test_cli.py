from pathlib import Path

import pytest

from babelmark import cli
from babelmark.cli import Settings, WriterThread, main, parse_arguments, run
from babelmark.config import BackendConfig
from babelmark.models import SEP, DeltaEvent, DoneEvent, ErrorEvent
from babelmark.reassembler import apply_and_render
from babelmark.session import TranslationState

SOURCE = "# Title\n\nHello **world**.\n\n```\nkeep me\n```\n"
TRANSLATIONS = {"s1": "Titre", "s2": f"Bonjour {SEP}monde{SEP}."}


def _settings(tmp_path: Path, **overrides) -> Settings:
    source = tmp_path / "doc.md"
    source.write_text(SOURCE, encoding="utf-8")
    values = dict(
        input_path=source,
        output_path=tmp_path / "out" / "doc.fr.md",
        target_lang="fr",
        backend=BackendConfig(api_key="test-key"),
        concurrency=2,
    )
    values.update(overrides)
    return Settings(**values)


def _fake_translate(failing=()):
    calls = {}

    async def fake_translate_document(segmentation, *, on_update=None, on_error=None, on_done=None, **kwargs):
        calls.update(kwargs)
        state = TranslationState()
        for segment in segmentation.segments:
            if segment.id in failing:
                state.record(ErrorEvent(segment.id, "upstream error (HTTP 500)"))
                on_error(segment.id, "upstream error (HTTP 500)")
            else:
                state.record(DeltaEvent(segment.id, TRANSLATIONS[segment.id]))
                on_update(apply_and_render(segmentation, state.by_id), state)
            state.record(DoneEvent(segment.id))
            on_done(segment.id)
        return apply_and_render(segmentation, state.by_id), state

    return fake_translate_document, calls


def test_dry_run_lists_segments(tmp_path, capsys):
    source = tmp_path / "doc.md"
    source.write_text(SOURCE, encoding="utf-8")

    exit_code = main([str(source), "--target-lang", "fr", "--dry-run"])

    assert exit_code == 0
    out = capsys.readouterr().out
    assert "[DRY RUN] s1 (text) Title" in out
    assert "[DRY RUN] s2 (text)" in out
    assert "keep me" not in out
    assert "Total segments requiring translation: 2" in out


def test_missing_api_key_is_a_usage_error(tmp_path):
    source = tmp_path / "doc.md"
    source.write_text(SOURCE, encoding="utf-8")

    with pytest.raises(SystemExit) as excinfo:
        parse_arguments([str(source), "--target-lang", "fr"])
    assert excinfo.value.code == 2


def test_parse_arguments_merges_config_and_flags(tmp_path, monkeypatch):
    source = tmp_path / "doc.md"
    source.write_text(SOURCE, encoding="utf-8")
    config = tmp_path / "babelmark.config.yaml"
    config.write_text(
        "target_lang: de\nconcurrency: 50\ntranslation:\n  image_alt: true\n  protected_terms: [Babelmark]\n",
        encoding="utf-8",
    )
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("OPENAI_API_KEY", "env-key")

    settings = parse_arguments(
        [str(source), "--no-translate-link-text", "--protect", "FastAPI", "--model", "gpt-test"]
    )

    assert settings.target_lang == "de"
    assert settings.concurrency == 30
    assert settings.translate_image_alt is True
    assert settings.translate_link_text is False
    assert settings.protected_terms == ["FastAPI", "Babelmark"]
    assert settings.backend == BackendConfig(api_key="env-key", model="gpt-test")
    assert settings.output_path is None


def test_run_writes_translated_output(tmp_path, monkeypatch):
    fake, calls = _fake_translate()
    monkeypatch.setattr(cli, "translate_document", fake)
    settings = _settings(tmp_path)

    assert run(settings) == 0

    output = settings.output_path.read_text(encoding="utf-8")
    assert output == "# Titre\n\nBonjour **monde**.\n\n```\nkeep me\n```\n"
    assert calls["target_language"] == "fr"
    assert calls["concurrency"] == 2


def test_run_prints_to_stdout_without_output(tmp_path, monkeypatch, capsys):
    fake, _ = _fake_translate()
    monkeypatch.setattr(cli, "translate_document", fake)

    assert run(_settings(tmp_path, output_path=None)) == 0
    assert capsys.readouterr().out == "# Titre\n\nBonjour **monde**.\n\n```\nkeep me\n```\n"


def test_run_reports_failed_segments(tmp_path, monkeypatch, capsys):
    fake, _ = _fake_translate(failing={"s2"})
    monkeypatch.setattr(cli, "translate_document", fake)
    settings = _settings(tmp_path)

    assert run(settings) == 1
    assert settings.output_path.read_text(encoding="utf-8").startswith("# Titre\n\nHello **world**.")
    assert "s2: upstream error (HTTP 500)" in capsys.readouterr().err


def test_stream_writes_back_up_existing_output_once(tmp_path, monkeypatch):
    fake, _ = _fake_translate()
    monkeypatch.setattr(cli, "translate_document", fake)
    settings = _settings(tmp_path, stream_writes=True, stream_interval=0.0)
    settings.output_path.parent.mkdir(parents=True)
    settings.output_path.write_text("previous", encoding="utf-8")

    assert run(settings) == 0

    assert settings.output_path.read_text(encoding="utf-8").startswith("# Titre")
    backup = settings.output_path.with_suffix(".md.bak")
    assert backup.read_text(encoding="utf-8") == "previous"


def test_unreadable_input_returns_error(tmp_path, capsys):
    settings = _settings(tmp_path)
    settings.input_path.write_bytes(b"\0binary")

    assert run(settings) == 1
    assert "binary" in capsys.readouterr().err


def test_writer_thread_serialises_writes(tmp_path):
    target = tmp_path / "live.md"
    writer = WriterThread()
    writer.start()
    for index in range(5):
        writer.submit((target, f"version {index}", False))
    writer.close()

    assert target.read_text(encoding="utf-8") == "version 4"
