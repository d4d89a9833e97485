"""Tests for the settings persistence layer."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from formsmith.services.settings import Settings, SettingsStore


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "FORMSMITH_DATA_DIR",
        "FORMSMITH_FORMS_FILENAME",
        "FORMSMITH_RESPONSES_DIRNAME",
        "FORMSMITH_DEFAULT_TITLE",
        "FORMSMITH_AUTOSAVE",
        "FORMSMITH_SEED_EXAMPLES",
        "FORMSMITH_DEBUG_LOGGING",
    ):
        monkeypatch.delenv(name, raising=False)


def test_load_returns_defaults_when_file_missing(tmp_path: Path) -> None:
    assert SettingsStore(tmp_path / "settings.json").load() == Settings()


def test_save_and_load_roundtrip(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    original = Settings(data_dir=str(tmp_path / "data"), autosave=False, default_form_title="Draft")

    SettingsStore(path).save(original)

    assert SettingsStore(path).load() == original
    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["version"] == 1


def test_invalid_json_falls_back_to_defaults(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{oops", encoding="utf-8")

    assert SettingsStore(path).load() == Settings()
    assert "not valid JSON" in caplog.text


def test_unknown_keys_are_ignored(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"autosave": False, "theme": "dark", "version": 1}), encoding="utf-8")

    assert SettingsStore(path).load() == Settings(autosave=False)


def test_environment_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FORMSMITH_DATA_DIR", str(tmp_path / "env"))
    monkeypatch.setenv("FORMSMITH_AUTOSAVE", "off")
    monkeypatch.setenv("FORMSMITH_SEED_EXAMPLES", "yes")

    settings = SettingsStore(tmp_path / "settings.json").load()

    assert settings.data_path == tmp_path / "env"
    assert settings.autosave is False
    assert settings.seed_examples is True


def test_environment_wins_over_cli_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FORMSMITH_DEFAULT_TITLE", "From env")

    settings = SettingsStore(tmp_path / "settings.json").load(
        overrides={"default_form_title": "From CLI", "forms_filename": "cli.json", "unknown": 1}
    )

    assert settings.default_form_title == "From env"
    assert settings.forms_filename == "cli.json"


def test_derived_paths(tmp_path: Path) -> None:
    settings = Settings(data_dir=str(tmp_path), forms_filename="f.json", responses_dirname="r")

    assert settings.forms_path == tmp_path / "f.json"
    assert settings.responses_path == tmp_path / "r"
