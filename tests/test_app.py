"""Tests for the bootstrap helpers and the ``formsmith`` CLI."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from formsmith import app
from formsmith.services.form_repository import FormRepository
from formsmith.services.settings import Settings


@pytest.fixture
def data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    target = tmp_path / "data"
    monkeypatch.setenv("FORMSMITH_DATA_DIR", str(target))
    monkeypatch.setenv("FORMSMITH_SETTINGS_PATH", str(tmp_path / "settings.json"))
    for name in ("FORMSMITH_AUTOSAVE", "FORMSMITH_SEED_EXAMPLES", "FORMSMITH_DEBUG_LOGGING", "FORMSMITH_DEBUG"):
        monkeypatch.delenv(name, raising=False)
    return target


def run(*argv: str) -> int:
    return app.main(["--no-log-file", *argv])


def _forms(data_dir: Path) -> list[str]:
    return [doc.title for doc in FormRepository(data_dir / "forms_v1.json").load()]


class TestCoerceOverrides:
    def test_coerces_by_annotation(self) -> None:
        overrides = app._coerce_cli_overrides(["autosave=off", "default_form_title= Draft ", "data_dir=/tmp/x"])

        assert overrides == {"autosave": False, "default_form_title": "Draft", "data_dir": "/tmp/x"}

    @pytest.mark.parametrize("entry", ["autosave", "=1", "theme=dark", "autosave=maybe"])
    def test_rejects_bad_entries(self, entry: str) -> None:
        with pytest.raises(ValueError):
            app._coerce_cli_overrides([entry])

    def test_only_settings_field_types_are_coerced(self) -> None:
        assert app._coerce_value(str, " x ") == "x"
        assert app._coerce_value(bool, "yes") is True
        with pytest.raises(ValueError, match="Unsupported setting type"):
            app._coerce_value(int, "3")


class TestBuildContext:
    def test_seeds_examples_on_first_run(self, tmp_path: Path) -> None:
        settings = Settings(data_dir=str(tmp_path), seed_examples=True)

        context = app.build_context(settings)

        assert len(context.store) == 3
        assert context.repository.path.exists()
        assert context.autosaver is not None

    def test_autosave_can_be_disabled(self, tmp_path: Path) -> None:
        context = app.build_context(Settings(data_dir=str(tmp_path), autosave=False))

        context.store.create("Not persisted")

        assert context.autosaver is None
        assert not context.repository.path.exists()


class TestCommands:
    def test_create_list_toggle_show(self, data_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert run("create", "Survey", "--description", "Tell us") == 0
        form_id = capsys.readouterr().out.strip()

        assert run("toggle", form_id) == 0
        assert capsys.readouterr().out.strip().endswith("disabled")

        assert run("list") == 0
        listing = capsys.readouterr().out
        assert f"{form_id}\tSurvey\tdisabled\t0 field(s)" in listing

        assert run("show", form_id) == 0
        shown = json.loads(capsys.readouterr().out)
        assert shown["description"] == "Tell us"
        assert shown["disabled"] is True

    def test_create_uses_configured_default_title(self, data_dir: Path) -> None:
        assert run("--set", "default_form_title=Draft", "create") == 0

        assert _forms(data_dir) == ["Draft"]

    def test_clone_and_delete(self, data_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
        run("create", "A")
        original = capsys.readouterr().out.strip()

        assert run("clone", original) == 0
        assert run("delete", original) == 0

        assert _forms(data_dir) == ["A (copy)"]

    @pytest.mark.parametrize("command", ["clone", "delete", "toggle", "show"])
    def test_unknown_id_fails(self, data_dir: Path, command: str, capsys: pytest.CaptureFixture[str]) -> None:
        assert run(command, "missing") == 1
        assert "No form with id 'missing'" in capsys.readouterr().err

    def test_export_and_import(self, data_dir: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        run("create", "Exported")
        form_id = capsys.readouterr().out.strip()
        target = tmp_path / "exported.yaml"

        assert run("export", form_id, str(target)) == 0
        assert run("import", str(target)) == 0

        assert sorted(_forms(data_dir)) == ["Exported", "Exported"]

    def test_import_failure_is_reported(self, data_dir: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        bad = tmp_path / "bad.json"
        bad.write_text("[1, 2]", encoding="utf-8")

        assert run("import", str(bad)) == 1
        assert "Import failed" in capsys.readouterr().err

    def test_seed(self, data_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert run("seed") == 0
        assert run("seed") == 1
        assert run("seed", "--overwrite") == 0

        assert _forms(data_dir) == [
            "Employee Feedback Form",
            "Customer Satisfaction Survey",
            "Event Registration Form",
        ]

    def test_dump_settings(self, data_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert run("--set", "autosave=false", "--dump-settings") == 0

        output = json.loads(capsys.readouterr().out)
        assert output["settings"]["autosave"] is False
        assert output["settings"]["data_dir"] == str(data_dir)
        assert output["meta"]["cli_overrides"] == ["autosave"]
        assert "FORMSMITH_DATA_DIR" in output["meta"]["environment_variables"]

    def test_invalid_override_exits_with_usage_error(self, data_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert run("--set", "nonsense", "list") == 2
        assert "Invalid --set override" in capsys.readouterr().err

    def test_missing_command(self, data_dir: Path) -> None:
        assert run() == 2
