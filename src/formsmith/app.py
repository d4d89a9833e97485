"""Application bootstrap helpers and the ``formsmith`` console entry point."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, TextIO, get_type_hints

from .domain.autosave import StoreAutosaver
from .domain.form_store import FormStore
from .events import EventBus
from .forms.document_model import FormDocument, format_timestamp
from .scripts.seed_examples import sample_forms
from .services.form_repository import FormRepository
from .services.importers import FormImporter, ImporterError, export_form
from .services.responses import ResponseLog
from .services.settings import Settings, SettingsStore
from .utils import logging as logging_utils

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
_LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class AppContext:
    """Object graph shared by the CLI commands."""

    settings: Settings
    event_bus: EventBus
    store: FormStore
    repository: FormRepository
    responses: ResponseLog
    autosaver: StoreAutosaver | None = None

    def close(self) -> None:
        if self.autosaver is not None:
            self.autosaver.detach()


def configure_logging(debug: bool = False, *, force: bool = False) -> None:
    """Configure structured logging for the application."""

    level = logging.DEBUG if debug else logging.INFO
    logging_utils.setup_logging(level, force=force)
    _LOGGER.debug("Logging configured (level=%s)", logging.getLevelName(level))


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        settings = active_store.load(overrides=overrides)
    except (OSError, TypeError, ValueError) as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        settings = Settings()
    return settings


def build_context(settings: Settings) -> AppContext:
    """Load the form collection and wire store, persistence and events together."""

    repository = FormRepository(settings.forms_path)
    documents = repository.load()
    if not documents and settings.seed_examples and not repository.path.exists():
        documents = sample_forms()
        _LOGGER.info("Seeding %d sample form(s) into %s", len(documents), repository.path)
        repository.save(documents)

    bus: EventBus = EventBus()
    store = FormStore(documents, event_bus=bus)
    autosaver = StoreAutosaver(store, repository) if settings.autosave else None
    return AppContext(
        settings=settings,
        event_bus=bus,
        store=store,
        repository=repository,
        responses=ResponseLog(settings.responses_path),
        autosaver=autosaver,
    )


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point invoked by the ``formsmith`` console script."""

    args = _parse_cli_args(argv)

    debug = _env_flag("FORMSMITH_DEBUG", default=False)
    if not args.no_log_file:
        configure_logging(debug)

    settings_path = args.settings_path or os.environ.get("FORMSMITH_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings_store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        return 2

    overrides_mapping: Dict[str, Any] | None = cli_overrides or None
    settings = load_settings(resolved_path, store=settings_store, overrides=overrides_mapping)

    if args.dump_settings:
        _dump_settings(settings, settings_store, overrides=cli_overrides)
        return 0

    if settings.debug_logging and not debug and not args.no_log_file:
        configure_logging(True, force=True)

    if args.command is None:
        print("No command given; see 'formsmith --help'.", file=sys.stderr)
        return 2

    context = build_context(settings)
    try:
        return _COMMANDS[args.command](context, args, sys.stdout)
    finally:
        context.close()


# ----------------------------------------------------------------------
# Commands
# ----------------------------------------------------------------------


def _cmd_list(context: AppContext, args: argparse.Namespace, out: TextIO) -> int:
    documents = context.store.list()
    if not documents:
        out.write("No forms.\n")
        return 0
    for document in documents:
        status = "disabled" if document.disabled else "active"
        out.write(
            f"{document.id}\t{document.title}\t{status}\t"
            f"{len(document.fields)} field(s)\t{format_timestamp(document.updated_at or document.created_at)}\n"
        )
    return 0


def _cmd_create(context: AppContext, args: argparse.Namespace, out: TextIO) -> int:
    title = args.title or context.settings.default_form_title
    document = context.store.create(title, args.description or "")
    out.write(f"{document.id}\n")
    return 0


def _cmd_clone(context: AppContext, args: argparse.Namespace, out: TextIO) -> int:
    duplicate = context.store.clone(args.form_id)
    if duplicate is None:
        return _not_found(args.form_id)
    out.write(f"{duplicate.id}\n")
    return 0


def _cmd_delete(context: AppContext, args: argparse.Namespace, out: TextIO) -> int:
    if not context.store.delete(args.form_id):
        return _not_found(args.form_id)
    return 0


def _cmd_toggle(context: AppContext, args: argparse.Namespace, out: TextIO) -> int:
    document = context.store.toggle_status(args.form_id)
    if document is None:
        return _not_found(args.form_id)
    out.write(f"{document.id}\t{'disabled' if document.disabled else 'active'}\n")
    return 0


def _cmd_show(context: AppContext, args: argparse.Namespace, out: TextIO) -> int:
    document = context.store.get(args.form_id)
    if document is None:
        return _not_found(args.form_id)
    json.dump(document.to_dict(), out, indent=2)
    out.write("\n")
    return 0


def _cmd_export(context: AppContext, args: argparse.Namespace, out: TextIO) -> int:
    document = context.store.get(args.form_id)
    if document is None:
        return _not_found(args.form_id)
    try:
        target = export_form(document, args.path)
    except (ImporterError, OSError) as exc:
        print(f"Export failed: {exc}", file=sys.stderr)
        return 1
    out.write(f"{target}\n")
    return 0


def _cmd_import(context: AppContext, args: argparse.Namespace, out: TextIO) -> int:
    try:
        result = FormImporter().import_file(args.path)
    except (ImporterError, FileNotFoundError) as exc:
        print(f"Import failed: {exc}", file=sys.stderr)
        return 1
    imported: list[FormDocument] = []
    for document in result.documents:
        created = context.store.create(document.title, document.description)
        patched = context.store.update(
            created.id,
            {
                "fields": document.fields,
                "global_style": document.global_style or created.global_style,
                "slug": document.slug,
                "disabled": document.disabled,
            },
        )
        imported.append(patched or created)
    for document in imported:
        out.write(f"{document.id}\t{document.title}\n")
    return 0


def _cmd_seed(context: AppContext, args: argparse.Namespace, out: TextIO) -> int:
    if len(context.store) and not args.overwrite:
        print("Store already has forms; use --overwrite to replace them.", file=sys.stderr)
        return 1
    samples = sample_forms()
    context.store.replace_all(samples)
    if context.autosaver is None:
        context.repository.save(context.store.list())
    out.write(f"Seeded {len(samples)} form(s)\n")
    return 0


def _not_found(form_id: str) -> int:
    print(f"No form with id '{form_id}'.", file=sys.stderr)
    return 1


_COMMANDS = {
    "list": _cmd_list,
    "create": _cmd_create,
    "clone": _cmd_clone,
    "delete": _cmd_delete,
    "toggle": _cmd_toggle,
    "show": _cmd_show,
    "export": _cmd_export,
    "import": _cmd_import,
    "seed": _cmd_seed,
}


# ----------------------------------------------------------------------
# Argument parsing and settings overrides
# ----------------------------------------------------------------------


def _env_flag(name: str, *, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _parse_cli_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="formsmith",
        description="Manage form definitions stored on this machine.",
    )
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload and exit.",
    )
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.formsmith/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings for this run (repeatable).",
    )
    parser.add_argument(
        "--no-log-file",
        action="store_true",
        help="Skip installing the rotating log file handler.",
    )

    commands = parser.add_subparsers(dest="command", metavar="COMMAND")
    commands.add_parser("list", help="List forms, most recent first.")

    create = commands.add_parser("create", help="Create an empty form.")
    create.add_argument("title", nargs="?", help="Form title (defaults to the configured title).")
    create.add_argument("--description", default="", help="Form description.")

    for name, summary in (
        ("clone", "Duplicate a form."),
        ("delete", "Delete a form."),
        ("toggle", "Enable or disable a form."),
        ("show", "Print a form as JSON."),
    ):
        command = commands.add_parser(name, help=summary)
        command.add_argument("form_id")

    export = commands.add_parser("export", help="Write a form to a .json/.yaml file.")
    export.add_argument("form_id")
    export.add_argument("path", type=Path)

    importer = commands.add_parser("import", help="Add forms from a .json/.yaml file.")
    importer.add_argument("path", type=Path)

    seed = commands.add_parser("seed", help="Load the sample forms.")
    seed.add_argument("--overwrite", action="store_true", help="Replace existing forms.")

    return parser.parse_args(argv)


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if not items:
        return overrides

    fields = Settings.__dataclass_fields__  # type: ignore[attr-defined]
    type_hints = get_type_hints(Settings)
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        if key not in fields:
            raise ValueError(f"Unknown setting '{key}'.")
        annotation = type_hints.get(key, fields[key].type)
        overrides[key] = _coerce_value(annotation, raw_value.strip())
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    normalized = raw_value.strip()
    if annotation is str:
        return normalized
    if annotation is bool:
        return _parse_bool(normalized)
    raise ValueError(f"Unsupported setting type {annotation!r}.")


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    metadata = {
        "path": str(store.path),
        "forms_path": str(settings.forms_path),
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": _active_env_overrides(),
    }
    output = {"settings": asdict(settings), "meta": metadata}
    json.dump(output, destination, indent=2)
    destination.write("\n")


def _active_env_overrides() -> list[str]:
    return sorted(name for name in os.environ if name.startswith("FORMSMITH_"))


if __name__ == "__main__":  # pragma: no cover - manual entry point
    raise SystemExit(main())
