# src/minutebook/cli.py
"""Minutebook Command Line Interface.

Entry point for the minutebook CLI tool.
"""

from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal, NoReturn

import typer
from dynaconf.vendor.ruamel.yaml.parser import ParserError as YamlParserError
from dynaconf.vendor.ruamel.yaml.scanner import ScannerError as YamlScannerError
from pydantic import ValidationError
from sqlalchemy.exc import NoSuchTableError, SQLAlchemyError

from minutebook import __version__
from minutebook.contracts import (
    CreationError,
    RecordDraft,
    RecordNotFound,
    RetryExhausted,
    SequencerUnavailable,
    ValidationFailure,
)
from minutebook.core.config import MinutebookSettings, load_settings
from minutebook.core.folio import resolve_folio

if TYPE_CHECKING:
    from minutebook.contracts import Record
    from minutebook.core.store import RecordStoreDB

__all__ = [
    "app",
    "load_settings",  # Re-exported from config for convenience
]

app = typer.Typer(
    name="minutebook",
    help="Minutebook: time-entry records with per-owner folio numbering.",
    no_args_is_help=True,
)

OutputFormat = Literal["console", "json"]

# Logging flags given on the command line; they win over the settings file
_log_overrides: dict[str, Any] = {}


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"minutebook version {__version__}")
        raise typer.Exit()


def _load_dotenv(env_file: Path | None = None) -> bool:
    """Load environment variables from .env file.

    Args:
        env_file: Explicit path to .env file. If None, searches for .env
                 in current directory and parent directories.

    Returns:
        True if .env was found and loaded, False otherwise.

    Raises:
        typer.Exit: If explicit env_file path doesn't exist.
    """
    from dotenv import load_dotenv

    if env_file is not None:
        if not env_file.exists():
            typer.secho(
                f"Error: .env file not found: {env_file}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(1)
        return load_dotenv(env_file, override=False)

    # load_dotenv searches current dir and parents by default
    return load_dotenv(override=False)  # Don't override existing env vars


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    no_dotenv: bool = typer.Option(
        False,
        "--no-dotenv",
        help="Skip loading .env file.",
    ),
    env_file: Path | None = typer.Option(
        None,
        "--env-file",
        help="Path to .env file (skips automatic search).",
        exists=False,  # We handle existence check ourselves for better error message
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose/debug logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Output structured JSON logs (for machine processing).",
    ),
) -> None:
    """Minutebook: time-entry records with per-owner folio numbering."""
    from minutebook.core.logging import configure_logging

    _log_overrides.clear()
    if verbose:
        _log_overrides["level"] = "DEBUG"
    if json_logs:
        _log_overrides["json_output"] = True
    configure_logging(json_output=json_logs, level="DEBUG" if verbose else "WARNING")

    if not no_dotenv:
        _load_dotenv(env_file=env_file)
    elif env_file is not None:
        typer.secho(
            "Warning: --env-file ignored because --no-dotenv is set.",
            fg=typer.colors.YELLOW,
            err=True,
        )


def _load_config(settings: str | None) -> MinutebookSettings:
    """Load settings, turning every configuration problem into exit code 1.

    Reconfigures logging from the settings' logging section, with
    --verbose / --json-logs taking precedence.
    """
    from minutebook.core.logging import configure_logging

    settings_path = Path(settings).expanduser() if settings is not None else None
    try:
        config = load_settings(settings_path)
    except (YamlParserError, YamlScannerError) as e:
        typer.echo(f"YAML syntax error in {settings}: {e.problem}", err=True)
        raise typer.Exit(1) from None
    except FileNotFoundError:
        typer.echo(f"Error: Settings file not found: {settings}", err=True)
        raise typer.Exit(1) from None
    except ValidationError as e:
        typer.echo("Configuration errors:", err=True)
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            typer.echo(f"  - {loc}: {error['msg']}", err=True)
        raise typer.Exit(1) from None

    options: dict[str, Any] = {"json_output": config.logging.json_output, "level": config.logging.level}
    options.update(_log_overrides)
    configure_logging(**options)
    return config


def _open_store(config: MinutebookSettings, *, create_tables: bool = False) -> RecordStoreDB:
    from minutebook.core.store import RecordStoreDB

    try:
        return RecordStoreDB.from_settings(config.store, create_tables=create_tables)
    except SQLAlchemyError as e:
        typer.echo(f"Error connecting to database: {e}", err=True)
        raise typer.Exit(1) from None


def _store_failed(e: SQLAlchemyError) -> NoReturn:
    """Report a store error raised mid-command and exit 1."""
    if isinstance(e, NoSuchTableError):
        typer.echo(f"Error: table {e} does not exist. Run 'minutebook init' or apply the migrations.", err=True)
    else:
        typer.echo(f"Error reading record store: {e}", err=True)
    raise typer.Exit(1) from None


def _record_payload(record: Record, width: int) -> dict[str, Any]:
    data = asdict(record)
    data["folio_display"] = resolve_folio(record.folio, record.folio_serial, record.id, width).display
    return data


def _emit_record(record: Record, output_format: OutputFormat, width: int) -> None:
    data = _record_payload(record, width)
    if output_format == "json":
        typer.echo(json.dumps(data, default=str, sort_keys=True))
        return
    typer.echo(f"Folio:       {data['folio_display']}")
    typer.echo(f"Id:          {record.id}")
    typer.echo(f"Owner:       {record.owner_id or '-'}")
    typer.echo(f"Date:        {record.date.isoformat()}")
    for name in ("work_type", "description", "task_done", "notes", "created_by_name", "created_by_email"):
        value = data[name]
        if value is not None:
            typer.echo(f"{name + ':':<13}{value}")
    if record.start_time is not None:
        typer.echo(f"Start:       {record.start_time.isoformat()}")
    if record.end_time is not None:
        typer.echo(f"End:         {record.end_time.isoformat()}")
    if record.is_protected:
        typer.echo("Protected:   yes")


SettingsOption = typer.Option(None, "--settings", "-s", help="Path to settings YAML file.")
FormatOption = typer.Option("console", "--format", "-f", help="Output format: 'console' or 'json'.")


@app.command()
def init(settings: str | None = SettingsOption) -> None:
    """Create the records table and install the store-side folio functions."""
    config = _load_config(settings)
    db = _open_store(config, create_tables=True)
    try:
        installed = db.install_sequencer_functions(config.sequencer.function_names)
    except SQLAlchemyError as e:
        typer.echo(f"Error installing sequencer functions: {e}", err=True)
        raise typer.Exit(1) from None
    finally:
        db.close()
    typer.echo(f"Record store ready: {config.store.url}")
    if installed:
        typer.echo(f"Installed functions: {', '.join(config.sequencer.function_names)}")


@app.command()
def create(
    owner: str | None = typer.Option(None, "--owner", "-o", help="Owner identifier."),
    task: str | None = typer.Option(None, "--task", "-t", help="Task done."),
    description: str | None = typer.Option(None, "--description", "-d", help="Description."),
    notes: str | None = typer.Option(None, "--notes", help="Notes."),
    work_type: str | None = typer.Option(None, "--work-type", "-w", help="Work type (e.g. 'gran formato')."),
    record_date: str | None = typer.Option(None, "--date", help="Record date, YYYY-MM-DD (default: today)."),
    protected: bool | None = typer.Option(None, "--protected/--no-protected", help="Mark the record protected."),
    by_name: str | None = typer.Option(None, "--by-name", help="Creator display name."),
    by_email: str | None = typer.Option(None, "--by-email", help="Creator email."),
    settings: str | None = SettingsOption,
    output_format: OutputFormat = FormatOption,
) -> None:
    """Create one record and print its folio."""
    from minutebook.engine import build_orchestrator

    config = _load_config(settings)
    draft = RecordDraft(
        date=record_date,
        description=description,
        task_done=task,
        notes=notes,
        work_type=work_type,
        is_protected=protected,
        created_by_name=by_name,
        created_by_email=by_email,
    )
    db = _open_store(config)
    try:
        record = build_orchestrator(config, db).create_record(owner, draft)
    except SQLAlchemyError as e:
        _store_failed(e)
    except RetryExhausted as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None
    except SequencerUnavailable as e:
        typer.echo(f"Error: {e}. Run 'minutebook init' or apply the migrations.", err=True)
        raise typer.Exit(1) from None
    except CreationError as e:
        typer.echo(f"Error ({e.kind}): {e}", err=True)
        raise typer.Exit(1) from None
    finally:
        db.close()
    _emit_record(record, output_format, config.folio.width)


@app.command()
def show(
    record_id: str = typer.Argument(..., help="Record id."),
    settings: str | None = SettingsOption,
    output_format: OutputFormat = FormatOption,
) -> None:
    """Print one record."""
    from minutebook.core.store import RecordRepository, SchemaProbe

    config = _load_config(settings)
    db = _open_store(config)
    try:
        record = RecordRepository(db, SchemaProbe(db)).get(record_id)
    except SQLAlchemyError as e:
        _store_failed(e)
    finally:
        db.close()
    if record is None:
        typer.echo(f"Error: {RecordNotFound(record_id)}", err=True)
        raise typer.Exit(1)
    _emit_record(record, output_format, config.folio.width)


def _parse_assignments(assignments: list[str]) -> dict[str, str]:
    changes: dict[str, str] = {}
    for item in assignments:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            typer.echo(f"Error: expected KEY=VALUE, got {item!r}", err=True)
            raise typer.Exit(1)
        changes[key.strip()] = value
    return changes


@app.command()
def patch(
    record_id: str = typer.Argument(..., help="Record id."),
    assignments: list[str] = typer.Option(..., "--set", help="Field assignment KEY=VALUE (repeatable)."),
    settings: str | None = SettingsOption,
    output_format: OutputFormat = FormatOption,
) -> None:
    """Change business fields of a record. Folio and owner never change.

    start_time / end_time take HH:MM[:SS]; an empty value clears them.
    """
    from minutebook.core.store import RecordRepository, SchemaProbe

    changes = _parse_assignments(assignments)
    config = _load_config(settings)
    db = _open_store(config)
    try:
        record = RecordRepository(db, SchemaProbe(db)).patch(record_id, changes)
    except SQLAlchemyError as e:
        _store_failed(e)
    except (RecordNotFound, ValidationFailure) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None
    finally:
        db.close()
    _emit_record(record, output_format, config.folio.width)


def _stamp_time(record_id: str, settings: str | None, output_format: OutputFormat, *, starting: bool) -> None:
    from minutebook.core.store import RecordRepository, SchemaProbe

    config = _load_config(settings)
    db = _open_store(config)
    try:
        repository = RecordRepository(db, SchemaProbe(db))
        record = repository.start(record_id) if starting else repository.stop(record_id)
    except SQLAlchemyError as e:
        _store_failed(e)
    except (RecordNotFound, ValidationFailure) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None
    finally:
        db.close()
    _emit_record(record, output_format, config.folio.width)


@app.command()
def start(
    record_id: str = typer.Argument(..., help="Record id."),
    settings: str | None = SettingsOption,
    output_format: OutputFormat = FormatOption,
) -> None:
    """Stamp the record's start time with the current local time."""
    _stamp_time(record_id, settings, output_format, starting=True)


@app.command()
def stop(
    record_id: str = typer.Argument(..., help="Record id."),
    settings: str | None = SettingsOption,
    output_format: OutputFormat = FormatOption,
) -> None:
    """Stamp the record's end time with the current local time."""
    _stamp_time(record_id, settings, output_format, starting=False)


@app.command("list")
def list_records(
    owner: str | None = typer.Option(None, "--owner", "-o", help="Owner identifier."),
    settings: str | None = SettingsOption,
    output_format: OutputFormat = FormatOption,
) -> None:
    """List an owner's records, newest first."""
    from minutebook.core.store import RecordRepository, SchemaProbe

    config = _load_config(settings)
    db = _open_store(config)
    try:
        records = RecordRepository(db, SchemaProbe(db)).list_for_owner(owner)
    except SQLAlchemyError as e:
        _store_failed(e)
    finally:
        db.close()

    if output_format == "json":
        payload = [_record_payload(record, config.folio.width) for record in records]
        typer.echo(json.dumps(payload, default=str, sort_keys=True))
        return
    if not records:
        typer.echo("No records.")
        return
    for record in records:
        folio = resolve_folio(record.folio, record.folio_serial, record.id, config.folio.width).display
        started = record.start_time.strftime("%H:%M") if record.start_time is not None else "--:--"
        summary = record.task_done or record.description or ""
        typer.echo(f"{folio}  {record.date.isoformat()}  {started}  {summary}".rstrip())


@app.command()
def probe(
    settings: str | None = SettingsOption,
    output_format: OutputFormat = FormatOption,
) -> None:
    """Print what the live schema supports."""
    from minutebook.core.store import SchemaProbe

    config = _load_config(settings)
    db = _open_store(config)
    try:
        # Probes swallow store errors, so check the table itself first
        db.live_table()
        schema_probe = SchemaProbe(db)
        facts = schema_probe.facts()
        failures = schema_probe.failures
    except SQLAlchemyError as e:
        _store_failed(e)
    finally:
        db.close()

    if output_format == "json":
        data = {
            "owner_column": facts.owner_column.value,
            "optional_columns": dict(facts.optional_columns),
            "probe_failures": [str(f) for f in failures],
        }
        typer.echo(json.dumps(data, sort_keys=True))
        return
    typer.echo(f"Owner column: {facts.owner_column.value}")
    for name, present in facts.optional_columns.items():
        typer.echo(f"  {name}: {'present' if present else 'absent'}")
    for failure in failures:
        typer.echo(f"Warning: {failure}", err=True)


if __name__ == "__main__":
    app()
