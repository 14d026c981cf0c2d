# src/datasubjects/cli.py
"""datasubjects Command Line Interface.

Entry point for the datasubjects CLI tool.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

import typer
from dynaconf.vendor.ruamel.yaml.parser import ParserError as YamlParserError
from dynaconf.vendor.ruamel.yaml.scanner import ScannerError as YamlScannerError
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from datasubjects import __version__
from datasubjects.contracts import (
    BridgeCycleError,
    DuplicateRegistrationError,
    SchemaCompatibilityError,
    UnresolvableJoinPathError,
    VisitKey,
)
from datasubjects.core.config import DatabaseSettings, DataSubjectsSettings, load_settings

if TYPE_CHECKING:
    from datasubjects.core.storage import SubjectDB
    from datasubjects.engine import DataSubjectService
    from datasubjects.plugins.manager import PluginManager

__all__ = [
    "app",
    "load_settings",  # Re-exported from config for convenience
]

# Module-level singleton for plugin manager
_plugin_manager_cache: PluginManager | None = None


def _get_plugin_manager() -> PluginManager:
    """Get initialized plugin manager (singleton).

    Returns:
        PluginManager with built-in and installed plugins registered
    """
    global _plugin_manager_cache

    from datasubjects.plugins.manager import PluginManager

    if _plugin_manager_cache is None:
        manager = PluginManager()
        manager.register_builtin_plugins()
        manager.load_entrypoint_plugins()
        _plugin_manager_cache = manager
    return _plugin_manager_cache


app = typer.Typer(
    name="datasubjects",
    help="datasubjects: erase and export all analytics data stored for a set of visits.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"datasubjects version {__version__}")
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
    ctx: typer.Context,
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
    """datasubjects: erase and export all analytics data stored for a set of visits."""
    # Logging is configured once the settings file is loaded; flags win over it
    ctx.obj = {"verbose": verbose, "json_logs": json_logs}

    if not no_dotenv:
        _load_dotenv(env_file=env_file)
    elif env_file is not None:
        typer.secho(
            "Warning: --env-file ignored because --no-dotenv is set.",
            fg=typer.colors.YELLOW,
            err=True,
        )


# === Shared option handling ===

_SETTINGS_HELP = "Path to settings YAML file (default: ./settings.yaml if present)."
_DATABASE_HELP = "SQLAlchemy database URL, or path to a SQLite file. Overrides settings."
_PREFIX_HELP = "Table name prefix. Overrides settings."


def _parse_visits(values: list[str]) -> list[VisitKey]:
    """Parse SITE:VISIT arguments, exiting with code 1 on the first malformed one."""
    visits: list[VisitKey] = []
    for value in values:
        try:
            visits.append(VisitKey.parse(value))
        except ValueError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1) from None
    return visits


def _database_url(database: str) -> str:
    if "://" in database:
        return database
    db_path = Path(database).expanduser().resolve()
    # Fail fast with clear error if file doesn't exist
    if not db_path.exists():
        raise ValueError(f"Database file not found: {db_path}")
    return f"sqlite:///{db_path}"


def resolve_settings(
    settings: str | None,
    database: str | None,
    table_prefix: str | None,
) -> DataSubjectsSettings:
    """Resolve settings from CLI options and settings file.

    Priority: CLI --database/--table-prefix > explicit --settings > ./settings.yaml

    Raises:
        ValueError: If no database is configured or a given file does not exist
        ValidationError: If settings are invalid
    """
    config: DataSubjectsSettings | None = None
    settings_path = Path(settings).expanduser() if settings else Path("settings.yaml")
    if settings is not None or settings_path.exists():
        config = load_settings(settings_path)

    if config is None:
        if database is None:
            raise ValueError("No database configured. Pass --database or --settings.")
        return DataSubjectsSettings(
            database=DatabaseSettings(url=_database_url(database), table_prefix=table_prefix or ""),
        )

    overrides: dict[str, Any] = {}
    if database is not None:
        overrides["url"] = _database_url(database)
    if table_prefix is not None:
        overrides["table_prefix"] = table_prefix
    if not overrides:
        return config
    database_settings = DatabaseSettings(**{**config.database.model_dump(), **overrides})
    return config.model_copy(update={"database": database_settings})


def _load_settings_or_exit(
    ctx: typer.Context,
    settings: str | None,
    database: str | None,
    table_prefix: str | None,
) -> DataSubjectsSettings:
    try:
        config = resolve_settings(settings, database, table_prefix)
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
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None

    from datasubjects.core.logging import configure_logging

    flags = ctx.obj or {}
    configure_logging(
        config.logging,
        verbose=flags.get("verbose", False),
        json_logs=flags.get("json_logs", False),
    )
    return config


def _open_database(config: DataSubjectsSettings) -> SubjectDB:
    from datasubjects.core.storage import SubjectDB

    try:
        return SubjectDB.from_settings(config.database)
    except SchemaCompatibilityError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None
    except SQLAlchemyError as e:
        typer.echo(f"Error connecting to database: {e}", err=True)
        raise typer.Exit(1) from None


def _build_service(db: SubjectDB, config: DataSubjectsSettings, max_workers: int | None = None) -> DataSubjectService:
    from datasubjects.engine import DataSubjectService

    try:
        manager = _get_plugin_manager()
    except DuplicateRegistrationError as e:
        typer.echo(f"Plugin registration error: {e}", err=True)
        raise typer.Exit(1) from None

    return DataSubjectService(
        db,
        manager,
        manager,
        erasure_hook=manager.delete_data_subjects,
        export_hook=manager.export_data_subjects,
        max_workers=max_workers or config.export.max_workers,
    )


# === Commands ===


@app.command()
def delete(
    ctx: typer.Context,
    visit: list[str] = typer.Option(
        ...,
        "--visit",
        help="Visit to erase as SITE:VISIT. Repeat for multiple visits.",
    ),
    settings: str | None = typer.Option(None, "--settings", "-s", help=_SETTINGS_HELP),
    database: str | None = typer.Option(None, "--database", "-d", help=_DATABASE_HELP),
    table_prefix: str | None = typer.Option(None, "--table-prefix", help=_PREFIX_HELP),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Skip confirmation prompt.",
    ),
) -> None:
    """Erase all log data for the given visits.

    Every registered table is erased in one transaction. If any table cannot
    be joined back to a visit, nothing is deleted.
    """
    from datasubjects.core.export import CountsTextFormatter

    visits = _parse_visits(visit)
    config = _load_settings_or_exit(ctx, settings, database, table_prefix)

    if not yes:
        confirm = typer.confirm(f"Permanently delete all data for {len(visits)} visit(s)?")
        if not confirm:
            typer.echo("Aborted.")
            raise typer.Exit(1)

    with _open_database(config) as db:
        service = _build_service(db, config)
        try:
            results = service.delete_data_subjects(visits)
        except (UnresolvableJoinPathError, BridgeCycleError) as e:
            typer.echo(f"Error: {e}", err=True)
            typer.echo("Nothing was deleted.", err=True)
            raise typer.Exit(1) from None

    typer.echo(CountsTextFormatter().format(results))


@app.command()
def export(
    ctx: typer.Context,
    visit: list[str] = typer.Option(
        ...,
        "--visit",
        help="Visit to export as SITE:VISIT. Repeat for multiple visits.",
    ),
    settings: str | None = typer.Option(None, "--settings", "-s", help=_SETTINGS_HELP),
    database: str | None = typer.Option(None, "--database", "-d", help=_DATABASE_HELP),
    table_prefix: str | None = typer.Option(None, "--table-prefix", help=_PREFIX_HELP),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Write the export to this file instead of stdout.",
    ),
    workers: int | None = typer.Option(
        None,
        "--workers",
        "-w",
        min=1,
        help="Worker threads for table queries. Overrides settings.",
    ),
) -> None:
    """Export all log data for the given visits as JSON."""
    from datasubjects.core.export import JSONFormatter

    visits = _parse_visits(visit)
    config = _load_settings_or_exit(ctx, settings, database, table_prefix)

    with _open_database(config) as db:
        service = _build_service(db, config, max_workers=workers)
        results = service.export_data_subjects(visits)

    try:
        document = JSONFormatter().format(results)
    except ValueError as e:
        typer.echo(f"Error serializing export: {e}", err=True)
        raise typer.Exit(1) from None

    if output is None:
        typer.echo(document)
    else:
        output.write_text(document + "\n", encoding="utf-8")
        typer.echo(f"Exported {len(results)} key(s) to {output}", err=True)


@app.command()
def plan(
    ctx: typer.Context,
    settings: str | None = typer.Option(None, "--settings", "-s", help=_SETTINGS_HELP),
    database: str | None = typer.Option(None, "--database", "-d", help=_DATABASE_HELP),
    table_prefix: str | None = typer.Option(None, "--table-prefix", help=_PREFIX_HELP),
) -> None:
    """Show the erasure order and how each table joins back to a visit."""
    config = _load_settings_or_exit(ctx, settings, database, table_prefix)

    with _open_database(config) as db:
        service = _build_service(db, config)
        try:
            entries = service.plan()
        except BridgeCycleError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1) from None

    unresolved = 0
    for position, entry in enumerate(entries, start=1):
        if entry.skipped:
            typer.echo(f"{position}. {entry.table.name} (skipped: exported through action-name lookups)")
        elif entry.path is None:
            unresolved += 1
            typer.secho(f"{position}. {entry.table.name} (cannot be joined: {entry.error})", fg=typer.colors.RED)
        else:
            typer.echo(f"{position}. {entry.path.describe()}")

    if unresolved:
        typer.echo(f"{unresolved} table(s) cannot be joined; delete will fail.", err=True)
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
