"""
CLI: ``spine-orm`` — inspect and bootstrap entity schemas.

Entity targets are ``package.module:ClassName``, or ``package.module`` for
every ``@entity`` class the module defines (in definition order).

Commands::

    spine-orm ddl   myapp.models            print CREATE statements
    spine-orm init  myapp.models -d app.db  create missing tables
    spine-orm check myapp.models -d app.db  compare built vs. live CREATE text
"""

from __future__ import annotations

import importlib
import inspect
import json
import sys
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version
from typing import NoReturn

import typer
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from spineorm import statements
from spineorm.annotations import entity_options
from spineorm.config import StartMode, get_settings
from spineorm.datasource import SQLiteDataSource
from spineorm.environment import DBEnvironment
from spineorm.errors import OrmError
from spineorm.logging import configure_logging
from spineorm.registry import Registry

app = typer.Typer(
    name="spine-orm",
    help="spine-orm — schema derivation and cascading persistence for dataclass entities.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()
err_console = Console(stderr=True)


def _version_callback(value: bool) -> None:
    if value:
        try:
            v = pkg_version("spine-orm")
        except PackageNotFoundError:
            v = "unknown"
        typer.echo(f"spine-orm {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Override SPINEORM_LOG_LEVEL"),
) -> None:
    """spine-orm CLI — derive, create and verify entity tables."""
    settings = get_settings()
    configure_logging(
        level=log_level or settings.log_level,
        json_format=settings.log_format == "json",
        stream=sys.stderr,
    )


# ── Target loading ───────────────────────────────────────────────────────


def load_entities(targets: list[str]) -> list[type]:
    """Resolve ``module:Class`` / ``module`` targets to entity classes."""
    result: list[type] = []
    for target in targets:
        module_name, _, attr = target.partition(":")
        try:
            module = importlib.import_module(module_name)
        except ImportError as e:
            raise typer.BadParameter(f"Cannot import {module_name!r}: {e}") from e
        if attr:
            try:
                found = [getattr(module, attr)]
            except AttributeError as e:
                raise typer.BadParameter(f"{module_name} has no attribute {attr!r}") from e
        else:
            found = [
                obj
                for _, obj in inspect.getmembers(module, inspect.isclass)
                if obj.__module__ == module.__name__ and entity_options(obj) is not None
            ]
            found.sort(key=lambda cls: inspect.getsourcelines(cls)[1])
            if not found:
                raise typer.BadParameter(f"No @entity classes in {module_name}")
        for cls in found:
            if cls not in result:
                result.append(cls)
    return result


def _fail(error: OrmError) -> NoReturn:
    err_console.print(f"[red]{type(error).__name__}:[/red] {error.message}")
    raise typer.Exit(code=1)


# ── Commands ─────────────────────────────────────────────────────────────


@app.command()
def ddl(
    targets: list[str] = typer.Argument(..., help="module:Class or module"),
    if_not_exists: bool = typer.Option(True, "--if-not-exists/--plain", help="Emit IF NOT EXISTS"),
) -> None:
    """Print CREATE statements for entities and their join tables."""
    entities = load_entities(targets)
    with SQLiteDataSource() as data_source:
        try:
            registry = Registry(data_source).build(*entities)
        except OrmError as e:
            _fail(e)
        for profile in registry.profiles():
            sql = statements.build_create(profile, if_not_exists=if_not_exists) + ";"
            console.print(Syntax(sql, "sql", theme="ansi_dark", word_wrap=True))


@app.command()
def init(
    targets: list[str] = typer.Argument(..., help="module:Class or module"),
    database: str | None = typer.Option(None, "--database", "-d", help="Database URL or path"),
    mode: StartMode | None = typer.Option(None, "--mode", "-m", help="Start mode"),
) -> None:
    """Create the tables of the given entities."""
    entities = load_entities(targets)
    try:
        with DBEnvironment(database, start_mode=mode) as env:
            registry = env.initialize_entities(*entities)
            table = Table(title=f"Tables ({env.data_source.info.url})")
            table.add_column("Table", style="cyan")
            table.add_column("Kind")
            table.add_column("Columns", justify="right")
            for entry in registry.entries():
                table.add_row(
                    entry.profile.table_name,
                    "join" if entry.is_join else "entity",
                    str(len(entry.profile.create_table_columns)),
                )
    except OrmError as e:
        _fail(e)
    console.print(table)


@app.command()
def check(
    targets: list[str] = typer.Argument(..., help="module:Class or module"),
    database: str | None = typer.Option(None, "--database", "-d", help="Database URL or path"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Compare each built CREATE statement with the live schema."""
    entities = load_entities(targets)
    rows: list[dict[str, object]] = []
    try:
        with DBEnvironment(database, start_mode=StartMode.AS_IT_IS) as env:
            registry = env.initialize_entities(*entities)
            for profile in registry.profiles():
                exists = env.schema.table_exists(profile.table_name)
                rows.append(
                    {
                        "table": profile.table_name,
                        "exists": exists,
                        "equal": exists and env.schema.table_equals(profile),
                    }
                )
    except OrmError as e:
        _fail(e)

    if json_out:
        typer.echo(json.dumps(rows, indent=2))
    else:
        table = Table(title="Schema Check")
        table.add_column("Table", style="cyan")
        table.add_column("Exists")
        table.add_column("Matches")
        for row in rows:
            table.add_row(
                str(row["table"]),
                "[green]yes[/green]" if row["exists"] else "[red]no[/red]",
                "[green]yes[/green]" if row["equal"] else "[red]no[/red]",
            )
        console.print(table)
    if not all(row["equal"] for row in rows):
        raise typer.Exit(code=1)


__all__ = ["app", "load_entities"]
