"""hv CLI entry point."""

from __future__ import annotations

from pathlib import Path

import typer

from hv.config import (
    DATA_DIR,
    DEFAULT_CONFIG_PATH,
    DEFAULT_DATABASE_NAME,
    HVConfig,
    load_config,
    write_default_config,
)
from hv.database import reset_database
from hv.errors import ImportValidationError, LibraryError
from hv.importer import META_FORMAT_HELP
from hv.library import Library
from hv.logging_config import setup_logging


__version__ = "0.1.0"

app = typer.Typer(add_completion=False, help="hv media library CLI")


def _ensure_config() -> HVConfig:
    try:
        return load_config()
    except FileNotFoundError:
        typer.echo("[ERROR] config.ini not found. Run: hv init")
        raise typer.Exit(code=1)


def _open_library(config: HVConfig) -> Library:
    try:
        return Library.open(config)
    except LibraryError as exc:
        typer.echo(f"[ERROR] failed to open database {config.database_path}: {exc}")
        raise typer.Exit(code=1)


@app.command()
def init(
    database: Path = typer.Option(
        DATA_DIR / DEFAULT_DATABASE_NAME, "--database", help="Path to the SQLite database"
    ),
) -> None:
    """Initialize config.ini with default settings."""
    config_path = write_default_config(database, DEFAULT_CONFIG_PATH)
    typer.echo(f"[OK] Config created at {config_path}")


@app.command("register-user")
def register_user(
    username: str = typer.Argument(..., help="Letters, digits, '.', '_' and '-'"),
    password: str = typer.Argument(...),
) -> None:
    """Register a new user."""
    config = _ensure_config()
    setup_logging(config.logging.level, config.logging.file)

    with _open_library(config) as library:
        try:
            library.register_user(username, password)
        except LibraryError as exc:
            typer.echo(f"[ERROR] failed to register user: {exc}")
            raise typer.Exit(code=1)

    typer.echo(f"[OK] User {username} registered")


@app.command("import-doujin")
def import_doujin(
    folder: Path = typer.Argument(..., help="Folder with metadata.json and numbered pages"),
) -> None:
    """Import the doujin in FOLDER (see meta-format)."""
    config = _ensure_config()
    setup_logging(config.logging.level, config.logging.file)

    with _open_library(config) as library:
        try:
            doujin_id = library.import_doujin(folder)
        except (LibraryError, ImportValidationError) as exc:
            typer.echo(f"[ERROR] failed to register doujin in folder `{folder}`: {exc}")
            raise typer.Exit(code=1)

    typer.echo(f"[OK] Imported `{folder}` as doujin {doujin_id}")


@app.command("import-doujins")
def import_doujins(
    folder: Path = typer.Argument(..., help="Folder whose sub-folders are doujins"),
) -> None:
    """Import every doujin sub-folder of FOLDER."""
    config = _ensure_config()
    setup_logging(config.logging.level, config.logging.file)

    with _open_library(config) as library:
        try:
            stats = library.import_doujins_from(folder)
        except FileNotFoundError as exc:
            typer.echo(f"[ERROR] {exc}")
            raise typer.Exit(code=1)
        except LibraryError as exc:
            typer.echo(f"[ERROR] import of `{folder}` aborted: {exc}")
            raise typer.Exit(code=1)

    typer.echo(f"✓ Import completed: {stats['imported']} imported, {stats['failed']} failed.")
    if stats["failed"]:
        raise typer.Exit(code=1)


@app.command()
def reset(
    confirm: bool = typer.Option(False, "--confirm", help="Confirm destructive reset"),
) -> None:
    """Delete the database (users, sessions, catalog) and recreate it empty."""
    if not confirm:
        typer.echo("[ERROR] This will delete every user and doujin record. Use --confirm.")
        raise typer.Exit(code=1)

    config = _ensure_config()
    setup_logging(config.logging.level, config.logging.file)

    try:
        engine = reset_database(config.database_path)
    except LibraryError as exc:
        typer.echo(f"[ERROR] failed to reset database {config.database_path}: {exc}")
        raise typer.Exit(code=1)
    engine.dispose()

    typer.echo(f"[OK] Database {config.database_path} reset. Re-import with: hv import-doujins")


@app.command("meta-format")
def meta_format() -> None:
    """Print the format of the metadata.json file used for importing."""
    typer.echo(META_FORMAT_HELP)


if __name__ == "__main__":
    app()
