"""Command-line interface for sparklib."""

import asyncio
import json
import logging
from pathlib import Path
from typing import NoReturn

import requests
import typer
from rich.console import Console
from rich.table import Table

from .config import CONFIG_FILE, DEFAULT_CONFIG, Config
from .errors import (
    LibraryCapabilityError,
    LibraryError,
    LibraryFormatError,
    LibraryNotFoundError,
)
from .models import Layout
from .repository import FileSystemLibraryRepository, LibraryRepository, make_repository

# Exit codes
EXIT_OK = 0
EXIT_NOT_FOUND = 1
EXIT_BAD_USAGE = 2
EXIT_FORMAT_ERROR = 3
EXIT_IO_ERROR = 4

app = typer.Typer()
console = Console()


def load_config(path: Path | None) -> Config:
    """Load sparklib.toml from the project path and configure logging."""
    config_path = (path or Path.cwd()) / CONFIG_FILE
    if not config_path.exists():
        console.print(f"[red]sparklib project not found at {config_path.parent}[/red]")
        raise typer.Exit(EXIT_BAD_USAGE)

    try:
        config = Config(config_path)
    except ValueError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        raise typer.Exit(EXIT_BAD_USAGE) from e

    if not isinstance(logging.getLevelName(config.log_level), int):
        console.print(f"[red]Configuration error: unknown logging level {config.log_level}[/red]")
        raise typer.Exit(EXIT_BAD_USAGE)

    logging.basicConfig(level=config.log_level, format=config.log_format)
    return config


def get_repository(config: Config, remote: bool = False) -> LibraryRepository:
    return make_repository(config, "build" if remote else "filesystem")


def get_local_repository(config: Config) -> FileSystemLibraryRepository:
    return FileSystemLibraryRepository(config.repository_root)


def fail(action: str, error: Exception) -> NoReturn:
    """Report an error and exit with the matching exit code."""
    console.print(f"[red]Failed to {action}: {error}[/red]")
    if isinstance(error, LibraryNotFoundError):
        raise typer.Exit(EXIT_NOT_FOUND) from error
    if isinstance(error, LibraryFormatError):
        raise typer.Exit(EXIT_FORMAT_ERROR) from error
    if isinstance(error, LibraryCapabilityError):
        raise typer.Exit(EXIT_BAD_USAGE) from error
    raise typer.Exit(EXIT_IO_ERROR) from error


@app.command()
def init(
    path: Path | None = typer.Option(
        None, "--path", help="Path to initialize (default: current directory)"
    ),
    force: bool = typer.Option(
        False, "--force", help="Overwrite existing configuration"
    ),
) -> None:
    """Initialize a sparklib project in the current directory."""
    try:
        target_path = path or Path.cwd()
        config_path = target_path / CONFIG_FILE

        if config_path.exists() and not force:
            console.print(
                "[red]sparklib already initialized. Use --force to overwrite.[/red]"
            )
            raise typer.Exit(EXIT_BAD_USAGE)

        config_path.write_text(DEFAULT_CONFIG, encoding="utf-8")
        config = Config(config_path)
        config.repository_root.mkdir(parents=True, exist_ok=True)

        console.print(f"[green]sparklib initialized in {target_path}[/green]")
        console.print(f"[blue]Configuration: {config_path}[/blue]")
        console.print(f"[blue]Libraries: {config.repository_root}[/blue]")

    except typer.Exit:
        raise
    except OSError as e:
        fail("initialize", e)


@app.command("list")
def list_libraries(
    path: Path | None = typer.Option(None, "--path", help="Path to sparklib project"),
    remote: bool = typer.Option(False, "--remote", help="List the remote registry"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """List library names."""
    config = load_config(path)
    repository = get_repository(config, remote)

    try:
        names = asyncio.run(repository.names())
    except (LibraryError, OSError, requests.RequestException) as e:
        fail("list libraries", e)

    if json_output:
        console.print_json(json.dumps(names))
        return

    table = Table(title="Libraries")
    table.add_column("Name", style="cyan")
    for name in names:
        table.add_row(name)
    console.print(table)
    console.print(f"\nTotal: {len(names)} libraries")


@app.command()
def show(
    name: str = typer.Argument(..., help="Library name"),
    path: Path | None = typer.Option(None, "--path", help="Path to sparklib project"),
    remote: bool = typer.Option(False, "--remote", help="Read from the remote registry"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show a library's descriptor and files."""
    config = load_config(path)
    repository = get_repository(config, remote)

    async def describe():
        library = await repository.fetch(name)
        return await library.definition(), await library.files()

    try:
        definition, files = asyncio.run(describe())
    except (LibraryError, OSError, requests.RequestException) as e:
        fail(f"show library '{name}'", e)

    if json_output:
        data = {
            "definition": definition.model_dump(exclude_none=True),
            "files": [
                {"name": f.name, "kind": f.kind, "extension": f.extension} for f in files
            ],
        }
        console.print_json(json.dumps(data))
        return

    table = Table(title=f"{definition.name} {definition.version or ''}".strip())
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white")
    for field in ("author", "license", "description"):
        table.add_row(field, str(getattr(definition, field) or ""))
    console.print(table)

    for library_file in files:
        console.print(f"  [green]{library_file.file_name}[/green] ({library_file.kind})")


@app.command()
def layout(
    name: str = typer.Argument(..., help="Library name"),
    path: Path | None = typer.Option(None, "--path", help="Path to sparklib project"),
) -> None:
    """Print the on-disk layout version of a local library."""
    config = load_config(path)
    repository = get_local_repository(config)

    try:
        found = asyncio.run(repository.get_library_layout(name))
    except (LibraryError, OSError) as e:
        fail(f"inspect library '{name}'", e)

    console.print(f"{name}: layout {found.value}")


@app.command()
def install(
    name: str = typer.Argument(..., help="Library name"),
    path: Path | None = typer.Option(None, "--path", help="Path to sparklib project"),
    layout_version: int | None = typer.Option(
        None, "--layout", help="Descriptor layout to write (1 or 2)"
    ),
) -> None:
    """Fetch a library from the remote registry into the local repository."""
    config = load_config(path)
    target_layout = layout_version or config.repository_layout
    if target_layout not in (Layout.LEGACY.value, Layout.CURRENT.value):
        console.print(f"[red]Unknown layout {target_layout}[/red]")
        raise typer.Exit(EXIT_BAD_USAGE)

    remote = get_repository(config, remote=True)
    local = get_local_repository(config)

    async def copy():
        library = await remote.fetch(name)
        await local.add(library, target_layout)

    try:
        config.repository_root.mkdir(parents=True, exist_ok=True)
        asyncio.run(copy())
    except (LibraryError, OSError, requests.RequestException) as e:
        fail(f"install library '{name}'", e)

    console.print(f"[green]Installed '{name}' into {local.directory(name)}[/green]")


@app.command()
def migrate(
    name: str = typer.Argument(..., help="Library name"),
    path: Path | None = typer.Option(None, "--path", help="Path to sparklib project"),
) -> None:
    """Convert a local library from layout 1 to layout 2."""
    config = load_config(path)
    repository = get_local_repository(config)

    try:
        asyncio.run(repository.set_library_layout(name, Layout.CURRENT))
    except (LibraryError, OSError, UnicodeDecodeError) as e:
        fail(f"migrate library '{name}'", e)

    console.print(f"[green]Library '{name}' uses layout 2[/green]")


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
