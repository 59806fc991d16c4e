"""Typer CLI entry point for classmap."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from classmap import __version__
from classmap.config import LoaderConfig, load_config
from classmap.exceptions import ClassmapError
from classmap.finder import Finder
from classmap.indexer import CacheStore, cache_key
from classmap.loader import Loader

app = typer.Typer(
    name="classmap",
    help="classmap — persistent, self-refreshing index of PHP classes, interfaces, traits and enums.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()

ProjectOption = Annotated[
    Path, typer.Option("--project", "-p", help="Project directory (default: cwd)")
]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Verbose output")]


def _error_exit(message: str, hint: str | None = None) -> None:
    """Print a styled error and exit."""
    console.print(f"[bold red]Error:[/bold red] {message}")
    if hint:
        console.print(f"[dim]Hint: {hint}[/dim]")
    raise typer.Exit(code=1)


def _project_config(project: Path | None, verbose: bool) -> LoaderConfig:
    """Load config for a project, defaulting the cache to .classmap/cache."""
    config = load_config(project or Path.cwd())
    if verbose:
        config.log_level = "DEBUG"
    if not config.roots and not config.files:
        _error_exit(
            "No roots configured.",
            hint="Set 'roots' in .classmap/config.toml or the CLASSMAP_ROOTS environment variable.",
        )
    if config.cache_dir is None:
        config.cache_dir = config.project_dir / ".classmap" / "cache"
    return config


def _display(path: Path, base: Path) -> str:
    try:
        return path.relative_to(base).as_posix()
    except ValueError:
        return str(path)


@app.command()
def rebuild(project: ProjectOption = None, verbose: VerboseOption = False) -> None:
    """Discard the cache and rescan every root."""
    config = _project_config(project, verbose)
    try:
        with Loader(config) as loader:
            loader.rebuild()
            symbols = loader.indexed_symbols()
            files = set(symbols.values())
            cache_path = loader.store.path
    except ClassmapError as exc:
        _error_exit(str(exc))
        return

    console.print(Panel(
        Text.assemble(
            ("Indexed ", "green"),
            (str(len(symbols)), "bold green"),
            (" symbols in ", "green"),
            (str(len(files)), "bold green"),
            (" files\n", "green"),
            ("Cache: ", "dim"),
            (str(cache_path), "cyan"),
        ),
        title=f"[bold cyan]classmap[/bold cyan] v{__version__}",
        border_style="cyan",
    ))


@app.command()
def resolve(
    name: Annotated[str, typer.Argument(help="Fully qualified symbol, e.g. App\\Models\\User")],
    project: ProjectOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Print the file declaring a symbol."""
    config = _project_config(project, verbose)
    try:
        with Loader(config) as loader:
            path = loader.resolve(name.lstrip("\\"))
    except ClassmapError as exc:
        _error_exit(str(exc))
        return

    if path is None:
        _error_exit(f"Symbol '{name}' not found.", hint="Run 'classmap rebuild' after adding files.")
        return
    console.print(str(path), markup=False, highlight=False, soft_wrap=True)


@app.command(name="list")
def list_cmd(project: ProjectOption = None, verbose: VerboseOption = False) -> None:
    """Show every indexed symbol."""
    config = _project_config(project, verbose)
    try:
        with Loader(config) as loader:
            symbols = loader.indexed_symbols()
    except ClassmapError as exc:
        _error_exit(str(exc))
        return

    if not symbols:
        console.print("[yellow]No symbols indexed.[/yellow]")
        return

    table = Table(title="Indexed symbols", border_style="cyan", header_style="bold cyan")
    table.add_column("Symbol", style="bold")
    table.add_column("File")
    for symbol, path in symbols.items():
        table.add_row(Text(symbol), Text(_display(path, config.project_dir)))
    console.print(table)


@app.command()
def find(
    masks: Annotated[list[str], typer.Argument(help="Masks such as *.php or src/**/*.php")],
    from_dirs: Annotated[
        Optional[list[str]], typer.Option("--from", help="Search recursively in DIR")
    ] = None,
    in_dirs: Annotated[
        Optional[list[str]], typer.Option("--in", help="Search only directly in DIR")
    ] = None,
    exclude: Annotated[
        Optional[list[str]], typer.Option("--exclude", "-x", help="Exclusion mask")
    ] = None,
    dirs: Annotated[bool, typer.Option("--dirs", help="Find directories instead of files")] = False,
    max_depth: Annotated[int, typer.Option("--max-depth", help="Maximum depth (-1 = unlimited)")] = -1,
    child_first: Annotated[bool, typer.Option("--child-first", help="List contents before their directory")] = False,
    sort: Annotated[bool, typer.Option("--sort", help="Sort each directory by name")] = False,
) -> None:
    """List files (or directories) matching masks."""
    finder = Finder.find_directories(*masks) if dirs else Finder.find_files(*masks)
    try:
        if from_dirs:
            finder.from_dirs(*from_dirs)
        if in_dirs:
            finder.in_dirs(*in_dirs)
        if exclude:
            finder.exclude(*exclude)
        finder.limit_depth(max_depth).child_first(child_first)
        if sort:
            finder.sort_by_name()

        count = 0
        for record in finder:
            console.print(record.path, markup=False, highlight=False, soft_wrap=True)
            count += 1
    except ClassmapError as exc:
        _error_exit(str(exc))
        return

    if count == 0:
        console.print("[dim]No matches.[/dim]")


@app.command()
def status(project: ProjectOption = None, verbose: VerboseOption = False) -> None:
    """Show configuration, cache location and index stats."""
    config = _project_config(project, verbose)
    store = CacheStore(config.cache_dir, cache_key(config), config.debug)
    snapshot = store.read()

    table = Table(title="classmap status", border_style="cyan", header_style="bold cyan")
    table.add_column("Property", style="bold")
    table.add_column("Value")

    table.add_row("Project", Text(str(config.project_dir)))
    table.add_row("Roots", Text(", ".join(config.roots) or "-"))
    table.add_row("Standalone files", Text(", ".join(config.files) or "-"))
    table.add_row("Accept", Text(", ".join(config.accept)))
    table.add_row("Ignore", Text(", ".join(config.ignore)))
    table.add_row("Cache", Text(str(store.path)))

    if snapshot is None:
        table.add_row("Index", "[dim]Not built[/dim]")
    else:
        files = {entry.file for entry in snapshot.symbols.values()}
        table.add_row("Index", f"{len(snapshot.symbols)} symbols, {len(files)} files")
        table.add_row("Empty files", str(len(snapshot.empty_files)))
        table.add_row("Missing lookups", str(len(snapshot.missing)))
    table.add_row(
        "Auto rebuild", "[green]On[/green]" if config.auto_rebuild else "[yellow]Off[/yellow]"
    )

    console.print()
    console.print(table)
    console.print()
