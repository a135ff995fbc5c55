"""reloc CLI."""

import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from reloc.config import RelocConfig, get_config_template, load_config
from reloc.errors import RelocError
from reloc.rebaser.picker import InquirerFilePicker
from reloc.rebaser.uris import to_local_uri, uri_to_path
from reloc.session import Session

app = typer.Typer(help="reloc - map SARIF artifact paths onto your checkout")
console = Console()


def setup_logging(verbose: bool = False):
    """Configure logging with rich handler."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )
    logging.getLogger("asyncio").setLevel(logging.WARNING)

RELOC_DIR = ".reloc"
CONFIG_FILE = "reloc.yaml"


def get_config(bases: list[str] | None = None) -> RelocConfig:
    """Load reloc.yaml if present, with extra bases from the command line first."""
    config_path = Path(CONFIG_FILE)
    try:
        config = load_config(config_path) if config_path.exists() else RelocConfig()
    except RelocError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if bases:
        config.rebaser.uri_bases = [to_local_uri(base) for base in bases] + config.rebaser.uri_bases
    return config


def _display(uri: str) -> str:
    try:
        return str(uri_to_path(uri))
    except ValueError:
        return uri


@app.command()
def init():
    """Initialize reloc in the current directory."""
    reloc_dir = Path(RELOC_DIR)
    config_file = Path(CONFIG_FILE)

    if config_file.exists():
        console.print(f"[yellow]Warning:[/yellow] {CONFIG_FILE} already exists.")
        if not typer.confirm("Overwrite?"):
            raise typer.Exit(0)

    reloc_dir.mkdir(exist_ok=True)
    config_file.write_text(get_config_template())

    # Add .reloc to .gitignore if it exists
    gitignore = Path(".gitignore")
    if gitignore.exists():
        content = gitignore.read_text()
        if RELOC_DIR not in content:
            with open(gitignore, "a") as f:
                f.write(f"\n# reloc\n{RELOC_DIR}/\n")
            console.print(f"Added {RELOC_DIR}/ to .gitignore")

    console.print("[green]Initialized reloc.[/green]")
    console.print(f"  Config: {CONFIG_FILE}")
    console.print(f"\nAdd your local roots to rebaser.uri_bases in {CONFIG_FILE}.")


@app.command()
def resolve(
    logs: list[Path] = typer.Argument(..., help="SARIF log files"),
    no_prompt: bool = typer.Option(False, "--no-prompt", help="Never ask where a file is"),
    base: list[str] | None = typer.Option(None, "--base", "-b", help="Extra local root (repeatable)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
):
    """Resolve the artifact paths of one or more logs."""
    setup_logging(verbose)
    config = get_config(base)
    picker = None if no_prompt else InquirerFilePicker()

    async def run() -> Session:
        async with Session.create(config, picker=picker) as session:
            for log in logs:
                await session.load_log(log)
            await session.resolve_all(prompt_user=not no_prompt)
        return session

    try:
        session = asyncio.run(run())
    except RelocError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/yellow]")
        raise typer.Exit(1)

    problems = session.collection.sink.problems
    table = Table()
    table.add_column("File")
    table.add_column("Line", justify="right")
    table.add_column("Severity")
    table.add_column("Message")
    for uri, entries in problems.items():
        for problem in entries:
            table.add_row(
                _display(uri),
                str(problem.range.start_line + 1),
                problem.severity.value,
                problem.message,
            )
    console.print(table)

    mapped = len(session.collection.all_mapped())
    unmapped = len(session.collection.all_unmapped())
    console.print(f"\n[green]{mapped} mapped[/green], [yellow]{unmapped} unmapped[/yellow]")


@app.command("map")
def map_uri(
    artifact_uri: str = typer.Argument(..., help="Artifact URI as it appears in a log"),
    no_prompt: bool = typer.Option(False, "--no-prompt", help="Never ask where the file is"),
    base: list[str] | None = typer.Option(None, "--base", "-b", help="Extra local root (repeatable)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
):
    """Resolve a single artifact URI."""
    setup_logging(verbose)
    config = get_config(base)
    picker = None if no_prompt else InquirerFilePicker()

    async def run() -> str | None:
        async with Session.create(config, picker=picker) as session:
            return await session.rebaser.translate_artifact_to_local(
                artifact_uri, prompt_user=not no_prompt
            )

    local_uri = asyncio.run(run())
    if local_uri is None:
        console.print(f"[yellow]Not found:[/yellow] {artifact_uri}")
        raise typer.Exit(1)
    console.print(_display(local_uri))


@app.command()
def reverse(
    local_path: Path = typer.Argument(..., help="A file in your checkout"),
    logs: list[Path] = typer.Argument(..., help="SARIF log files"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
):
    """Find the artifact URI a local file stands for."""
    setup_logging(verbose)
    config = get_config()

    async def run() -> str | None:
        async with Session.create(config) as session:
            for log in logs:
                await session.load_log(log)
            return session.rebaser.translate_local_to_artifact(to_local_uri(str(local_path)))

    try:
        artifact_uri = asyncio.run(run())
    except RelocError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if artifact_uri is None:
        console.print(f"[yellow]No artifact found for[/yellow] {local_path}")
        raise typer.Exit(1)
    console.print(artifact_uri)


@app.command()
def bases(
    clear: bool = typer.Option(False, "--clear", help="Forget every learned base"),
):
    """List learned base URI pairs."""
    config = get_config()
    if not config.cache.enabled:
        console.print("Base cache is disabled.")
        raise typer.Exit(0)

    async def run() -> list:
        async with Session.create(config) as session:
            if clear:
                session.clear_bases()
            return session.bases()

    entries = asyncio.run(run())
    if clear:
        console.print("[green]Cleared learned bases.[/green]")
        return
    if not entries:
        console.print("No learned bases.")
        return

    table = Table()
    table.add_column("Artifact prefix")
    table.add_column("Local prefix")
    for entry in entries:
        table.add_row(entry.artifact_prefix, entry.local_prefix)
    console.print(table)


if __name__ == "__main__":
    app()
