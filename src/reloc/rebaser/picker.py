"""Interactive file pickers used when automatic resolution fails."""

from pathlib import Path
from typing import Awaitable, Protocol

from InquirerPy import inquirer
from InquirerPy.validator import PathValidator
from rich.console import Console

from reloc.rebaser.uris import to_local_uri

console = Console()


class FilePicker(Protocol):
    """Protocol for asking the user where a file lives.

    Returns a local URI, or None when the user cancels. May be sync or async.
    """

    def pick_file(self, seed_name: str) -> str | None | Awaitable[str | None]:
        ...


class NullPicker:
    """Picker for non-interactive runs; always cancels."""

    def pick_file(self, seed_name: str) -> None:
        return None


class InquirerFilePicker:
    """Terminal picker using InquirerPy prompts."""

    def __init__(self, start_dir: Path | None = None):
        self.start_dir = (start_dir or Path.cwd()).expanduser().resolve()

    async def pick_file(self, seed_name: str) -> str | None:
        console.print(f"[yellow]Unable to find[/yellow] '{seed_name}'")

        locate = await inquirer.confirm(
            message="Locate it?",
            default=True,
        ).execute_async()
        if not locate:
            return None

        selected = await inquirer.filepath(
            message=f"Path to {seed_name}:",
            default=f"{self.start_dir}/",
            only_files=True,
            validate=PathValidator(is_file=True, message="Not a file"),
            mandatory=False,
            long_instruction="ctrl-z to skip",
        ).execute_async()
        if not selected:
            return None

        return to_local_uri(selected)
