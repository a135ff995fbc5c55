"""BaseUriStore protocol for persisting learned base pairs."""

from typing import Protocol

from reloc.types import BaseUriCacheEntry


class BaseUriStore(Protocol):
    """Protocol for base-URI cache persistence."""

    def load_entries(self) -> list[BaseUriCacheEntry]:
        """Load every stored entry, oldest first."""
        ...

    def save_entry(self, entry: BaseUriCacheEntry, key: str) -> None:
        """Insert or replace the entry stored under a normalized prefix key."""
        ...

    def delete_all(self) -> None:
        """Forget every stored entry."""
        ...

    def close(self) -> None:
        """Release the underlying resources."""
        ...
