"""Storage module for learned base-URI persistence."""

from reloc.store.base import BaseUriStore
from reloc.store.sqlite import SQLiteBaseUriStore

__all__ = ["BaseUriStore", "SQLiteBaseUriStore"]
