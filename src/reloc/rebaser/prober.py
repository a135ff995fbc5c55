"""Existence probing of candidate local URIs."""

import asyncio
from typing import Awaitable, Protocol

from reloc.rebaser.uris import uri_to_path


class ExistenceProber(Protocol):
    """Protocol for "does this local URI exist".

    Implementations may be sync or async. A missing path returns False; any
    exception is treated by the rebaser as "does not exist".
    """

    def exists(self, local_uri: str) -> bool | Awaitable[bool]:
        ...


class FileSystemProber:
    """Checks file: URIs against the local file system."""

    async def exists(self, local_uri: str) -> bool:
        try:
            path = uri_to_path(local_uri)
        except ValueError:
            return False
        return await asyncio.to_thread(path.is_file)


class SetProber:
    """Prober backed by a fixed set of URIs. Useful when the host already knows
    which files it has open."""

    def __init__(self, uris: set[str] | None = None):
        self.uris = set(uris or ())

    def exists(self, local_uri: str) -> bool:
        return local_uri in self.uris
