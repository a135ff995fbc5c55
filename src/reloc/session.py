"""Session: owns the rebaser, the collection and everything they share."""

import asyncio
import itertools
import logging
from pathlib import Path
from typing import Any, Coroutine

from reloc.config import RelocConfig
from reloc.diagnostics.collection import DiagnosticCollection
from reloc.diagnostics.entry import DiagnosticEntry
from reloc.diagnostics.sinks import InMemoryProblemList, ProblemListSink
from reloc.errors import MessageError
from reloc.messages import (
    Message,
    RemapMessage,
    RemoveLogMessage,
    SelectMessage,
    SetUriBasesMessage,
    TranslateLocalMessage,
    parse_message,
)
from reloc.rebaser.cache import BaseUriCache
from reloc.rebaser.names import index_workspace
from reloc.rebaser.normalize import PathNormalizer
from reloc.rebaser.picker import FilePicker
from reloc.rebaser.prober import ExistenceProber, FileSystemProber
from reloc.rebaser.rebaser import UriRebaser
from reloc.rebaser.uris import has_scheme, path_to_uri
from reloc.sarif import LoadedLog, load_log
from reloc.store.base import BaseUriStore
from reloc.store.sqlite import SQLiteBaseUriStore
from reloc.types import BaseUriCacheEntry

logger = logging.getLogger(__name__)


class Session:
    """One consumer's view of a set of loaded logs.

    Nothing here is global: two sessions never share a cache or a collection
    unless they are handed the same store.
    """

    def __init__(
        self,
        config: RelocConfig,
        rebaser: UriRebaser,
        collection: DiagnosticCollection,
        store: BaseUriStore | None = None,
    ):
        self.config = config
        self.rebaser = rebaser
        self.collection = collection
        self.store = store

        self._logs: dict[str, list[str]] = {}  # source URI -> artifact URIs
        self._run_ids = itertools.count()
        self._tasks: set[asyncio.Task] = set()

    @classmethod
    def create(
        cls,
        config: RelocConfig | None = None,
        prober: ExistenceProber | None = None,
        picker: FilePicker | None = None,
        sink: ProblemListSink | None = None,
        store: BaseUriStore | None = None,
        root: Path | None = None,
    ) -> "Session":
        """Build a session from configuration.

        Relative paths in the configuration are taken from `root` (default:
        the current directory). When no store is given and the cache is
        enabled, learned bases are kept in SQLite.
        """
        config = config or RelocConfig()
        root = (root or Path.cwd()).expanduser().resolve()
        normalizer = PathNormalizer(config.rebaser.case_sensitive)

        if store is None and config.cache.enabled:
            store = SQLiteBaseUriStore(_under(root, config.cache.path))
            store.initialize()

        local_names = None
        if config.rebaser.workspace:
            local_names = index_workspace(
                _under(root, config.rebaser.workspace),
                normalizer,
                deny=config.rebaser.index_deny,
            )

        rebaser = UriRebaser(
            normalizer,
            prober or FileSystemProber(),
            picker=picker,
            distinct_local_names=local_names,
            cache=BaseUriCache(normalizer, store),
            uri_bases=[
                base if has_scheme(base) else path_to_uri(_under(root, base))
                for base in config.rebaser.uri_bases
            ],
        )
        collection = DiagnosticCollection(
            rebaser,
            sink if sink is not None else InMemoryProblemList(),
            max_per_file=config.diagnostics.max_per_file,
        )
        return cls(config, rebaser, collection, store)

    # Logs

    @property
    def loaded_logs(self) -> list[str]:
        return list(self._logs)

    def _refresh_distinct_names(self) -> None:
        self.rebaser.distinct_artifact_names.rebuild(
            itertools.chain.from_iterable(self._logs.values())
        )

    async def load_log(self, path: Path, base_uri: str | None = None) -> LoadedLog:
        """Read a log and add its diagnostics, resolving each one once.

        Loading a log that is already loaded replaces it.
        """
        source_uri = path_to_uri(path)
        if source_uri in self._logs:
            self.unload_log(source_uri)

        # Run ids stay unique for the life of the session.
        loaded = load_log(path, first_run_id=next(self._run_ids), base_uri=base_uri)
        for _ in loaded.runs[1:]:
            next(self._run_ids)

        self._logs[loaded.source_uri] = loaded.artifact_uris
        self._refresh_distinct_names()

        for entry in loaded.entries:
            await entry.attempt_to_map(self.rebaser, prompt_user=False)

        for run in loaded.runs:
            self.collection.add_run(run, [entry for entry in loaded.entries if entry.run is run])

        mapped = sum(1 for entry in loaded.entries if entry.location.mapped)
        logger.info(f"Loaded {len(loaded.entries)} results from {path} ({mapped} mapped)")
        return loaded

    def unload_log(self, path_or_uri: Path | str) -> list[DiagnosticEntry]:
        source_uri = str(path_or_uri)
        if not has_scheme(source_uri):
            source_uri = path_to_uri(source_uri)

        removed = self.collection.remove_runs(source_uri)
        if self._logs.pop(source_uri, None) is not None:
            self._refresh_distinct_names()
        return removed

    async def resolve_all(self, prompt_user: bool = True) -> int:
        """Try every unmapped diagnostic in turn. Returns how many stay unmapped."""
        for entry in self.collection.all_unmapped():
            # An earlier pick may already have remapped this one.
            if entry.location.mapped:
                continue
            await entry.attempt_to_map(self.rebaser, prompt_user=prompt_user)
        return len(self.collection.all_unmapped())

    # Bases

    def bases(self) -> list[BaseUriCacheEntry]:
        return self.rebaser.cache.entries()

    def clear_bases(self) -> None:
        self.rebaser.cache.clear()

    # Boundary requests

    def _result(self, run_id: int, result_id: int) -> DiagnosticEntry:
        entry = self.collection.get_result(run_id, result_id)
        if entry is None:
            raise MessageError(f"No result {result_id} in run {run_id}")
        return entry

    async def handle(self, message: Message | dict[str, Any] | str) -> Any:
        """Dispatch a request from the host and return its outcome."""
        if isinstance(message, (dict, str)):
            message = parse_message(message)

        if isinstance(message, SelectMessage):
            entry = self._result(message.run_id, message.result_id)
            self.collection.active = entry
            return entry

        if isinstance(message, RemapMessage):
            entry = self._result(message.run_id, message.result_id)
            await entry.attempt_to_map(self.rebaser, prompt_user=True, fresh=True)
            return entry

        if isinstance(message, RemoveLogMessage):
            return self.unload_log(message.source_uri)

        if isinstance(message, SetUriBasesMessage):
            self.rebaser.uri_bases = message.uri_bases
            return await self.resolve_all(prompt_user=False)

        if isinstance(message, TranslateLocalMessage):
            return self.rebaser.translate_local_to_artifact(message.local_uri)

        raise MessageError(f"Unhandled message: {message!r}")

    # Lifetime

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        """Run a coroutine in the background, owned by this session."""
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def dispose(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self.collection.dispose()
        if self.store is not None:
            self.store.close()

    async def __aenter__(self) -> "Session":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.dispose()


def _under(root: Path, value: str) -> Path:
    path = Path(value).expanduser()
    return path if path.is_absolute() else root / path
