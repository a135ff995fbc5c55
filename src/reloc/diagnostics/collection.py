"""Mapped/unmapped partitions of diagnostics and the remap cascade."""

import logging
from typing import Callable, Iterator

from reloc.diagnostics.entry import DiagnosticEntry
from reloc.diagnostics.events import ChangeEvent
from reloc.diagnostics.sinks import ProblemListSink
from reloc.errors import PartitionInvariantError
from reloc.events import Observers
from reloc.rebaser.rebaser import UriRebaser
from reloc.types import Location, ProblemEntry, Range, RunInfo, Severity

logger = logging.getLogger(__name__)

DEFAULT_MAX_PER_FILE = 250
NOTICE_SOURCE = "reloc"

Partition = dict[str, list[DiagnosticEntry]]


class DiagnosticCollection:
    """Holds every diagnostic of the loaded logs, keyed by file.

    A diagnostic lives in the unmapped partition until its artifact resolves,
    then moves to the mapped partition. Each move retries the rest of the
    unmapped diagnostics without prompting, since the move may have taught
    the rebaser a base that fits them too.
    """

    def __init__(
        self,
        rebaser: UriRebaser,
        sink: ProblemListSink,
        max_per_file: int = DEFAULT_MAX_PER_FILE,
    ):
        if max_per_file < 2:
            raise ValueError("max_per_file must be at least 2")

        self.rebaser = rebaser
        self.sink = sink
        self.max_per_file = max_per_file

        self._mapped: Partition = {}
        self._unmapped: Partition = {}
        self._runs: list[RunInfo] = []
        self._subscriptions: dict[DiagnosticEntry, Callable[[], None]] = {}
        self._changes: Observers[ChangeEvent] = Observers()
        self._active_changed: Observers[DiagnosticEntry | None] = Observers()
        self._active: DiagnosticEntry | None = None

        # Cascade state
        self._remapping = False
        self._rerun = False
        self._remapped_indices: dict[str, list[int]] = {}

    # Observers

    def subscribe(self, callback: Callable[[ChangeEvent], object]) -> Callable[[], None]:
        return self._changes.subscribe(callback)

    def subscribe_active(
        self, callback: Callable[[DiagnosticEntry | None], object]
    ) -> Callable[[], None]:
        return self._active_changed.subscribe(callback)

    @property
    def active(self) -> DiagnosticEntry | None:
        return self._active

    @active.setter
    def active(self, diagnostic: DiagnosticEntry | None) -> None:
        if diagnostic is self._active:
            return
        self._active = diagnostic
        self._active_changed.notify(diagnostic)

    # Adding

    @staticmethod
    def _partition_key(diagnostic: DiagnosticEntry) -> str:
        return diagnostic.location.uri or diagnostic.run.source_uri

    def _add_to(self, partition: Partition, diagnostic: DiagnosticEntry) -> None:
        partition.setdefault(self._partition_key(diagnostic), []).append(diagnostic)

    def add(self, diagnostic: DiagnosticEntry) -> None:
        if diagnostic.location.mapped:
            self._add_to(self._mapped, diagnostic)
        else:
            self._subscriptions[diagnostic] = diagnostic.subscribe_location_mapped(
                lambda location, entry=diagnostic: self.location_mapped(entry, location)
            )
            self._add_to(self._unmapped, diagnostic)
        self._changes.notify(ChangeEvent("Add", [diagnostic]))

    def add_run(self, run: RunInfo, diagnostics: list[DiagnosticEntry]) -> None:
        self._runs.append(run)
        for diagnostic in diagnostics:
            self.add(diagnostic)
        self.sync_issues_with_diagnostic_collection()

    # Problem list

    def _problems_for(self, diagnostics: list[DiagnosticEntry]) -> list[ProblemEntry]:
        problems = [diagnostic.to_problem() for diagnostic in diagnostics]
        if len(problems) <= self.max_per_file:
            return problems

        shown = self.max_per_file - 1
        notice = ProblemEntry(
            range=Range(),
            message=f"Only displaying {shown} of the total {len(problems)} results in the log.",
            severity=Severity.ERROR,
            code=NOTICE_SOURCE,
            source=NOTICE_SOURCE,
        )
        return [notice] + problems[:shown]

    def sync_issues_with_diagnostic_collection(self) -> None:
        """Rebuild the problem list from both partitions."""
        by_key: Partition = {}
        for key, diagnostics in self._mapped.items():
            by_key.setdefault(key, []).extend(diagnostics)
        for key, diagnostics in self._unmapped.items():
            # Entries moved by a running cascade are still listed here until cleanup.
            pending = [d for d in diagnostics if not d.location.mapped]
            if pending:
                by_key.setdefault(key, []).extend(pending)

        self.sink.clear()
        for key, diagnostics in by_key.items():
            if diagnostics:
                self.sink.set(key, self._problems_for(diagnostics))

        self._changes.notify(ChangeEvent("Synchronize"))

    # Removing

    def _drop(self, diagnostics: list[DiagnosticEntry]) -> None:
        for diagnostic in diagnostics:
            unsubscribe = self._subscriptions.pop(diagnostic, None)
            if unsubscribe is not None:
                unsubscribe()
        if self._active is not None and self._active in set(diagnostics):
            self.active = None

    def _remove_where(self, predicate: Callable[[DiagnosticEntry], bool]) -> list[DiagnosticEntry]:
        recorded = {
            key: {self._unmapped[key][index] for index in indices}
            for key, indices in self._remapped_indices.items()
            if key in self._unmapped
        }

        removed: list[DiagnosticEntry] = []
        seen: set[DiagnosticEntry] = set()
        for partition in (self._mapped, self._unmapped):
            for key in list(partition):
                kept = []
                for diagnostic in partition[key]:
                    if not predicate(diagnostic):
                        kept.append(diagnostic)
                    elif diagnostic not in seen:
                        seen.add(diagnostic)
                        removed.append(diagnostic)
                if kept:
                    partition[key] = kept
                else:
                    del partition[key]

        # Indices recorded by a running cascade must follow the entries they name.
        self._remapped_indices = {}
        for key, entries in recorded.items():
            indices = [
                index
                for index, diagnostic in enumerate(self._unmapped.get(key, []))
                if diagnostic in entries
            ]
            if indices:
                self._remapped_indices[key] = indices

        self._drop(removed)
        return removed

    def remove_runs(self, source_uri: str) -> list[DiagnosticEntry]:
        """Drop every run loaded from `source_uri` and its diagnostics."""
        run_ids = {run.id for run in self._runs if run.source_uri == source_uri}
        self._runs = [run for run in self._runs if run.id not in run_ids]

        removed = self._remove_where(lambda diagnostic: diagnostic.run.id in run_ids)
        logger.debug(f"Removed {len(removed)} diagnostics from {source_uri}")
        if removed:
            self._changes.notify(ChangeEvent("Remove", removed))
        self.sync_issues_with_diagnostic_collection()
        return removed

    def remove_all_runs(self) -> list[DiagnosticEntry]:
        self._runs = []
        removed = self._remove_where(lambda diagnostic: True)
        if removed:
            self._changes.notify(ChangeEvent("Remove", removed))
        self.sync_issues_with_diagnostic_collection()
        return removed

    # Queries

    @staticmethod
    def _iter(partition: Partition) -> Iterator[DiagnosticEntry]:
        for diagnostics in partition.values():
            yield from diagnostics

    def all_mapped(self) -> list[DiagnosticEntry]:
        return list(self._iter(self._mapped))

    def all_unmapped(self, source_uri: str | None = None) -> list[DiagnosticEntry]:
        return [
            diagnostic
            for diagnostic in self._iter(self._unmapped)
            if not diagnostic.location.mapped
            and (source_uri is None or diagnostic.run.source_uri == source_uri)
        ]

    def get_result(self, run_id: int, result_id: int) -> DiagnosticEntry | None:
        for diagnostic in self.all_mapped() + self.all_unmapped():
            if diagnostic.key == (run_id, result_id):
                return diagnostic
        return None

    def get_run(self, run_id: int) -> RunInfo | None:
        return next((run for run in self._runs if run.id == run_id), None)

    @property
    def runs(self) -> list[RunInfo]:
        return list(self._runs)

    def select(self, uri: str, line: int) -> DiagnosticEntry | None:
        """Make the diagnostic under an editor selection the active one."""
        for partition in (self._mapped, self._unmapped):
            for diagnostic in partition.get(uri, []):
                span = diagnostic.location.range
                if span.contains_line(line) or (span.is_empty and span.start_line == line):
                    self.active = diagnostic
                    return diagnostic
        return None

    # Remap cascade

    def _record_remapped(self, diagnostic: DiagnosticEntry, location: Location) -> bool:
        for key, diagnostics in self._unmapped.items():
            index = next((i for i, d in enumerate(diagnostics) if d is diagnostic), -1)
            if index < 0:
                continue

            recorded = self._remapped_indices.setdefault(key, [])
            if index in recorded:
                return False
            recorded.append(index)

            diagnostic.update_to_mapped_location(location)
            self._add_to(self._mapped, diagnostic)
            unsubscribe = self._subscriptions.pop(diagnostic, None)
            if unsubscribe is not None:
                unsubscribe()
            return True
        return False

    def _remove_remapped(self) -> None:
        for key, indices in self._remapped_indices.items():
            diagnostics = self._unmapped.get(key)
            if diagnostics is None:
                raise PartitionInvariantError(
                    f"Expected unmapped diagnostics under {key} while remapping"
                )
            for index in sorted(indices, reverse=True):
                del diagnostics[index]
            if not diagnostics:
                del self._unmapped[key]
        self._remapped_indices = {}

    async def _walk_unmapped(self) -> None:
        while True:
            self._rerun = False
            for diagnostics in list(self._unmapped.values()):
                for diagnostic in list(diagnostics):
                    if diagnostic.location.mapped or diagnostic not in self._subscriptions:
                        continue
                    await diagnostic.attempt_to_map(self.rebaser, prompt_user=False)
            if not self._rerun:
                return

    async def location_mapped(self, diagnostic: DiagnosticEntry, location: Location) -> None:
        """Move a newly resolved diagnostic and retry the remaining ones."""
        if not self._record_remapped(diagnostic, location):
            return

        if self._remapping:
            # The running walk picks this up with another pass.
            self._rerun = True
            return

        self._remapping = True
        try:
            await self._walk_unmapped()
        finally:
            self._remapping = False
            self._rerun = False
            self._remove_remapped()
            logger.debug(f"Remapped; {len(self.all_unmapped())} diagnostics still unmapped")
            self.sync_issues_with_diagnostic_collection()

    def dispose(self) -> None:
        for unsubscribe in self._subscriptions.values():
            unsubscribe()
        self._subscriptions.clear()
        self._changes.clear()
        self._active_changed.clear()
