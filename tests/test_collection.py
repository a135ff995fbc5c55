"""Tests for DiagnosticCollection and the remap cascade."""

import asyncio

import pytest

from reloc.diagnostics.collection import DiagnosticCollection
from reloc.diagnostics.entry import DiagnosticEntry
from reloc.diagnostics.sinks import InMemoryProblemList
from reloc.errors import PartitionInvariantError
from reloc.rebaser.names import DistinctArtifactNames
from reloc.rebaser.normalize import PathNormalizer
from reloc.rebaser.prober import SetProber
from reloc.rebaser.rebaser import UriRebaser
from reloc.types import Location, Range, RunInfo, Severity


class FakePicker:
    def __init__(self, *answers):
        self.answers = list(answers)
        self.calls = []

    def pick_file(self, seed_name):
        self.calls.append(seed_name)
        return self.answers.pop(0) if self.answers else None


class HookProber(SetProber):
    """SetProber that runs a callback the first time a URI is probed."""

    def __init__(self, uris, hooks=None):
        super().__init__(uris)
        self.hooks = dict(hooks or {})

    def exists(self, local_uri):
        hook = self.hooks.pop(local_uri, None)
        if hook is not None:
            hook()
        return super().exists(local_uri)


class BlockingProber:
    """Blocks forever on one URI until the caller is cancelled."""

    def __init__(self, uris, block_on):
        self.uris = set(uris)
        self.block_on = block_on
        self.blocked = asyncio.Event()

    async def exists(self, local_uri):
        if local_uri == self.block_on:
            self.blocked.set()
            await asyncio.Event().wait()
        return local_uri in self.uris


RUN_A = RunInfo(id=0, source_uri="file:///logs/a.sarif", tool_name="lint")
RUN_B = RunInfo(id=1, source_uri="file:///logs/b.sarif", tool_name="lint")


def make_entry(run, result_id, uri, line=0):
    return DiagnosticEntry(
        run=run,
        result_id=result_id,
        artifact_location=Location(uri=uri, range=Range(start_line=line, end_line=line, end_column=5)),
        message=f"result {result_id}",
        severity=Severity.WARNING,
        rule_id="R1",
    )


def make_collection(prober=None, picker=None, max_per_file=250):
    rebaser = UriRebaser(
        PathNormalizer(case_sensitive=True),
        prober if prober is not None else SetProber(),
        picker=picker,
    )
    return DiagnosticCollection(rebaser, InMemoryProblemList(), max_per_file=max_per_file)


@pytest.fixture
def events():
    return []


class TestAdd:
    def test_add_partitions(self, events):
        collection = make_collection()
        collection.subscribe(events.append)
        unmapped = make_entry(RUN_A, 0, "file:///folder/a.c")
        mapped = make_entry(RUN_A, 1, "file:///folder/b.c")
        mapped.update_to_mapped_location(Location(uri="file:///p/b.c", mapped=True))

        collection.add(unmapped)
        collection.add(mapped)

        assert collection.all_unmapped() == [unmapped]
        assert collection.all_mapped() == [mapped]
        assert [(e.type, e.diagnostics) for e in events] == [
            ("Add", [unmapped]),
            ("Add", [mapped]),
        ]

    def test_add_run_syncs_once(self, events):
        collection = make_collection()
        collection.subscribe(events.append)
        entries = [make_entry(RUN_A, i, "file:///folder/a.c") for i in range(3)]

        collection.add_run(RUN_A, entries)

        assert [e.type for e in events] == ["Add", "Add", "Add", "Synchronize"]
        assert collection.get_run(0) == RUN_A
        problems = collection.sink.get("file:///folder/a.c")
        assert [p.message for p in problems] == [
            "[Unmapped] [R1] result 0",
            "[Unmapped] [R1] result 1",
            "[Unmapped] [R1] result 2",
        ]
        assert problems[0].source == "lint"
        assert problems[0].code == "R1"

    def test_entry_without_uri_keyed_by_log(self):
        collection = make_collection()
        entry = make_entry(RUN_A, 0, None)

        collection.add_run(RUN_A, [entry])

        assert collection.sink.get("file:///logs/a.sarif")

    def test_get_result(self):
        collection = make_collection()
        entry = make_entry(RUN_A, 7, "file:///folder/a.c")
        collection.add_run(RUN_A, [entry])

        assert collection.get_result(0, 7) is entry
        assert collection.get_result(0, 8) is None


class TestTruncation:
    def test_over_limit(self):
        collection = make_collection(max_per_file=500)
        entries = [make_entry(RUN_A, i, "file:///folder/big.c") for i in range(1000)]

        collection.add_run(RUN_A, entries)

        problems = collection.sink.get("file:///folder/big.c")
        assert len(problems) == 500
        assert problems[0].message == "Only displaying 499 of the total 1000 results in the log."
        assert problems[0].severity == Severity.ERROR
        assert problems[1].message == "[Unmapped] [R1] result 0"
        assert problems[-1].message == "[Unmapped] [R1] result 498"

    def test_at_limit(self):
        collection = make_collection(max_per_file=3)
        collection.add_run(RUN_A, [make_entry(RUN_A, i, "file:///folder/a.c") for i in range(3)])

        problems = collection.sink.get("file:///folder/a.c")
        assert len(problems) == 3
        assert not problems[0].message.startswith("Only displaying")

    def test_default_limit(self):
        collection = make_collection()
        collection.add_run(RUN_A, [make_entry(RUN_A, i, "file:///folder/a.c") for i in range(300)])

        assert len(collection.sink.get("file:///folder/a.c")) == 250

    def test_limit_too_small(self):
        with pytest.raises(ValueError):
            make_collection(max_per_file=1)


class TestRemapCascade:
    @pytest.mark.asyncio
    async def test_one_pick_maps_siblings(self, events):
        picker = FakePicker("file:///p/file1.txt")
        collection = make_collection(
            prober=SetProber({"file:///p/file1.txt", "file:///p/file2.txt", "file:///p/sub/file3.txt"}),
            picker=picker,
        )
        first = make_entry(RUN_A, 0, "file:///folder/file1.txt")
        second = make_entry(RUN_A, 1, "file:///folder/file2.txt")
        third = make_entry(RUN_A, 2, "file:///folder/sub/file3.txt")
        missing = make_entry(RUN_A, 3, "file:///elsewhere/file4.txt")
        collection.add_run(RUN_A, [first, second, third, missing])
        collection.subscribe(events.append)

        assert await first.attempt_to_map(collection.rebaser, prompt_user=True)

        assert picker.calls == ["file1.txt"]
        assert collection.all_unmapped() == [missing]
        assert {e.location.uri for e in collection.all_mapped()} == {
            "file:///p/file1.txt",
            "file:///p/file2.txt",
            "file:///p/sub/file3.txt",
        }
        assert [e.type for e in events] == ["Synchronize"]
        sink = collection.sink
        assert sink.get("file:///p/file2.txt")[0].message == "[R1] result 1"
        assert sink.get("file:///folder/file2.txt") == []
        assert sink.total() == 4

    @pytest.mark.asyncio
    async def test_location_mapped_on_mapped_is_noop(self, events):
        collection = make_collection(
            prober=SetProber({"file:///p/a.c"}),
            picker=FakePicker("file:///p/a.c"),
        )
        entry = make_entry(RUN_A, 0, "file:///folder/a.c")
        collection.add_run(RUN_A, [entry])
        await entry.attempt_to_map(collection.rebaser, prompt_user=True)
        collection.subscribe(events.append)

        await collection.location_mapped(entry, entry.location)

        assert events == []
        assert collection.all_mapped() == [entry]
        assert collection.all_unmapped() == []

    @pytest.mark.asyncio
    async def test_unknown_diagnostic_is_noop(self, events):
        collection = make_collection()
        collection.subscribe(events.append)
        stranger = make_entry(RUN_B, 0, "file:///folder/a.c")

        await collection.location_mapped(
            stranger, Location(uri="file:///p/a.c", mapped=True)
        )

        assert events == []
        assert stranger.location.mapped is False

    @pytest.mark.asyncio
    async def test_nested_triggers_rerun(self, events):
        # c.c comes first but only resolves through the base that b.c's
        # distinct-name match teaches later in the same walk.
        normalizer = PathNormalizer(case_sensitive=True)
        entries = [
            make_entry(RUN_A, 0, "file:///folder/x/y/c.c"),
            make_entry(RUN_A, 1, "file:///folder/x/b.c"),
            make_entry(RUN_A, 2, "file:///folder/a.c"),
        ]
        rebaser = UriRebaser(
            normalizer,
            SetProber({"file:///p/a.c", "file:///q/x/b.c", "file:///q/x/y/c.c"}),
            picker=FakePicker("file:///p/a.c"),
            distinct_artifact_names=DistinctArtifactNames.from_uris(
                [e.artifact_uri for e in entries], normalizer
            ),
            distinct_local_names=DistinctArtifactNames.from_uris(["file:///q/x/b.c"], normalizer),
        )
        collection = DiagnosticCollection(rebaser, InMemoryProblemList())
        collection.add_run(RUN_A, entries)
        collection.subscribe(events.append)

        await entries[2].attempt_to_map(rebaser, prompt_user=True)

        assert collection.all_unmapped() == []
        assert {e.location.uri for e in collection.all_mapped()} == {
            "file:///p/a.c",
            "file:///q/x/b.c",
            "file:///q/x/y/c.c",
        }
        assert [e.type for e in events] == ["Synchronize"]

    @pytest.mark.asyncio
    async def test_removal_during_cascade(self, events):
        prober = HookProber({"file:///p/f1.txt", "file:///p/f3.txt", "file:///p/f4.txt"})
        collection = make_collection(prober=prober, picker=FakePicker("file:///p/f1.txt"))
        prober.hooks["file:///p/f4.txt"] = lambda: collection.remove_runs(RUN_B.source_uri)

        removed_entry = make_entry(RUN_B, 0, "file:///folder/f3.txt")
        kept_sibling = make_entry(RUN_A, 0, "file:///folder/f3.txt")
        trigger = make_entry(RUN_A, 1, "file:///folder/f1.txt")
        late = make_entry(RUN_A, 2, "file:///folder/f4.txt")
        collection.add_run(RUN_B, [removed_entry])
        collection.add_run(RUN_A, [kept_sibling, trigger, late])
        collection.subscribe(events.append)

        await trigger.attempt_to_map(collection.rebaser, prompt_user=True)

        assert collection.all_unmapped() == []
        assert {e.key for e in collection.all_mapped()} == {(0, 0), (0, 1), (0, 2)}
        removes = [e for e in events if e.type == "Remove"]
        assert len(removes) == 1
        assert removes[0].diagnostics == [removed_entry]
        assert collection.sink.total() == 3

    @pytest.mark.asyncio
    async def test_cancelled_walk_keeps_partitions(self):
        prober = BlockingProber({"file:///p/f1.txt"}, block_on="file:///folder/f2.txt")
        collection = make_collection(prober=prober, picker=FakePicker("file:///p/f1.txt"))
        trigger = make_entry(RUN_A, 0, "file:///folder/f1.txt")
        other = make_entry(RUN_A, 1, "file:///folder/f2.txt")
        collection.add_run(RUN_A, [trigger, other])

        task = asyncio.create_task(trigger.attempt_to_map(collection.rebaser, prompt_user=True))
        await prober.blocked.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert collection.all_mapped() == [trigger]
        assert collection.all_unmapped() == [other]
        # Nothing left behind in the unmapped partition.
        assert collection._unmapped == {"file:///folder/f2.txt": [other]}
        # The problem list agrees with the partitions.
        assert set(collection.sink.problems) == {"file:///p/f1.txt", "file:///folder/f2.txt"}
        assert [p.message for p in collection.sink.get("file:///p/f1.txt")] == ["[R1] result 0"]
        assert [p.message for p in collection.sink.get("file:///folder/f2.txt")] == [
            "[Unmapped] [R1] result 1"
        ]

    def test_missing_key_raises(self):
        collection = make_collection()
        collection.add_run(RUN_A, [make_entry(RUN_A, 0, "file:///folder/a.c")])
        collection._remapped_indices["file:///folder/gone.c"] = [0]

        with pytest.raises(PartitionInvariantError):
            collection._remove_remapped()


class TestRemove:
    def test_remove_runs(self, events):
        collection = make_collection()
        a = make_entry(RUN_A, 0, "file:///folder/a.c")
        b = make_entry(RUN_B, 0, "file:///folder/a.c")
        collection.add_run(RUN_A, [a])
        collection.add_run(RUN_B, [b])
        collection.subscribe(events.append)

        removed = collection.remove_runs(RUN_B.source_uri)

        assert removed == [b]
        assert [(e.type, e.diagnostics) for e in events] == [
            ("Remove", [b]),
            ("Synchronize", []),
        ]
        assert collection.get_run(1) is None
        assert collection.all_unmapped() == [a]
        assert len(collection.sink.get("file:///folder/a.c")) == 1

    def test_remove_unknown_source(self, events):
        collection = make_collection()
        collection.add_run(RUN_A, [make_entry(RUN_A, 0, "file:///folder/a.c")])
        collection.subscribe(events.append)

        assert collection.remove_runs("file:///logs/none.sarif") == []
        assert [e.type for e in events] == ["Synchronize"]

    def test_remove_all_runs(self, events):
        collection = make_collection()
        entries = [make_entry(RUN_A, 0, "file:///folder/a.c"), make_entry(RUN_B, 0, "file:///folder/b.c")]
        collection.add_run(RUN_A, entries[:1])
        collection.add_run(RUN_B, entries[1:])
        collection.subscribe(events.append)

        collection.remove_all_runs()

        assert events[0].type == "Remove"
        assert events[0].diagnostics == entries
        assert collection.runs == []
        assert collection.sink.total() == 0

    @pytest.mark.asyncio
    async def test_removed_entries_are_unsubscribed(self):
        collection = make_collection(prober=SetProber({"file:///p/a.c"}), picker=FakePicker("file:///p/a.c"))
        entry = make_entry(RUN_A, 0, "file:///folder/a.c")
        collection.add_run(RUN_A, [entry])
        collection.remove_runs(RUN_A.source_uri)

        await entry.attempt_to_map(collection.rebaser, prompt_user=True)

        assert collection.all_mapped() == []


class TestSelect:
    def test_select_line(self):
        collection = make_collection()
        first = make_entry(RUN_A, 0, "file:///folder/a.c", line=3)
        second = make_entry(RUN_A, 1, "file:///folder/a.c", line=9)
        collection.add_run(RUN_A, [first, second])
        active = []
        collection.subscribe_active(active.append)

        assert collection.select("file:///folder/a.c", 9) is second
        assert collection.select("file:///folder/a.c", 9) is second
        assert collection.select("file:///folder/a.c", 5) is None

        assert active == [second]
        assert collection.active is second

    def test_removal_clears_active(self):
        collection = make_collection()
        entry = make_entry(RUN_A, 0, "file:///folder/a.c")
        collection.add_run(RUN_A, [entry])
        collection.select("file:///folder/a.c", 0)

        collection.remove_all_runs()

        assert collection.active is None


class TestDispose:
    @pytest.mark.asyncio
    async def test_dispose_unsubscribes(self, events):
        collection = make_collection(prober=SetProber({"file:///p/a.c"}), picker=FakePicker("file:///p/a.c"))
        entry = make_entry(RUN_A, 0, "file:///folder/a.c")
        collection.add_run(RUN_A, [entry])
        collection.subscribe(events.append)

        collection.dispose()
        await entry.attempt_to_map(collection.rebaser, prompt_user=True)

        assert events == []
        assert collection.all_mapped() == []


class TestDiagnosticEntry:
    def test_update_requires_mapped(self):
        entry = make_entry(RUN_A, 0, "file:///folder/a.c")

        with pytest.raises(ValueError):
            entry.update_to_mapped_location(Location(uri="file:///p/a.c"))

    @pytest.mark.asyncio
    async def test_standalone_entry_maps_itself(self):
        rebaser = UriRebaser(
            PathNormalizer(case_sensitive=True),
            SetProber({"file:///p/a.c"}),
            uri_bases=["file:///p"],
        )
        entry = make_entry(RUN_A, 0, "file:///folder/a.c", line=4)

        assert await entry.attempt_to_map(rebaser)
        assert entry.location == Location(
            uri="file:///p/a.c",
            mapped=True,
            range=Range(start_line=4, end_line=4, end_column=5),
        )
        assert entry.to_problem().message == "[R1] result 0"
        # Already mapped: nothing more to do.
        assert not await entry.attempt_to_map(rebaser)

    @pytest.mark.asyncio
    async def test_fresh_attempt_prompts_again(self):
        picker = FakePicker(None, "file:///p/a.c")
        rebaser = UriRebaser(
            PathNormalizer(case_sensitive=True),
            SetProber({"file:///p/a.c"}),
            picker=picker,
        )
        entry = make_entry(RUN_A, 0, "file:///folder/a.c")

        assert not await entry.attempt_to_map(rebaser, prompt_user=True)
        assert not await entry.attempt_to_map(rebaser, prompt_user=True)
        assert await entry.attempt_to_map(rebaser, prompt_user=True, fresh=True)
        assert picker.calls == ["a.c", "a.c"]
