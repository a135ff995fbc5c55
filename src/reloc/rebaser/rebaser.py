"""Translation between artifact URIs from a log and local file URIs."""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator

from reloc.events import Observers
from reloc.rebaser.cache import BaseUriCache
from reloc.rebaser.names import DistinctArtifactNames
from reloc.rebaser.normalize import PathNormalizer
from reloc.rebaser.picker import FilePicker
from reloc.rebaser.prober import ExistenceProber
from reloc.rebaser.uris import file_name, has_scheme, is_local, join_uri, split_uri, to_local_uri

logger = logging.getLogger(__name__)


@dataclass
class Resolution:
    """A newly validated artifact -> local pair."""

    artifact_uri: str
    local_uri: str
    strategy: str  # identity, cache, distinct, uri_bases, picker


class UriRebaser:
    """Resolves artifact URIs to local URIs and back.

    Automatic strategies run in a fixed order and the first success wins:
    identity (the artifact is already a local file), the learned base cache,
    the distinct-name shortcut, then the suffix-overlap search against
    `uri_bases`. When all fail and prompting is allowed, the user is asked to
    pick the file and the pick is generalized into a base pair.
    """

    def __init__(
        self,
        normalizer: PathNormalizer,
        prober: ExistenceProber,
        picker: FilePicker | None = None,
        distinct_artifact_names: DistinctArtifactNames | None = None,
        distinct_local_names: DistinctArtifactNames | None = None,
        cache: BaseUriCache | None = None,
        uri_bases: Iterable[str] = (),
    ):
        self.normalizer = normalizer
        self.prober = prober
        self.picker = picker
        self.distinct_artifact_names = (
            distinct_artifact_names
            if distinct_artifact_names is not None
            else DistinctArtifactNames(normalizer)
        )
        self.distinct_local_names = distinct_local_names
        self.cache = cache if cache is not None else BaseUriCache(normalizer)
        self.uri_bases = list(uri_bases)

        self._validated_artifact_to_local: dict[str, str] = {}
        self._validated_local_to_artifact: dict[str, str] = {}
        self._declined: set[str] = set()
        self._awaiting_pick: set[str] = set()
        self._picker_lock = asyncio.Lock()
        self._resolved: Observers[Resolution] = Observers()

    @property
    def uri_bases(self) -> list[str]:
        return list(self._uri_bases)

    @uri_bases.setter
    def uri_bases(self, values: Iterable[str]) -> None:
        self._uri_bases = [to_local_uri(value) for value in values if value.strip()]

    def subscribe(self, callback: Callable[[Resolution], object]) -> Callable[[], None]:
        """Be told about every newly validated pair."""
        return self._resolved.subscribe(callback)

    async def translate_artifact_to_local(
        self,
        artifact_uri: str,
        prompt_user: bool = True,
    ) -> str | None:
        """Return a local URI confirmed to exist, or None."""
        local_uri = await self._resolve_automatically(artifact_uri)
        if local_uri is not None or not prompt_user:
            return local_uri
        return await self._resolve_interactively(artifact_uri)

    def translate_local_to_artifact(self, local_uri: str) -> str | None:
        """Return the artifact URI a local file stands for, or None."""
        validated = self._validated_local_to_artifact.get(self.normalizer(local_uri))
        if validated is not None:
            return validated

        for candidate in self.cache.reverse_candidates(local_uri):
            artifact_uri = self.distinct_artifact_names.lookup_uri(candidate)
            if artifact_uri is not None:
                self._validated_local_to_artifact[self.normalizer(local_uri)] = artifact_uri
                return artifact_uri

        name = file_name(local_uri)
        if self.distinct_local_names is not None and name not in self.distinct_local_names:
            # The local name is ambiguous, so the log's distinct name proves nothing.
            return None

        artifact_uri = self.distinct_artifact_names.get(name)
        if artifact_uri is None:
            return None

        logger.debug(f"{local_uri} matched {artifact_uri} by distinct name")
        self._validated_local_to_artifact[self.normalizer(local_uri)] = artifact_uri
        self.cache.learn(artifact_uri, local_uri)
        return artifact_uri

    def forget_declined(self, artifact_uri: str) -> None:
        """Allow prompting again for an artifact the user skipped."""
        self._declined.discard(self.normalizer(artifact_uri))

    def is_declined(self, artifact_uri: str) -> bool:
        return self.normalizer(artifact_uri) in self._declined

    async def _exists(self, uri: str) -> bool:
        if not is_local(uri):
            return False
        try:
            result = self.prober.exists(uri)
            if inspect.isawaitable(result):
                result = await result
            return bool(result)
        except Exception as e:
            logger.warning(f"Existence check failed for {uri}: {e}")
            return False

    def _record(self, artifact_uri: str, local_uri: str, strategy: str) -> str:
        self._validated_artifact_to_local[self.normalizer(artifact_uri)] = local_uri
        self._validated_local_to_artifact[self.normalizer(local_uri)] = artifact_uri
        logger.debug(f"Resolved {artifact_uri} -> {local_uri} ({strategy})")
        self._resolved.notify(Resolution(artifact_uri, local_uri, strategy))
        return local_uri

    async def _resolve_automatically(self, artifact_uri: str) -> str | None:
        validated = self._validated_artifact_to_local.get(self.normalizer(artifact_uri))
        if validated is not None:
            return validated

        if is_local(artifact_uri) and await self._exists(artifact_uri):
            return self._record(artifact_uri, artifact_uri, "identity")

        for candidate in self.cache.candidates(artifact_uri):
            if await self._exists(candidate):
                return self._record(artifact_uri, candidate, "cache")

        local_uri = await self._try_distinct_name(artifact_uri)
        if local_uri is not None:
            return local_uri

        return await self._try_uri_bases(artifact_uri)

    async def _try_distinct_name(self, artifact_uri: str) -> str | None:
        name = file_name(artifact_uri)
        if not name or not self.distinct_artifact_names.owns(name, artifact_uri):
            return None

        candidates = []
        if self.distinct_local_names is not None:
            local_uri = self.distinct_local_names.get(name)
            if local_uri is not None:
                candidates.append(local_uri)
        candidates += [join_uri(split_uri(base) + [name]) for base in self._uri_bases]

        for candidate in candidates:
            if await self._exists(candidate):
                self.cache.learn(artifact_uri, candidate)
                return self._record(artifact_uri, candidate, "distinct")
        return None

    def _suffix_candidates(self, artifact_uri: str, base_uri: str) -> Iterator[str]:
        """Candidates from the longest artifact suffix down to the file name.

        For each suffix the artifact tail is first grafted onto the base at
        every segment the two share, then appended to the whole base.
        """
        artifact = split_uri(artifact_uri)
        base = split_uri(base_uri)
        start = 1 if has_scheme(artifact_uri) else 0

        for artifact_index in range(start, len(artifact)):
            tail = artifact[artifact_index:]
            segment = self.normalizer(artifact[artifact_index])
            for base_index in range(1, len(base)):
                if self.normalizer(base[base_index]) == segment:
                    yield join_uri(base[:base_index] + tail)
            yield join_uri(base + tail)

    async def _try_uri_bases(self, artifact_uri: str) -> str | None:
        seen: set[str] = set()
        for base_uri in self._uri_bases:
            for candidate in self._suffix_candidates(artifact_uri, base_uri):
                if candidate in seen:
                    continue
                seen.add(candidate)
                if await self._exists(candidate):
                    self.cache.learn(artifact_uri, candidate)
                    return self._record(artifact_uri, candidate, "uri_bases")
        return None

    async def _pick(self, seed_name: str) -> str | None:
        result = self.picker.pick_file(seed_name)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def _resolve_interactively(self, artifact_uri: str) -> str | None:
        if self.picker is None:
            return None

        key = self.normalizer(artifact_uri)
        if key in self._declined or key in self._awaiting_pick:
            return None

        self._awaiting_pick.add(key)
        try:
            async with self._picker_lock:
                # A pick made while we waited may have taught a usable base.
                local_uri = await self._resolve_automatically(artifact_uri)
                if local_uri is not None:
                    return local_uri
                picked = await self._pick(file_name(artifact_uri))
                # Learn before the next waiter retries.
                return await self._accept_pick(artifact_uri, picked)
        finally:
            self._awaiting_pick.discard(key)

    async def _accept_pick(self, artifact_uri: str, picked: str | None) -> str | None:
        key = self.normalizer(artifact_uri)
        if picked is None:
            logger.info(f"Skipped locating {artifact_uri}")
            self._declined.add(key)
            return None

        if not is_local(picked):
            logger.warning(f"Ignoring pick {picked}: not a local file")
            return None

        if not self.normalizer.equal(file_name(picked), file_name(artifact_uri)):
            logger.warning(
                f"File names must match: '{file_name(artifact_uri)}' and '{file_name(picked)}'"
            )
            return None

        self.cache.learn(artifact_uri, picked)
        if await self._exists(picked):
            return self._record(artifact_uri, picked, "picker")

        logger.warning(f"Picked file {picked} does not exist")
        return None
