"""Learned artifact-prefix -> local-prefix substitutions."""

import logging

from reloc.rebaser.normalize import PathNormalizer
from reloc.rebaser.uris import common_suffix_length, has_scheme, join_uri, split_uri
from reloc.store.base import BaseUriStore
from reloc.types import BaseUriCacheEntry

logger = logging.getLogger(__name__)


def prefix_segments(uri: str) -> list[str]:
    """Segments of a URI as the cache compares them.

    Relative URIs drop their leading "/" and "." segments, so "src/a.c",
    "./src/a.c" and "/src/a.c" all begin at "src". An empty prefix has no
    segments.
    """
    segments = split_uri(uri)
    if not has_scheme(uri):
        while segments and segments[0] in ("", "."):
            segments.pop(0)
    return segments


class BaseUriCache:
    """Base-URI cache.

    Entries are keyed by the normalized segments of their artifact prefix, so
    there is at most one entry per distinct prefix. Matching is segment-wise:
    "file:///a" is a prefix of "file:///a/b" but not of "file:///ab".
    Lookups try the longest matching prefix first; among prefixes of equal
    length the most recently learned wins.

    A pick made for a relative artifact URI such as "src/a.c" learns an
    entry with an empty artifact prefix. That entry roots every relative
    artifact URI at its local prefix and never applies to absolute ones.
    """

    def __init__(self, normalizer: PathNormalizer, store: BaseUriStore | None = None):
        self.normalizer = normalizer
        self.store = store
        self._entries: dict[tuple[str, ...], BaseUriCacheEntry] = {}

        if store is not None:
            for entry in store.load_entries():
                self._put(entry)
            if self._entries:
                logger.debug(f"Loaded {len(self._entries)} base URI pairs")

    def _key(self, uri: str) -> tuple[str, ...]:
        return tuple(self.normalizer(segment) for segment in prefix_segments(uri))

    def _put(self, entry: BaseUriCacheEntry) -> tuple[str, ...]:
        key = self._key(entry.artifact_prefix)
        # Re-insert so iteration order reflects recency.
        self._entries.pop(key, None)
        self._entries[key] = entry
        return key

    def add(self, entry: BaseUriCacheEntry) -> None:
        key = self._put(entry)
        if self.store is not None:
            self.store.save_entry(entry, join_uri(key))

    def learn(self, artifact_uri: str, local_uri: str) -> BaseUriCacheEntry | None:
        """Generalize one resolved pair into a base pair.

        The longest common trailing run of segments is stripped from both
        URIs; what remains are the two prefixes.
        """
        artifact = prefix_segments(artifact_uri)
        local = split_uri(local_uri)
        shared = common_suffix_length(artifact, local, self.normalizer)
        if shared == 0:
            return None

        artifact_prefix = artifact[: len(artifact) - shared]
        local_prefix = local[: len(local) - shared]
        if not local_prefix:
            return None

        entry = BaseUriCacheEntry(
            artifact_prefix=join_uri(artifact_prefix),
            local_prefix=join_uri(local_prefix),
        )
        if self.normalizer(entry.artifact_prefix) == self.normalizer(entry.local_prefix):
            return None

        existing = self._entries.get(self._key(entry.artifact_prefix))
        if existing != entry:
            logger.info(f"Learned base {entry.artifact_prefix or '(relative)'} -> {entry.local_prefix}")
            self.add(entry)
        return entry

    def _matches(self, uri: str, use_local: bool) -> list[BaseUriCacheEntry]:
        keys = tuple(self.normalizer(segment) for segment in prefix_segments(uri))
        relative = not has_scheme(uri)
        found = []
        for order, entry in enumerate(self._entries.values()):
            prefix = entry.local_prefix if use_local else entry.artifact_prefix
            prefix_key = self._key(prefix)
            if not prefix_key and not relative:
                continue
            if len(prefix_key) <= len(keys) and keys[: len(prefix_key)] == prefix_key:
                found.append((len(prefix_key), order, entry))
        found.sort(key=lambda item: (item[0], item[1]), reverse=True)
        return [entry for _, _, entry in found]

    def candidates(self, artifact_uri: str) -> list[str]:
        """Local URIs the artifact may live at, most specific base first."""
        segments = prefix_segments(artifact_uri)
        result: list[str] = []
        for entry in self._matches(artifact_uri, use_local=False):
            prefix = prefix_segments(entry.artifact_prefix)
            candidate = join_uri(split_uri(entry.local_prefix) + segments[len(prefix):])
            if candidate not in result:
                result.append(candidate)
        return result

    def reverse_candidates(self, local_uri: str) -> list[str]:
        """Artifact URIs a local file may stand for, most specific base first."""
        segments = split_uri(local_uri)
        result: list[str] = []
        for entry in self._matches(local_uri, use_local=True):
            prefix = split_uri(entry.local_prefix)
            candidate = join_uri(prefix_segments(entry.artifact_prefix) + segments[len(prefix):])
            if candidate not in result:
                result.append(candidate)
        return result

    def entries(self) -> list[BaseUriCacheEntry]:
        return list(self._entries.values())

    def clear(self) -> None:
        self._entries.clear()
        if self.store is not None:
            self.store.delete_all()

    def __len__(self) -> int:
        return len(self._entries)
