"""Indexes of file names that identify exactly one file."""

import fnmatch
import logging
import os
from pathlib import Path
from typing import Iterable

from reloc.rebaser.normalize import PathNormalizer
from reloc.rebaser.uris import file_name

logger = logging.getLogger(__name__)


def map_distinct(pairs: Iterable[tuple[str, str]]) -> dict[str, str]:
    """Keep only the keys that are paired with a single value.

    A key seen again with the same value stays; a key seen with two different
    values is dropped.
    """
    distinct: dict[str, str | None] = {}
    for key, value in pairs:
        if key in distinct:
            if distinct[key] != value:
                distinct[key] = None
        else:
            distinct[key] = value
    return {key: value for key, value in distinct.items() if value is not None}


class DistinctArtifactNames:
    """Base file name -> the one URI carrying that name.

    Names are keyed by their normalized form, so on a case-insensitive
    platform "A.txt" and "a.txt" are the same name.
    """

    def __init__(self, normalizer: PathNormalizer):
        self.normalizer = normalizer
        self._names: dict[str, str] = {}
        self._uris: dict[str, str] = {}  # normalized -> first spelling seen

    @classmethod
    def from_uris(cls, uris: Iterable[str], normalizer: PathNormalizer) -> "DistinctArtifactNames":
        index = cls(normalizer)
        index.rebuild(uris)
        return index

    def rebuild(self, uris: Iterable[str]) -> None:
        """Replace the index with one built from the given URIs."""
        self._uris = {}
        for uri in uris:
            self._uris.setdefault(self.normalizer(uri), uri)

        # Two spellings of the same URI are one owner.
        self._names = map_distinct(
            (self.normalizer(file_name(uri)), uri)
            for uri in self._uris.values()
            if file_name(uri)
        )
        logger.debug(f"Indexed {len(self._names)} distinct names from {len(self._uris)} URIs")

    def get(self, name: str) -> str | None:
        return self._names.get(self.normalizer(name))

    def owns(self, name: str, uri: str) -> bool:
        """True if the name is distinct and belongs to this URI."""
        owner = self.get(name)
        return owner is not None and self.normalizer(owner) == self.normalizer(uri)

    def lookup_uri(self, uri: str) -> str | None:
        """The indexed spelling of a URI, if it is indexed at all."""
        return self._uris.get(self.normalizer(uri))

    def contains_uri(self, uri: str) -> bool:
        return self.normalizer(uri) in self._uris

    def __contains__(self, name: str) -> bool:
        return self.normalizer(name) in self._names

    def __len__(self) -> int:
        return len(self._names)


def _is_denied(rel_path: str, deny: list[str]) -> bool:
    for pattern in deny:
        variants = [pattern]
        if pattern.endswith("/**"):
            variants.append(pattern[:-3])
        variants += [v[3:] for v in variants if v.startswith("**/")]
        if any(fnmatch.fnmatch(rel_path, v) for v in variants):
            return True
    return False


def index_workspace(
    root: Path,
    normalizer: PathNormalizer,
    deny: list[str] | None = None,
) -> DistinctArtifactNames:
    """Index the files under a local root by distinct name."""
    root = root.expanduser().resolve()
    deny = deny or []
    uris = []

    for dirpath, dirnames, filenames in os.walk(root):
        rel_dir = Path(dirpath).relative_to(root).as_posix()
        rel_dir = "" if rel_dir == "." else rel_dir

        kept = []
        for name in dirnames:
            rel = f"{rel_dir}/{name}" if rel_dir else name
            if not _is_denied(rel, deny):
                kept.append(name)
        dirnames[:] = kept

        for name in filenames:
            rel = f"{rel_dir}/{name}" if rel_dir else name
            if not _is_denied(rel, deny):
                uris.append((Path(dirpath) / name).as_uri())

    logger.info(f"Indexed {len(uris)} local files under {root}")
    return DistinctArtifactNames.from_uris(uris, normalizer)
