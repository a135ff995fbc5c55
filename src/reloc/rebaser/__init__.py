"""Artifact <-> local URI rebasing."""

from reloc.rebaser.cache import BaseUriCache
from reloc.rebaser.names import DistinctArtifactNames, index_workspace, map_distinct
from reloc.rebaser.normalize import PathNormalizer, platform_is_case_sensitive
from reloc.rebaser.picker import FilePicker, InquirerFilePicker, NullPicker
from reloc.rebaser.prober import ExistenceProber, FileSystemProber, SetProber
from reloc.rebaser.rebaser import Resolution, UriRebaser

__all__ = [
    "BaseUriCache",
    "DistinctArtifactNames",
    "ExistenceProber",
    "FilePicker",
    "FileSystemProber",
    "InquirerFilePicker",
    "NullPicker",
    "PathNormalizer",
    "Resolution",
    "SetProber",
    "UriRebaser",
    "index_workspace",
    "map_distinct",
    "platform_is_case_sensitive",
]
