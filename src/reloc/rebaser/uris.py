"""URI segment helpers shared by the rebaser and the cache."""

import re
from pathlib import Path
from typing import Callable
from urllib.parse import urlsplit
from urllib.request import url2pathname

SEPARATORS = re.compile(r"[\\/]")

# A single letter before the colon is a drive, not a scheme.
SCHEME = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.\-]+:")


def split_uri(uri: str) -> list[str]:
    """Split a URI into segments.

    The first segment is "scheme://authority"; the rest are path segments.
    Query and fragment are ignored. URIs without a scheme are split on their
    path alone.
    """
    if not has_scheme(uri):
        return SEPARATORS.split(uri)

    parts = urlsplit(uri)
    head = f"{parts.scheme}://{parts.netloc}"
    path = parts.path
    if not path:
        return [head]
    if path[0] in "/\\":
        path = path[1:]
    return [head, *SEPARATORS.split(path)]


def join_uri(segments: list[str] | tuple[str, ...]) -> str:
    """Inverse of split_uri."""
    return "/".join(segments)


def has_scheme(uri: str) -> bool:
    return SCHEME.match(uri) is not None


def is_local(uri: str) -> bool:
    """Only file: URIs can be probed on the local file system."""
    return has_scheme(uri) and urlsplit(uri).scheme.lower() == "file"


def file_name(uri: str) -> str:
    """Last path segment of a URI."""
    return split_uri(uri)[-1]


def common_suffix_length(a: list[str], b: list[str], key: Callable[[str], str]) -> int:
    """Number of trailing segments a and b share under the given key."""
    count = 0
    while count < len(a) and count < len(b) and key(a[-1 - count]) == key(b[-1 - count]):
        count += 1
    return count


def strip_trailing_separators(uri: str) -> str:
    segments = split_uri(uri)
    while len(segments) > 1 and segments[-1] == "":
        segments.pop()
    return join_uri(segments)


def path_to_uri(path: Path | str) -> str:
    return Path(path).expanduser().resolve().as_uri()


def to_local_uri(value: str) -> str:
    """Accept a plain path or a file: URI and return a file: URI."""
    value = value.strip()
    if not has_scheme(value):
        value = path_to_uri(value)
    return strip_trailing_separators(value)


def uri_to_path(uri: str) -> Path:
    """Convert a file: URI to a local path."""
    parts = urlsplit(uri)
    if parts.scheme.lower() != "file":
        raise ValueError(f"Not a file URI: {uri}")

    path = parts.path
    if parts.netloc and parts.netloc != "localhost":
        path = f"//{parts.netloc}{path}"
    return Path(url2pathname(path))
