"""Platform-aware comparison keys for URIs."""

import sys
from urllib.parse import unquote

CASE_INSENSITIVE_PLATFORMS = ("win32", "cygwin", "darwin")


def platform_is_case_sensitive(platform: str | None = None) -> bool:
    """Windows and default macOS file systems ignore case."""
    return (platform or sys.platform) not in CASE_INSENSITIVE_PLATFORMS


class PathNormalizer:
    """Reduces a URI (or a single segment) to the key used for comparisons.

    Separators are always unified and percent-escapes decoded. Case is folded
    only when the file system is case-insensitive, so "file.txt" and
    "FILE.TXT" compare equal on Windows and macOS but not on Linux.
    """

    def __init__(self, case_sensitive: bool | None = None):
        if case_sensitive is None:
            case_sensitive = platform_is_case_sensitive()
        self.case_sensitive = case_sensitive

    def normalize(self, uri: str) -> str:
        key = unquote(uri).replace("\\", "/")
        if not self.case_sensitive:
            key = key.casefold()
        return key

    __call__ = normalize

    def equal(self, a: str, b: str) -> bool:
        return self.normalize(a) == self.normalize(b)

    def __repr__(self) -> str:
        return f"PathNormalizer(case_sensitive={self.case_sensitive})"
