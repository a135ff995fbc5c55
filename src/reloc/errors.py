"""Exceptions raised by reloc."""


class RelocError(Exception):
    """Base class for reloc errors."""

    pass


class ConfigError(RelocError):
    """Raised when a configuration file cannot be loaded."""

    pass


class LogReadError(RelocError):
    """Raised when a log file cannot be read."""

    pass


class MessageError(RelocError):
    """Raised when a boundary request is unknown or malformed."""

    pass


class PartitionInvariantError(RelocError):
    """Raised when the mapped/unmapped partitions have drifted out of sync."""

    pass
